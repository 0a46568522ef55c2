"""Bank list used to resolve payout bank names to gateway bank codes.

The list is fetched from ``BANK_LIST_URL`` and refreshed once it is older
than the configured interval. When the fetch fails the last good list is
kept; with no list at all a small static table is used.
"""

import logging
import re
import time

import httpx

logger = logging.getLogger(__name__)

FALLBACK_BANKS: list[dict] = [
    {"name": "Access Bank", "code": "044"},
    {"name": "Zenith Bank", "code": "057"},
    {"name": "Guaranty Trust Bank", "code": "058"},
    {"name": "First Bank of Nigeria", "code": "011"},
    {"name": "Fidelity Bank", "code": "070"},
]

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_bank_name(name: str) -> str:
    return _NON_ALNUM.sub("", name.lower())


class BankDirectory:
    def __init__(
        self,
        url: str,
        refresh_seconds: int,
        api_key: str = "",
        fallback: list[dict] | None = None,
    ):
        self.url = url
        self.refresh_seconds = refresh_seconds
        self.api_key = api_key
        self.fallback = fallback if fallback is not None else FALLBACK_BANKS
        self._banks: list[dict] = []
        self._fetched_at: float = 0.0

    @property
    def is_stale(self) -> bool:
        return not self._banks or (time.time() - self._fetched_at) > self.refresh_seconds

    async def refresh(self) -> None:
        """Fetch the list. Failures are logged and leave the cache unchanged."""
        if not self.url:
            return

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                resp = await client.get(self.url, headers=headers)
                resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Bank list fetch from %s failed: %s", self.url, exc)
            return

        banks = payload.get("data") if isinstance(payload, dict) else payload
        if not isinstance(banks, list):
            logger.warning("Bank list from %s has an unexpected shape", self.url)
            return

        self._banks = [
            {"name": b["name"], "code": str(b["code"])}
            for b in banks
            if isinstance(b, dict) and b.get("name") and b.get("code")
        ]
        self._fetched_at = time.time()
        logger.info("Cached %d banks from %s", len(self._banks), self.url)

    async def list_banks(self) -> list[dict]:
        if self.is_stale:
            await self.refresh()
        return self._banks or self.fallback

    async def resolve_code(self, bank_name: str) -> str | None:
        wanted = normalize_bank_name(bank_name)
        if not wanted:
            return None
        for bank in await self.list_banks():
            if normalize_bank_name(bank["name"]) == wanted:
                return bank["code"]
        return None
