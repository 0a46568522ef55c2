"""Payment gateway adapter: checkout initialization and webhook signatures."""

import hashlib
import hmac
import logging
from decimal import Decimal

import httpx

from traceaid.core.config import settings

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Constant-time check of a hex HMAC-SHA256 signature over the raw body."""
    if not signature or not secret:
        return False
    return hmac.compare_digest(compute_signature(body, secret), signature.strip().lower())


async def initialize_charge(
    reference: str,
    amount: Decimal,
    currency: str,
    email: str | None,
) -> str | None:
    """Ask the gateway for a checkout URL. Returns None when unavailable."""
    if not settings.GATEWAY_SECRET_KEY:
        return None

    payload = {
        "amount": str(amount),
        "currency": currency,
        "reference": reference,
        "customer": {"email": email},
    }
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            resp = await client.post(
                f"{settings.GATEWAY_API_BASE.rstrip('/')}/charges/initialize",
                json=payload,
                headers={"Authorization": f"Bearer {settings.GATEWAY_SECRET_KEY}"},
            )
            resp.raise_for_status()
        data = resp.json().get("data") or {}
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Charge initialization for %s failed: %s", reference, exc)
        return None

    return data.get("checkout_url")
