"""S3 / MinIO helpers for milestone evidence.

Evidence keys always start with ``{fundraiser_id}/evidence/{milestone_id}/``;
the prefix is built here and never accepted from the client.
"""

import logging
import os
import uuid
from urllib.parse import quote, urlparse, urlunparse

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from traceaid.core.config import settings
from traceaid.core.exceptions import IntegrationFailure

logger = logging.getLogger(__name__)

PRESIGN_UPLOAD_EXPIRES = 900  # 15 min

ALLOWED_CONTENT_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/webp",
        "video/mp4",
        "application/pdf",
    }
)

_MISSING_CODES = frozenset({"404", "NoSuchKey", "NotFound"})

_minio_cred_warned = False


def _get_s3_client():  # type: ignore[no-untyped-def]
    global _minio_cred_warned  # noqa: PLW0603
    config_kwargs: dict = {"signature_version": "s3v4"}
    if settings.S3_ENDPOINT_URL:
        config_kwargs["s3"] = {"addressing_style": "path"}
    kwargs: dict = {
        "service_name": "s3",
        "region_name": settings.AWS_REGION,
        "config": Config(**config_kwargs),
    }
    if settings.S3_ENDPOINT_URL:
        kwargs["endpoint_url"] = settings.S3_ENDPOINT_URL
    if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
        kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY

    if settings.S3_ENDPOINT_URL and not _minio_cred_warned:
        env_key = os.environ.get("AWS_ACCESS_KEY_ID", "")
        if env_key.startswith("AKIA") and (
            not settings.AWS_ACCESS_KEY_ID or settings.AWS_ACCESS_KEY_ID.startswith("AKIA")
        ):
            logger.warning(
                "S3_ENDPOINT_URL points to MinIO but AWS_ACCESS_KEY_ID "
                "looks like a real AWS key (AKIA...). Presigned URLs will "
                "be signed with AWS creds and fail against MinIO."
            )
        _minio_cred_warned = True

    return boto3.client(**kwargs)


def _rewrite_presigned_url(url: str) -> str:
    """Swap scheme+netloc to S3_PUBLIC_ENDPOINT so browsers can reach MinIO."""
    if not settings.S3_PUBLIC_ENDPOINT:
        return url
    public = urlparse(settings.S3_PUBLIC_ENDPOINT)
    parsed = urlparse(url)
    return urlunparse(parsed._replace(scheme=public.scheme, netloc=public.netloc))


def evidence_prefix(fundraiser_id: uuid.UUID, milestone_id: uuid.UUID) -> str:
    return f"{fundraiser_id}/evidence/{milestone_id}/"


def build_evidence_key(
    fundraiser_id: uuid.UUID, milestone_id: uuid.UUID, file_name: str
) -> str:
    """``{fundraiser_id}/evidence/{milestone_id}/{uuid}-{safe_name}``."""
    safe_name = quote(file_name.strip().replace(" ", "_"), safe="._-")
    return f"{evidence_prefix(fundraiser_id, milestone_id)}{uuid.uuid4()}-{safe_name}"


def presign_put(
    key: str,
    content_type: str,
    expires: int = PRESIGN_UPLOAD_EXPIRES,
) -> str:
    """Generate a presigned PUT URL for uploading to S3."""
    client = _get_s3_client()
    url = client.generate_presigned_url(
        "put_object",
        Params={
            "Bucket": settings.S3_BUCKET,
            "Key": key,
            "ContentType": content_type,
        },
        ExpiresIn=expires,
    )
    return _rewrite_presigned_url(url)


def object_exists(key: str) -> bool:
    """True when ``key`` is present in the bucket."""
    client = _get_s3_client()
    try:
        client.head_object(Bucket=settings.S3_BUCKET, Key=key)
    except ClientError as exc:
        code = str(exc.response.get("Error", {}).get("Code", ""))
        if code in _MISSING_CODES:
            return False
        logger.warning("head_object failed for %s: %s", key, exc)
        raise IntegrationFailure("Object storage is unavailable") from exc
    return True


def object_url(key: str) -> str:
    """Stable (unsigned) URL recorded alongside an evidence upload."""
    base = settings.S3_PUBLIC_ENDPOINT or settings.S3_ENDPOINT_URL
    if base:
        return f"{base.rstrip('/')}/{settings.S3_BUCKET}/{key}"
    return f"https://{settings.S3_BUCKET}.s3.{settings.AWS_REGION}.amazonaws.com/{key}"
