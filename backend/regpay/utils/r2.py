from __future__ import annotations

import datetime as dt
import logging
import re
import uuid
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..core.config import settings
from .errors import PublishFailure

logger = logging.getLogger(__name__)

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


class R2Config:
    def __init__(self) -> None:
        self.account_id = settings.R2_ACCOUNT_ID
        self.access_key_id = settings.R2_ACCESS_KEY_ID
        self.secret_access_key = settings.R2_SECRET_ACCESS_KEY
        self.bucket = settings.R2_BUCKET
        # Example: https://9bd...d91c.r2.cloudflarestorage.com (or EU endpoint)
        self.endpoint_url = settings.R2_S3_ENDPOINT or (
            f"https://{self.account_id}.r2.cloudflarestorage.com" if self.account_id else None
        )
        # Public custom domain used to reference objects (no signature).
        # Falls back to the path-style base: <endpoint>/<bucket>
        public = settings.R2_PUBLIC_BASE_URL
        if not public and self.endpoint_url and self.bucket:
            public = f"{self.endpoint_url.rstrip('/')}/{self.bucket}"
        self.public_base_url = public

    def is_configured(self) -> bool:
        return bool(self.bucket and self.endpoint_url and self.access_key_id and self.secret_access_key)


def _client(cfg: R2Config):
    """Create an S3 client configured for Cloudflare R2.

    - region "auto" (R2 requirement)
    - path-style addressing (virtual-hosted style is not supported the same way)
    - endpoint_url MUST match the host you will call (eu vs non-eu)
    """
    return boto3.client(
        "s3",
        aws_access_key_id=cfg.access_key_id,
        aws_secret_access_key=cfg.secret_access_key,
        endpoint_url=cfg.endpoint_url,
        region_name="auto",
        config=Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
        ),
    )


def guess_extension(filename: Optional[str], content_type: Optional[str]) -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].strip().lower()
        if ext:
            return "." + ext
    mapping = {
        "application/pdf": ".pdf",
        "image/png": ".png",
        "image/jpeg": ".jpg",
        "image/webp": ".webp",
    }
    return mapping.get((content_type or "").lower(), "")


def build_key(suggested_name: Optional[str], content_type: Optional[str]) -> str:
    """``receipts/<yyyy>/<mm>/<uuid>-<safe name>`` so names never collide."""
    now = dt.datetime.utcnow()
    name = suggested_name or "receipt"
    stem = name.rsplit(".", 1)[0] if "." in name else name
    stem = _UNSAFE_NAME.sub("-", stem).strip("-")[:80] or "receipt"
    ext = guess_extension(suggested_name, content_type)
    return f"receipts/{now:%Y}/{now:%m}/{uuid.uuid4().hex[:12]}-{stem}{ext}"


def public_url(cfg: R2Config, key: str) -> str:
    return f"{cfg.public_base_url.rstrip('/')}/{key}"


def publish(data: bytes, suggested_name: str, content_type: str = "application/pdf") -> dict:
    """Upload receipt bytes and return ``{"url", "key"}``.

    Raises PublishFailure when storage is not configured or the upload fails.
    """
    cfg = R2Config()
    if not cfg.is_configured():
        raise PublishFailure("R2 is not configured")
    if not data:
        raise PublishFailure("Refusing to publish an empty receipt")
    key = build_key(suggested_name, content_type)
    try:
        _client(cfg).put_object(
            Bucket=cfg.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            ContentDisposition=f'inline; filename="{key.rsplit("/", 1)[-1]}"',
            CacheControl="public, max-age=31536000, immutable",
        )
    except (BotoCoreError, ClientError) as exc:
        raise PublishFailure(f"R2 upload failed: {exc}") from exc
    url = public_url(cfg, key)
    logger.info("Published receipt %s (%d bytes)", key, len(data))
    return {"url": url, "key": key}
