"""Async client for the WASender WhatsApp gateway.

Both send calls report outcomes as ``ChannelResult`` values instead of raising,
so the dispatcher can decide on the text fallback without exception plumbing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from ..core.config import settings
from .errors import ChannelFailure
from .phone import mask_phone

logger = logging.getLogger(__name__)

_E164 = re.compile(r"^\+?[1-9]\d{1,14}$")


@dataclass
class ChannelResult:
    success: bool
    message: str = ""
    data: dict = field(default_factory=dict)
    error: Optional[str] = None
    status_code: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "data": self.data,
            "error": self.error,
        }


def _error_from_status(status_code: int, body: Any) -> str:
    detail = body.get("message") if isinstance(body, dict) else None
    if status_code == 401:
        return "Authentication failed - Invalid API key"
    if status_code == 429:
        return "Rate limit exceeded - Please try again later"
    if status_code == 400:
        return detail or "Bad request - Invalid message data"
    return detail or f"Unexpected response from WASender API ({status_code})"


class WASenderClient:
    """Thin wrapper over ``POST {base}/send-message``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.WASENDER_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.WASENDER_API_KEY
        self.timeout = timeout or settings.WASENDER_TIMEOUT_SECONDS
        self._transport = transport

    async def _post(self, payload: dict) -> ChannelResult:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as http:
                res = await http.post(f"{self.base_url}/send-message", json=payload, headers=headers)
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise ChannelFailure(f"Network error - Unable to connect to WASender API ({exc})") from exc
        except httpx.HTTPError as exc:
            raise ChannelFailure(f"Failed to send message: {exc}") from exc

        try:
            body = res.json()
        except ValueError:
            body = {}
        if res.status_code not in (200, 201):
            raise ChannelFailure(_error_from_status(res.status_code, body), status_code=res.status_code, data=body)
        data = body.get("data", body) if isinstance(body, dict) else {}
        if isinstance(body, dict) and body.get("success") is False:
            raise ChannelFailure(body.get("message") or "WASender reported failure", status_code=res.status_code, data=body)
        return ChannelResult(
            success=True,
            message=(data.get("message") if isinstance(data, dict) else None) or "sent",
            data=data if isinstance(data, dict) else {"raw": data},
            status_code=res.status_code,
        )

    async def _send(self, payload: dict, kind: str) -> ChannelResult:
        try:
            result = await self._post(payload)
        except ChannelFailure as exc:
            logger.warning(
                "WASender %s to %s failed: %s", kind, mask_phone(payload.get("to")), exc
            )
            return ChannelResult(success=False, error=str(exc), status_code=exc.status_code, data=exc.data or {})
        logger.info("WASender %s sent to %s", kind, mask_phone(payload.get("to")))
        return result

    async def send_document(self, to: str, text: str, document_url: str, file_name: str) -> ChannelResult:
        if not to or not document_url or not file_name:
            return ChannelResult(
                success=False,
                error="Missing required fields: to, documentUrl, and fileName are required",
            )
        if not _E164.match(re.sub(r"\s+", "", to)):
            return ChannelResult(success=False, error="Invalid phone number format")
        parsed = urlparse(document_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return ChannelResult(success=False, error="Invalid document URL format")
        payload = {
            "to": to,
            "text": text or "Please find your document attached.",
            "documentUrl": document_url,
            "fileName": file_name,
            "type": "document",
        }
        return await self._send(payload, "document")

    async def send_text(self, to: str, text: str) -> ChannelResult:
        if not to or not text:
            return ChannelResult(success=False, error="Missing required fields: to and text are required")
        if not _E164.match(re.sub(r"\s+", "", to)):
            return ChannelResult(success=False, error="Invalid phone number format")
        return await self._send({"to": to, "text": text}, "text")
