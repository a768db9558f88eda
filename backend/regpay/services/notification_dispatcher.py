"""Receipt delivery over WhatsApp with a plain-text fallback.

``NotificationDispatcher.dispatch`` never raises. Every failure, including
ones it did not anticipate, comes back as a failed ``NotificationResult`` so
one bad recipient cannot abort the rest of a batch.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time
import traceback
from typing import Callable, Optional

from fastapi.concurrency import run_in_threadpool

from ..core.config import settings
from ..crud.crud_records import ServiceRecordView
from ..utils import r2
from ..utils.errors import InvalidPhoneNumber
from ..utils.metrics import incr, timing_ms
from ..utils.phone import mask_phone, mask_reference, normalize_phone
from ..utils.verification import make_verification_code
from ..utils.wasender import WASenderClient
from .delivery_recorder import DeliveryRecorder, categorize_error
from .receipt_pdf import ReceiptRequest, generate_receipt, receipt_filename

logger = logging.getLogger(__name__)

CHANNEL_DOCUMENT = "document"
CHANNEL_TEXT_FALLBACK = "text_fallback"


@dataclass
class NotificationResult:
    success: bool
    skipped: bool = False
    channel: Optional[str] = None
    fallback_used: bool = False
    asset_generated: bool = False
    asset_delivered: bool = False
    asset_url: Optional[str] = None
    verification_code: Optional[str] = None
    recipient_phone: Optional[str] = None
    error: Optional[str] = None
    total_quantity: int = 1

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "skipped": self.skipped,
            "channel": self.channel,
            "fallbackUsed": self.fallback_used,
            "assetGenerated": self.asset_generated,
            "assetDelivered": self.asset_delivered,
            "assetUrl": self.asset_url,
            "verificationCode": self.verification_code,
            "recipientPhone": self.recipient_phone,
            "totalQuantity": self.total_quantity,
            "error": self.error,
        }


def build_caption(target: ServiceRecordView, code: str) -> str:
    lines = [
        f"🎉 Hello {target.purchaser_name}!",
        "",
        f"Your {target.description} has been confirmed!",
        "",
        "📄 Please find your official confirmation document attached.",
        "",
        "📋 *Details:*",
        f"• Reference: {target.reference}",
        f"• Amount: {settings.CURRENCY_SYMBOL} {float(target.amount or 0):,.2f}",
    ]
    if target.item_count > 1:
        lines.append(f"• Quantity: {target.item_count}")
    lines.extend([
        f"• Verification code: {code}",
        "• Status: Confirmed ✅",
        "",
        "📱 Present the QR code on the receipt for verification.",
        "",
        f"🏛️ *{settings.EVENT_NAME}*",
        f'"{settings.EVENT_MOTTO}"',
    ])
    return "\n".join(lines)


def build_fallback_text(caption: str, url: str) -> str:
    return (
        "We're sorry, we could not attach your receipt as a document.\n\n"
        f"{caption}\n\n"
        f"📄 Download your receipt: {url}"
    )


class NotificationDispatcher:
    def __init__(
        self,
        channel=None,
        generator: Callable[[ReceiptRequest], tuple] = generate_receipt,
        publisher: Callable[..., dict] = r2.publish,
        recorder: Optional[DeliveryRecorder] = None,
    ) -> None:
        self.channel = channel or WASenderClient()
        self.generator = generator
        self.publisher = publisher
        self.recorder = recorder or DeliveryRecorder()

    async def dispatch(self, target: ServiceRecordView) -> NotificationResult:
        context = {
            "serviceType": target.service_type.value,
            "reference": target.reference,
            "recordId": target.id,
            "guestId": target.guest_id,
        }
        if not target.confirmed:
            logger.warning("Skipping receipt for unconfirmed %s record %s", target.service_type.value, target.id)
            self.recorder.record("warning", "delivery", "SKIPPED_UNCONFIRMED", "Record is not confirmed", context)
            return NotificationResult(success=False, skipped=True, error="Record is not confirmed")

        started = time.perf_counter()
        try:
            result = await self._deliver(target, context, started)
        except Exception as exc:
            logger.exception("Unexpected receipt dispatch failure for %s", mask_reference(target.reference))
            self.recorder.failure(
                "DISPATCH_CRASHED",
                str(exc),
                {**context, "phone": target.purchaser_phone, "stack": traceback.format_exc()},
            )
            result = NotificationResult(success=False, error=f"Unexpected dispatch failure: {exc}")
        result.total_quantity = target.item_count
        timing_ms("receipt.dispatch.ms", (time.perf_counter() - started) * 1000.0, tags={"service": target.service_type.value})
        incr("receipt.dispatch", tags={"service": target.service_type.value, "success": result.success, "fallback": result.fallback_used})
        return result

    async def _deliver(self, target: ServiceRecordView, context: dict, started: float) -> NotificationResult:
        try:
            phone = normalize_phone(target.purchaser_phone)
        except InvalidPhoneNumber as exc:
            self.recorder.failure("INVALID_PHONE", str(exc), {**context, "phone": target.purchaser_phone}, urgent=False)
            return NotificationResult(success=False, error=str(exc), recipient_phone=target.purchaser_phone)
        context = {**context, "maskedPhone": mask_phone(phone)}

        code = target.verification_code or make_verification_code(
            target.service_type, target.id, target.reference, guest_id=target.guest_id
        )
        result = NotificationResult(success=False, verification_code=code, recipient_phone=phone)

        request = ReceiptRequest(
            recipient_name=target.purchaser_name,
            recipient_phone=phone,
            recipient_email=target.purchaser_email,
            service_type=target.service_type,
            amount=target.amount,
            reference=target.reference,
            description=target.description,
            verification_code=code,
            additional_info=target.additional_info,
            item_count=target.item_count,
        )
        try:
            data, content_type = await run_in_threadpool(self.generator, request)
        except Exception as exc:
            self.recorder.failure("GENERATION_FAILED", str(exc), {**context, "stack": traceback.format_exc()})
            result.error = f"Receipt generation failed: {exc}"
            return result
        result.asset_generated = True

        filename = receipt_filename(target.service_type, code)
        try:
            published = await run_in_threadpool(self.publisher, data, filename, content_type)
        except Exception as exc:
            self.recorder.failure("PUBLISH_FAILED", str(exc), {**context, "stack": traceback.format_exc()})
            result.error = f"Receipt upload failed: {exc}"
            return result
        result.asset_url = url = published["url"]

        caption = build_caption(target, code)
        sent = await self.channel.send_document(phone, caption, url, filename)
        if sent.success:
            result.success = True
            result.channel = CHANNEL_DOCUMENT
            result.asset_delivered = True
            self.recorder.success(context, (time.perf_counter() - started) * 1000.0)
            return result

        logger.warning("Document send to %s failed (%s); falling back to text", mask_phone(phone), sent.error)
        fallback = await self.channel.send_text(phone, build_fallback_text(caption, url))
        if fallback.success:
            result.success = True
            result.channel = CHANNEL_TEXT_FALLBACK
            result.fallback_used = True
            self.recorder.success({**context, "documentError": sent.error}, (time.perf_counter() - started) * 1000.0, fallback_used=True)
            return result

        result.error = "Both document and text message failed"
        self.recorder.failure(
            "DELIVERY_FAILED",
            result.error,
            {**context, "documentError": sent.error, "textError": fallback.error, "assetUrl": url},
            category=categorize_error(fallback.error or sent.error),
        )
        return result
