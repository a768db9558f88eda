from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session
import hashlib
import hmac
import json
import logging

from .dependencies import get_db, get_dispatcher
from ..core.config import settings
from ..services.notification_dispatcher import NotificationDispatcher
from ..services.reconciliation import process_webhook
from ..utils.metrics import Timer, incr as metrics_incr

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])
# Older checkout deployments still point the gateway at /api/webhook/paystack
legacy_router = APIRouter(tags=["payments"])


def _signature_ok(raw: bytes, signature: str | None) -> bool:
    expected = hmac.new(
        key=settings.PAYSTACK_SECRET_KEY.encode("utf-8"),
        msg=raw,
        digestmod=hashlib.sha512,
    ).hexdigest()
    return bool(signature) and hmac.compare_digest(signature, expected)


@router.post("/paystack/webhook")
async def paystack_webhook(
    request: Request,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    x_paystack_signature: str | None = Header(default=None),
):
    """Handle Paystack "payment succeeded" callbacks.

    - Confirms the record(s) owning the (possibly truncated) reference.
    - Sends one receipt per purchaser, or per seat for dinner reservations.
    - Business outcomes (not found, delivery failed, duplicate) are 200 with
      ``success`` in the body so the gateway does not retry them; only
      unparseable bodies and unexpected errors return 500.
    """
    raw = await request.body()
    metrics_incr("webhook.received")

    if settings.PAYSTACK_VERIFY_SIGNATURE and settings.PAYSTACK_SECRET_KEY:
        if not _signature_ok(raw, x_paystack_signature):
            logger.warning("Paystack webhook signature mismatch")
            metrics_incr("webhook.signature_mismatch")
            return ORJSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"message": "Invalid signature", "success": False},
            )

    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.error("Malformed webhook body: %s", exc)
        metrics_incr("webhook.malformed")
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Malformed webhook body", "success": False},
        )
    if not isinstance(payload, dict):
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Webhook body must be a JSON object", "success": False},
        )

    try:
        with Timer("webhook.process.ms"):
            body = await process_webhook(db, payload, dispatcher)
    except Exception as exc:
        logger.exception("Webhook processing failed: %s", exc)
        metrics_incr("webhook.error")
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Webhook processing failed", "success": False},
        )
    return body


legacy_router.add_api_route(
    "/api/webhook/paystack",
    paystack_webhook,
    methods=["POST"],
    include_in_schema=False,
)
