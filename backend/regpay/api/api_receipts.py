from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
import logging

from .dependencies import get_db, get_dispatcher, require_admin_token
from ..crud import crud_delivery_log
from ..schemas import DeliveryLogRead, DeliverySummary, ReceiptResendRequest
from ..services.notification_dispatcher import NotificationDispatcher
from ..services.reconciliation import notify
from ..services.reference_resolver import resolve
from ..utils.errors import InvalidReference, error_response
from ..utils.phone import mask_reference

logger = logging.getLogger(__name__)

router = APIRouter(tags=["receipts"], dependencies=[Depends(require_admin_token)])


@router.post("/receipts/resend")
async def resend_receipt(
    payload: ReceiptResendRequest,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Re-run receipt delivery for a reference without touching confirmation.

    Unconfirmed records come back as skipped.
    """
    try:
        resolution = resolve(db, payload.reference, confirm=False)
    except InvalidReference:
        raise error_response("Payment reference is required", {"reference": "required"})
    if resolution is None:
        raise error_response(
            "No record found for payment reference",
            {"reference": "not_found"},
            status.HTTP_404_NOT_FOUND,
        )
    logger.info("Manual receipt resend for %s (%s)", mask_reference(payload.reference), resolution.service_type.value)
    return await notify(resolution, dispatcher, payload.reference.strip())


@router.get("/deliveries/summary", response_model=DeliverySummary)
def delivery_summary(
    service_type: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    counts = crud_delivery_log.count_by_code(db, service_type)
    urgent = crud_delivery_log.recent_urgent(db, limit)
    return DeliverySummary(
        counts=counts,
        total=sum(counts.values()),
        recent_urgent=[DeliveryLogRead.model_validate(e) for e in urgent],
    )
