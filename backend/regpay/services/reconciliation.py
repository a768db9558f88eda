"""Turn a gateway "payment succeeded" callback into confirmations and receipts.

received -> resolving -> (not_found | resolved) -> grouping -> dispatching -> responded

Business outcomes are always reported in the returned body; only genuinely
unexpected exceptions escape to the HTTP layer.
"""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from ..core.config import settings
from ..crud.crud_records import ServiceRecordView
from ..models.types import ServiceType
from ..utils.errors import InvalidReference
from ..utils.metrics import incr
from ..utils.phone import mask_reference
from .notification_dispatcher import NotificationDispatcher, NotificationResult
from .purchaser_aggregator import group, group_template, guest_targets, purchaser_phone
from .reference_resolver import Resolution, clean_reference, resolve

logger = logging.getLogger(__name__)

SUCCESS_EVENT = "charge.success"


async def _safe_dispatch(dispatcher: NotificationDispatcher, target: ServiceRecordView) -> NotificationResult:
    # dispatch() is not supposed to raise; a misbehaving one still must not sink the batch
    try:
        return await dispatcher.dispatch(target)
    except Exception as exc:
        logger.exception("Dispatcher raised for %s record %s", target.service_type.value, target.id)
        return NotificationResult(success=False, error=str(exc), recipient_phone=target.purchaser_phone)


async def notify(
    resolution: Resolution,
    dispatcher: NotificationDispatcher,
    reference: str,
    only_ids: Optional[Set[int]] = None,
) -> dict:
    """Send receipts for a resolved reference and summarize the outcomes.

    With ``only_ids`` set, bulk services notify only the purchaser groups (or
    dinner seats) owning one of those records; the rest were receipted by an
    earlier delivery of the same reference.
    """
    service_type = resolution.service_type
    body = {"serviceType": service_type.value, "reference": reference, "success": True}

    if service_type == ServiceType.CONVENTION:
        groups = group(resolution.views())
        pending = [
            g for g in groups if only_ids is None or any(r.id in only_ids for r in g.records)
        ]
        details: List[dict] = []
        # Sequential on purpose: keeps the channel under its rate limit
        for purchaser_group in pending:
            result = await _safe_dispatch(dispatcher, group_template(purchaser_group))
            details.append({"recordCount": purchaser_group.total_quantity, **result.to_dict()})
        successful = sum(1 for d in details if d["success"])
        body.update(
            message=f"Convention registration confirmed; receipts sent to {successful}/{len(pending)} purchasers",
            details=details,
            summary={
                "totalRegistrations": len(resolution.records),
                "uniquePhones": len(groups),
                "successfulPhones": successful,
                "alreadyNotifiedPhones": len(groups) - len(pending),
            },
        )
        return body

    if service_type == ServiceType.DINNER:
        targets = guest_targets(resolution.store, resolution.records)
        pending = [t for t in targets if only_ids is None or t.id in only_ids]
        details = []
        for target in pending:
            result = await _safe_dispatch(dispatcher, target)
            details.append({"guestId": target.guest_id, "guestName": target.purchaser_name, **result.to_dict()})
        successful = sum(1 for d in details if d["success"])
        body.update(
            message=f"Dinner reservation confirmed; {successful}/{len(pending)} guest tickets sent",
            details=details,
            summary={
                "totalGuests": len(targets),
                "successfulGuests": successful,
                "alreadyNotifiedGuests": len(targets) - len(pending),
            },
        )
        return body

    view = resolution.store.view(resolution.record)
    view = replace(view, purchaser_phone=purchaser_phone(view))
    result = await _safe_dispatch(dispatcher, view)
    body.update(
        message="Payment confirmed and receipt sent" if result.success else "Payment confirmed; receipt delivery failed",
        record=view.to_dict(),
        notification=result.to_dict(),
    )
    return body


async def process_webhook(db: Session, payload: dict, dispatcher: NotificationDispatcher) -> dict:
    data = payload.get("data") if isinstance(payload, dict) else None
    data = data if isinstance(data, dict) else {}

    event = str(payload.get("event") or "").lower() if isinstance(payload, dict) else ""
    status_str = str(data.get("status") or "").lower()
    if (event and event != SUCCESS_EVENT) or (status_str and status_str != "success"):
        logger.info("Ignoring gateway event=%s status=%s", event or "-", status_str or "-")
        incr("webhook.ignored", tags={"event": event or "none"})
        return {"message": "Event ignored", "success": False, "reference": data.get("reference")}

    try:
        reference = clean_reference(data.get("reference"))
    except InvalidReference:
        logger.warning("Webhook without payment reference")
        incr("webhook.missing_reference")
        return {"message": "Failed! No payment reference", "success": False}

    resolution = resolve(db, reference)
    if resolution is None:
        return {
            "message": f"No record found for payment reference {reference}",
            "success": False,
            "reference": reference,
        }

    if resolution.newly_confirmed == 0 and not settings.RESEND_ON_DUPLICATE_WEBHOOK:
        # Another delivery of this webhook already flipped the record(s) and notified
        logger.info("Duplicate webhook for %s (%s); receipts not re-sent", mask_reference(reference), resolution.service_type.value)
        incr("webhook.duplicate", tags={"service": resolution.service_type.value})
        return {
            "message": "Payment already confirmed",
            "success": True,
            "duplicate": True,
            "serviceType": resolution.service_type.value,
            "reference": reference,
        }

    only_ids = None if settings.RESEND_ON_DUPLICATE_WEBHOOK else set(resolution.confirmed_ids)
    return await notify(resolution, dispatcher, reference, only_ids)
