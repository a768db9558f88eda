"""Collapse bulk purchases into one notification per paying phone number."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
import logging
from typing import Dict, Iterable, List, Optional

from ..crud.crud_records import DinnerStore, ServiceRecordView
from ..utils.errors import InvalidPhoneNumber
from ..utils.phone import digits_only, is_valid_phone, mask_phone, mask_reference, normalize_phone

logger = logging.getLogger(__name__)


@dataclass
class PurchaserGroup:
    key: str
    phone: str
    records: List[ServiceRecordView] = field(default_factory=list)

    @property
    def template(self) -> ServiceRecordView:
        return self.records[0]

    @property
    def total_quantity(self) -> int:
        return len(self.records)

    @property
    def total_amount(self) -> Decimal:
        return sum((r.amount or Decimal(0) for r in self.records), Decimal(0))


def phone_from_reference(reference: str) -> Optional[str]:
    """Return the phone suffix of ``<PREFIX>_<epochMillis>_<phone>``, if any.

    Segments are scanned right to left and the first one that parses as a
    phone number wins, so the timestamp is never mistaken for one.
    """
    segments = [s for s in str(reference or "").split("_") if s]
    for segment in reversed(segments[1:]):
        if is_valid_phone(segment):
            return segment
    return None


def purchaser_phone(record: ServiceRecordView) -> Optional[str]:
    """Reference suffix first, then the purchaser's profile phone."""
    return phone_from_reference(record.reference) or record.purchaser_phone or None


def _group_key(phone: Optional[str]) -> Optional[str]:
    if not phone:
        return None
    try:
        return normalize_phone(phone)
    except InvalidPhoneNumber:
        # Still group on the raw digits; the dispatcher reports the bad number.
        return digits_only(phone) or None


def group(records: Iterable[ServiceRecordView]) -> List[PurchaserGroup]:
    """Group records by purchaser phone, preserving first-seen order.

    Records with no resolvable phone are dropped with a warning.
    """
    groups: Dict[str, PurchaserGroup] = {}
    for record in records:
        phone = purchaser_phone(record)
        key = _group_key(phone)
        if key is None:
            logger.warning(
                "Dropping %s record %s (%s): no purchaser phone",
                record.service_type.value,
                record.id,
                mask_reference(record.reference),
            )
            continue
        if key not in groups:
            groups[key] = PurchaserGroup(key=key, phone=phone)
        groups[key].records.append(record)
    for g in groups.values():
        logger.debug("Purchaser group %s holds %d record(s)", mask_phone(g.key), g.total_quantity)
    return list(groups.values())


def group_template(purchaser_group: PurchaserGroup) -> ServiceRecordView:
    """The first record of a group, stamped with the group's totals."""
    template = purchaser_group.template
    return ServiceRecordView(
        id=template.id,
        service_type=template.service_type,
        reference=template.reference,
        confirmed=all(r.confirmed for r in purchaser_group.records),
        amount=purchaser_group.total_amount,
        purchaser_name=template.purchaser_name,
        purchaser_email=template.purchaser_email,
        purchaser_phone=purchaser_group.phone,
        description=template.description,
        additional_info=f"Registrations: {purchaser_group.total_quantity} | {template.additional_info}".rstrip(" |"),
        item_count=purchaser_group.total_quantity,
        verification_code=template.verification_code,
        guest_id=template.guest_id,
    )


def guest_targets(store: DinnerStore, reservations: Iterable) -> List[ServiceRecordView]:
    """Bypass grouping: one receipt per dinner seat.

    Seats without their own phone go to the buyer's phone.
    """
    targets: List[ServiceRecordView] = []
    for reservation in reservations:
        buyer_phone = purchaser_phone(store.view(reservation))
        for seat in store.guest_views(reservation):
            own = seat.purchaser_phone if seat.guest_id is not None else None
            targets.append(replace(seat, purchaser_phone=own or buyer_phone))
    return targets
