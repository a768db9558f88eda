"""Find which service line owns an inbound payment reference and confirm it.

The gateway echoes back the reference we generated at checkout, sometimes
truncated, so every store is probed with a prefix match in a fixed order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..crud.crud_records import RECORD_STORES, RecordStore, ServiceRecordView
from ..models.types import ServiceType
from ..utils.errors import InvalidReference
from ..utils.metrics import incr
from ..utils.phone import mask_reference

logger = logging.getLogger(__name__)

# Dinner first: it has the widest fan-out and its prefix is the longest.
PROBE_ORDER: Tuple[ServiceType, ...] = (
    ServiceType.DINNER,
    ServiceType.ACCOMMODATION,
    ServiceType.BROCHURE,
    ServiceType.GOODWILL,
    ServiceType.DONATION,
    ServiceType.CONVENTION,
)


@dataclass
class Resolution:
    service_type: ServiceType
    store: RecordStore
    records: List = field(default_factory=list)
    # Ids flipped from unconfirmed to confirmed by this call; empty on a redelivery
    confirmed_ids: List[int] = field(default_factory=list)

    @property
    def newly_confirmed(self) -> int:
        return len(self.confirmed_ids)

    @property
    def record(self):
        return self.records[0] if self.records else None

    def views(self) -> List[ServiceRecordView]:
        return [self.store.view(r) for r in self.records]


def clean_reference(raw_reference) -> str:
    reference = str(raw_reference or "").strip()
    if not reference:
        raise InvalidReference("Payment reference is required")
    return reference


def resolve(db: Session, raw_reference: str, confirm: bool = True) -> Optional[Resolution]:
    """Return the owning service type and its (now confirmed) record(s).

    Bulk-capable stores confirm every record sharing the prefix; others
    confirm only the matched record. ``confirm=False`` performs the same
    lookup without writing, for receipt resends. Returns None when no store
    matches.
    """
    reference = clean_reference(raw_reference)
    for service_type in PROBE_ORDER:
        store = RECORD_STORES[service_type]
        match = store.find_by_reference_prefix(db, reference)
        if match is None:
            continue

        if not confirm:
            records = store.find_many_by_reference_prefix(db, reference) if store.supports_bulk else [match]
            return Resolution(service_type=service_type, store=store, records=records)

        if store.supports_bulk:
            result = store.confirm_many_by_reference_prefix(db, reference)
        else:
            result = store.confirm_by_reference(db, match.payment_reference)
        logger.info(
            "Resolved reference %s to %s: %d record(s), %d newly confirmed",
            mask_reference(reference),
            service_type.value,
            len(result.records),
            result.modified_count,
        )
        incr("reference.resolved", tags={"service": service_type.value})
        return Resolution(
            service_type=service_type,
            store=store,
            records=result.records,
            confirmed_ids=result.confirmed_ids,
        )

    logger.warning("No record matches payment reference %s", mask_reference(reference))
    incr("reference.not_found")
    return None
