"""Record store adapters, one per service type.

Each store exposes the same four operations over its table (prefix lookup,
bulk prefix lookup, single confirm, bulk confirm) and normalizes its ORM rows
into ``ServiceRecordView`` so downstream code never has to know which column
holds the amount or where the purchaser's phone lives.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
import logging
from typing import ClassVar, Dict, List, Optional

from sqlalchemy.orm import Session

from .. import models
from ..core.config import settings
from ..models.types import ServiceType
from ..utils.verification import make_verification_code

logger = logging.getLogger(__name__)


@dataclass
class ServiceRecordView:
    """Canonical, read-only shape of a record (or one dinner seat)."""

    id: int
    service_type: ServiceType
    reference: str
    confirmed: bool
    amount: Decimal
    purchaser_name: str
    purchaser_email: Optional[str]
    purchaser_phone: Optional[str]
    description: str
    additional_info: str = ""
    item_count: int = 1
    verification_code: Optional[str] = None
    guest_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "guestId": self.guest_id,
            "serviceType": self.service_type.value,
            "reference": self.reference,
            "confirmed": self.confirmed,
            "amount": float(self.amount or 0),
            "name": self.purchaser_name,
            "email": self.purchaser_email,
            "description": self.description,
            "itemCount": self.item_count,
            "verificationCode": self.verification_code,
        }


@dataclass
class ConfirmResult:
    records: List = field(default_factory=list)
    # Ids flipped from unconfirmed to confirmed by this call
    confirmed_ids: List[int] = field(default_factory=list)

    @property
    def modified_count(self) -> int:
        return len(self.confirmed_ids)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _money(value) -> str:
    return f"{settings.CURRENCY_SYMBOL} {float(value or 0):,.2f}"


def _title(value) -> str:
    raw = getattr(value, "value", value) or ""
    return str(raw).capitalize()


class RecordStore:
    """Generic adapter; subclasses pin the model and the view mapping."""

    service_type: ClassVar[ServiceType]
    model: ClassVar[type]
    supports_bulk: ClassVar[bool] = False
    label: ClassVar[str] = ""

    @property
    def description(self) -> str:
        return f"{settings.EVENT_NAME} {self.label}"

    def _prefix_filter(self, prefix: str):
        # Gateway references may be truncated and arrive in any case.
        return self.model.payment_reference.ilike(f"{_escape_like(prefix)}%", escape="\\")

    def find_by_reference_prefix(self, db: Session, prefix: str):
        return (
            db.query(self.model)
            .filter(self._prefix_filter(prefix))
            .order_by(self.model.id)
            .first()
        )

    def find_many_by_reference_prefix(self, db: Session, prefix: str) -> list:
        return (
            db.query(self.model)
            .filter(self._prefix_filter(prefix))
            .order_by(self.model.id)
            .all()
        )

    def _flip_unconfirmed(self, db: Session, criterion) -> List[int]:
        """Confirm each unconfirmed row matching ``criterion``; return the ids this call flipped.

        Every row is flipped by its own conditional update, so two concurrent
        deliveries never both claim the same record.
        """
        candidates = [
            row_id
            for (row_id,) in db.query(self.model.id)
            .filter(criterion, self.model.confirmed.is_(False))
            .order_by(self.model.id)
        ]
        now = datetime.utcnow()
        flipped = []
        for row_id in candidates:
            modified = (
                db.query(self.model)
                .filter(self.model.id == row_id, self.model.confirmed.is_(False))
                .update({"confirmed": True, "confirmed_at": now}, synchronize_session=False)
            )
            if modified:
                flipped.append(row_id)
        db.commit()
        return flipped

    def confirm_by_reference(self, db: Session, reference: str) -> ConfirmResult:
        """Mark the record with exactly ``reference`` as paid.

        Only unconfirmed rows are touched, so a repeated call is a no-op that
        still returns the record with ``modified_count == 0``.
        """
        flipped = self._flip_unconfirmed(db, self.model.payment_reference == reference)
        records = db.query(self.model).filter(self.model.payment_reference == reference).all()
        self._ensure_codes(db, records)
        return ConfirmResult(records=records, confirmed_ids=flipped)

    def confirm_many_by_reference_prefix(self, db: Session, prefix: str) -> ConfirmResult:
        flipped = self._flip_unconfirmed(db, self._prefix_filter(prefix))
        records = self.find_many_by_reference_prefix(db, prefix)
        self._ensure_codes(db, records)
        return ConfirmResult(records=records, confirmed_ids=flipped)

    def _ensure_codes(self, db: Session, records: list) -> None:
        """Give confirmed records a check-in code; existing codes are kept."""
        changed = False
        for record in records:
            if record.confirmed and not record.verification_code:
                record.verification_code = make_verification_code(
                    self.service_type, record.id, record.payment_reference
                )
                changed = True
        if changed:
            db.commit()

    # ─── Views ───────────────────────────────────────────────────────────────
    def _purchaser(self, record) -> tuple[str, Optional[str], Optional[str]]:
        user = getattr(record, "user", None)
        if user is None:
            return "Guest", None, None
        return user.full_name, user.email, user.phone_number

    def amount_of(self, record) -> Decimal:
        return Decimal(record.total_amount or 0)

    def additional_info(self, record) -> str:
        return ""

    def item_count(self, record) -> int:
        return 1

    def view(self, record) -> ServiceRecordView:
        name, email, phone = self._purchaser(record)
        return ServiceRecordView(
            id=record.id,
            service_type=self.service_type,
            reference=record.payment_reference,
            confirmed=bool(record.confirmed),
            amount=self.amount_of(record),
            purchaser_name=name,
            purchaser_email=email,
            purchaser_phone=phone,
            description=self.description,
            additional_info=self.additional_info(record),
            item_count=self.item_count(record),
            verification_code=record.verification_code,
        )


class ConventionStore(RecordStore):
    service_type = ServiceType.CONVENTION
    model = models.ConventionRegistration
    supports_bulk = True
    label = "Registration"

    def amount_of(self, record) -> Decimal:
        return Decimal(record.amount or 0)

    def item_count(self, record) -> int:
        return int(record.quantity or 1)

    def additional_info(self, record) -> str:
        info = [f"Amount: {_money(record.amount)}"]
        persons = [p.get("fullName") or p.get("name") for p in (record.persons or []) if isinstance(p, dict)]
        persons = [p for p in persons if p]
        if persons:
            info.append(f"Attendees: {', '.join(persons)}")
        return " | ".join(info)


class DinnerStore(RecordStore):
    service_type = ServiceType.DINNER
    model = models.DinnerReservation
    supports_bulk = True
    label = "Dinner Reservation"

    def item_count(self, record) -> int:
        return int(record.number_of_guests or len(record.guests) or 1)

    def additional_info(self, record) -> str:
        info = [f"Guests: {self.item_count(record)}", f"Total Amount: {_money(record.total_amount)}"]
        names = ", ".join(g.name for g in record.guests if g.name)
        if names:
            info.append(f"Guest Names: {names}")
        if record.special_requests:
            info.append(f"Special Requests: {record.special_requests}")
        return " | ".join(info)

    def _ensure_codes(self, db: Session, records: list) -> None:
        super()._ensure_codes(db, records)
        changed = False
        for record in records:
            if not record.confirmed:
                continue
            for guest in record.guests:
                if not guest.verification_code:
                    guest.verification_code = make_verification_code(
                        self.service_type, record.id, record.payment_reference, guest_id=guest.id
                    )
                    changed = True
        if changed:
            db.commit()

    def guest_views(self, record) -> List[ServiceRecordView]:
        """One view per seat; a reservation without guest rows is its own seat."""
        guests = list(record.guests)
        if not guests:
            return [self.view(record)]
        name, email, _phone = self._purchaser(record)
        views = []
        for seat, guest in enumerate(guests, start=1):
            info = [f"Seat {seat} of {len(guests)}", f"Reserved by: {name}"]
            if guest.dietary_requirements:
                info.append(f"Dietary: {guest.dietary_requirements}")
            if record.special_requests:
                info.append(f"Special Requests: {record.special_requests}")
            views.append(
                ServiceRecordView(
                    id=record.id,
                    guest_id=guest.id,
                    service_type=self.service_type,
                    reference=record.payment_reference,
                    confirmed=bool(record.confirmed),
                    amount=self.amount_of(record),
                    purchaser_name=guest.name or name,
                    purchaser_email=guest.email or email,
                    # None when the seat has no phone; the aggregator fills in the buyer's
                    purchaser_phone=guest.phone or None,
                    description=self.description,
                    additional_info=" | ".join(info),
                    item_count=1,
                    verification_code=guest.verification_code,
                )
            )
        return views


class AccommodationStore(RecordStore):
    service_type = ServiceType.ACCOMMODATION
    model = models.Accommodation
    label = "Accommodation Booking"

    def item_count(self, record) -> int:
        return int(record.number_of_guests or 1)

    def additional_info(self, record) -> str:
        info = [f"Type: {_title(record.accommodation_type)}"]
        if record.check_in_date:
            info.append(f"Check-in: {record.check_in_date:%Y-%m-%d}")
        if record.check_out_date:
            info.append(f"Check-out: {record.check_out_date:%Y-%m-%d}")
        info.append(f"Guests: {record.number_of_guests}")
        if record.confirmation_code:
            info.append(f"Confirmation Code: {record.confirmation_code}")
        if record.special_requests:
            info.append(f"Special Requests: {record.special_requests}")
        return " | ".join(info)


class BrochureStore(RecordStore):
    service_type = ServiceType.BROCHURE
    model = models.BrochureOrder
    label = "Brochure Order"

    def item_count(self, record) -> int:
        return int(record.quantity or 1)

    def additional_info(self, record) -> str:
        info = [
            f"Type: {_title(record.brochure_type)}",
            f"Quantity: {record.quantity}",
            f"Total Amount: {_money(record.total_amount)}",
        ]
        names = [r.get("name") for r in (record.recipient_details or []) if isinstance(r, dict) and r.get("name")]
        if names:
            info.append(f"Recipients: {', '.join(names)}")
        return " | ".join(info)


class GoodwillStore(RecordStore):
    service_type = ServiceType.GOODWILL
    model = models.GoodwillMessage
    label = "Goodwill Message & Donation"

    def amount_of(self, record) -> Decimal:
        return Decimal(record.donation_amount or 0)

    def additional_info(self, record) -> str:
        info = [
            f"Donation: {_money(record.donation_amount)}",
            f"Status: {'Approved' if record.approved else 'Pending Approval'}",
            f"Anonymous: {'Yes' if record.anonymous else 'No'}",
        ]
        if record.attribution_name and not record.anonymous:
            info.append(f"Attribution: {record.attribution_name}")
        if record.message:
            text = record.message if len(record.message) <= 100 else record.message[:100] + "..."
            info.append(f'Message: "{text}"')
        return " | ".join(info)


class DonationStore(RecordStore):
    service_type = ServiceType.DONATION
    model = models.Donation
    label = "Donation"

    def amount_of(self, record) -> Decimal:
        return Decimal(record.amount or 0)

    def _purchaser(self, record):
        name, email, phone = super()._purchaser(record)
        if record.user is None:
            name = record.donor_name or name
        return name, email or record.donor_email, phone or record.donor_phone

    def additional_info(self, record) -> str:
        info = [f"Amount: {_money(record.amount)}"]
        if record.receipt_number:
            info.append(f"Receipt: {record.receipt_number}")
        info.append(f"Anonymous: {'Yes' if record.anonymous else 'No'}")
        if record.on_behalf_of:
            info.append(f"On Behalf Of: {record.on_behalf_of}")
        if record.donor_name and not record.anonymous:
            info.append(f"Donor: {record.donor_name}")
        return " | ".join(info)


RECORD_STORES: Dict[ServiceType, RecordStore] = {
    store.service_type: store
    for store in (
        ConventionStore(),
        DinnerStore(),
        AccommodationStore(),
        BrochureStore(),
        GoodwillStore(),
        DonationStore(),
    )
}


def get_store(service_type: ServiceType) -> RecordStore:
    return RECORD_STORES[ServiceType(service_type)]
