from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock

from dotenv import load_dotenv
import pytest

# Load environment variables for tests before any regpay module reads them
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from regpay import models  # noqa: E402
from regpay.models.base import BaseModel  # noqa: E402
from regpay.services.delivery_recorder import DeliveryRecorder  # noqa: E402
from regpay.services.notification_dispatcher import NotificationDispatcher  # noqa: E402
from regpay.utils.wasender import ChannelResult  # noqa: E402


@pytest.fixture(autouse=True)
def patch_alert_worker(monkeypatch):
    """Keep urgent-alert emails off the network for every test."""
    mock = Mock(return_value="job-1")
    monkeypatch.setattr("regpay.utils.background_worker.enqueue", mock)
    return mock


@pytest.fixture
def Session():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    BaseModel.metadata.create_all(engine)
    return sessionmaker(bind=engine)


@pytest.fixture
def db(Session):
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def recorder(Session):
    @contextmanager
    def session_scope():
        session = Session()
        try:
            yield session
        finally:
            session.close()

    return DeliveryRecorder(session_factory=session_scope, alert_email="ops@gosa.test")


class FakeChannel:
    """Stands in for WASenderClient; records every send."""

    def __init__(self, document_ok=True, text_ok=True):
        self.document_ok = document_ok
        self.text_ok = text_ok
        self.documents = []
        self.texts = []

    async def send_document(self, to, text, document_url, file_name):
        self.documents.append({"to": to, "text": text, "documentUrl": document_url, "fileName": file_name})
        if self.document_ok:
            return ChannelResult(success=True, message="sent", data={"msgId": len(self.documents)})
        return ChannelResult(success=False, error="Rate limit exceeded - Please try again later")

    async def send_text(self, to, text):
        self.texts.append({"to": to, "text": text})
        if self.text_ok:
            return ChannelResult(success=True, message="sent")
        return ChannelResult(success=False, error="Network error - Unable to connect to WASender API")


class FakeReceipts:
    """Receipt generator + publisher pair that never touches ReportLab or R2."""

    def __init__(self):
        self.generated = []
        self.published = []
        self.fail_generation = False
        self.fail_publish = False

    def generate(self, request):
        if self.fail_generation:
            raise RuntimeError("renderer exploded")
        self.generated.append(request)
        return b"%PDF-1.4 fake", "application/pdf"

    def publish(self, data, suggested_name, content_type="application/pdf"):
        if self.fail_publish:
            raise RuntimeError("bucket unavailable")
        self.published.append(suggested_name)
        return {"url": f"https://receipts.gosa.test/{suggested_name}", "key": suggested_name}


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def receipts():
    return FakeReceipts()


@pytest.fixture
def dispatcher(channel, receipts, recorder):
    return NotificationDispatcher(
        channel=channel,
        generator=receipts.generate,
        publisher=receipts.publish,
        recorder=recorder,
    )


class Seeder:
    def __init__(self, db):
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def user(self, full_name="Ada Obi", phone_number="08030000000", email="ada@example.com"):
        return self._save(models.User(full_name=full_name, phone_number=phone_number, email=email))

    def convention(self, reference, user=None, amount=20000, confirmed=False, **kw):
        return self._save(models.ConventionRegistration(
            payment_reference=reference,
            user_id=user.id if user else None,
            amount=Decimal(amount),
            confirmed=confirmed,
            **kw,
        ))

    def dinner(self, reference, guests, user=None, total_amount=75000, confirmed=False):
        reservation = models.DinnerReservation(
            payment_reference=reference,
            user_id=user.id if user else None,
            number_of_guests=len(guests),
            total_amount=Decimal(total_amount),
            confirmed=confirmed,
        )
        for guest in guests:
            reservation.guests.append(models.DinnerGuest(**guest))
        return self._save(reservation)

    def brochure(self, reference, user=None, quantity=1, brochure_type="digital", total_amount=5000, confirmed=False):
        return self._save(models.BrochureOrder(
            payment_reference=reference,
            user_id=user.id if user else None,
            quantity=quantity,
            brochure_type=brochure_type,
            total_amount=Decimal(total_amount),
            confirmed=confirmed,
        ))

    def accommodation(self, reference, user=None, confirmed=False):
        return self._save(models.Accommodation(
            payment_reference=reference,
            user_id=user.id if user else None,
            accommodation_type="premium",
            check_in_date=date(2025, 12, 18),
            check_out_date=date(2025, 12, 21),
            number_of_guests=2,
            total_amount=Decimal(150000),
            confirmation_code="ACC-7781",
            confirmed=confirmed,
        ))

    def goodwill(self, reference, user=None, confirmed=False):
        return self._save(models.GoodwillMessage(
            payment_reference=reference,
            user_id=user.id if user else None,
            message="Congratulations to the class of 2005!",
            donation_amount=Decimal(10000),
            attribution_name="Class of 2005",
            confirmed=confirmed,
        ))

    def donation(self, reference, user=None, confirmed=False, **kw):
        return self._save(models.Donation(
            payment_reference=reference,
            user_id=user.id if user else None,
            amount=Decimal(50000),
            receipt_number="DON-0001",
            confirmed=confirmed,
            **kw,
        ))


@pytest.fixture
def seed(db):
    return Seeder(db)
