import hashlib
import hmac
import json

from fastapi.testclient import TestClient
import pytest

from regpay import models
from regpay.api.dependencies import get_db, get_dispatcher
from regpay.core.config import settings
from regpay.main import app

WEBHOOK = "/api/v1/payments/paystack/webhook"


@pytest.fixture
def client(Session, dispatcher):
    def override_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


def _charge(reference, event="charge.success", status="success"):
    return {"event": event, "data": {"reference": reference, "status": status, "amount": 500000}}


def test_brochure_payment_confirms_and_sends_receipt(client, seed, db, channel):
    buyer = seed.user(phone_number="08030000000")
    order = seed.brochure("BROCH_123_08011112222", user=buyer, quantity=5, brochure_type="physical")

    res = client.post(WEBHOOK, json={"data": {"reference": "BROCH_123"}})

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["serviceType"] == "brochure"
    assert body["notification"]["success"] is True
    assert body["notification"]["channel"] == "document"
    assert body["notification"]["totalQuantity"] == 5
    # the phone embedded in the reference wins over the profile phone
    assert [d["to"] for d in channel.documents] == ["+2348011112222"]

    db.expire_all()
    stored = db.get(models.BrochureOrder, order.id)
    assert stored.confirmed is True
    assert stored.confirmed_at is not None
    assert stored.verification_code == body["notification"]["verificationCode"]


def test_missing_reference(client, channel):
    res = client.post(WEBHOOK, json={"event": "charge.success", "data": {"status": "success"}})

    assert res.status_code == 200
    assert res.json() == {"message": "Failed! No payment reference", "success": False}
    assert channel.documents == []


def test_unknown_reference(client, seed, channel):
    seed.donation("DON_1700000000000_08012345678")

    res = client.post(WEBHOOK, json=_charge("NOPE_999"))

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is False
    assert body["reference"] == "NOPE_999"
    assert "NOPE_999" in body["message"]
    assert channel.documents == []


def test_malformed_body_is_a_server_error(client):
    res = client.post(WEBHOOK, content=b"{not json", headers={"Content-Type": "application/json"})

    assert res.status_code == 500
    assert res.json()["success"] is False


def test_non_object_body_is_a_server_error(client):
    res = client.post(WEBHOOK, json=["charge.success"])

    assert res.status_code == 500


def test_other_events_are_ignored(client, seed, db, channel):
    order = seed.brochure("BROCH_555_08011112222")

    res = client.post(WEBHOOK, json=_charge("BROCH_555", event="transfer.success"))

    assert res.status_code == 200
    assert res.json()["message"] == "Event ignored"
    db.expire_all()
    assert db.get(models.BrochureOrder, order.id).confirmed is False
    assert channel.documents == []


def test_redelivered_webhook_does_not_resend(client, seed, channel):
    seed.goodwill("GOOD_1700000000000_08012345678")

    first = client.post(WEBHOOK, json=_charge("GOOD_1700000000000"))
    second = client.post(WEBHOOK, json=_charge("GOOD_1700000000000"))

    assert first.json()["success"] is True
    assert second.status_code == 200
    assert second.json()["duplicate"] is True
    assert second.json()["success"] is True
    assert len(channel.documents) == 1


def test_redelivered_webhook_resends_when_enabled(client, seed, channel, monkeypatch):
    monkeypatch.setattr(settings, "RESEND_ON_DUPLICATE_WEBHOOK", True)
    seed.goodwill("GOOD_1700000000000_08012345678")

    client.post(WEBHOOK, json=_charge("GOOD_1700000000000"))
    second = client.post(WEBHOOK, json=_charge("GOOD_1700000000000"))

    assert "duplicate" not in second.json()
    assert len(channel.documents) == 2


def test_convention_receipts_grouped_per_phone(client, seed, db, channel):
    phones = ("08011111111", "08011111111", "08011111111", "08022222222")
    for i, phone in enumerate(phones):
        seed.convention(f"CONV_1700000000000_{phone}_{i}", persons=[{"fullName": "Attendee"}])

    res = client.post(WEBHOOK, json=_charge("CONV_1700000000000"))

    body = res.json()
    assert body["success"] is True
    assert body["summary"] == {
        "totalRegistrations": 4,
        "uniquePhones": 2,
        "successfulPhones": 2,
        "alreadyNotifiedPhones": 0,
    }
    assert [d["recordCount"] for d in body["details"]] == [3, 1]
    assert [d["totalQuantity"] for d in body["details"]] == [3, 1]
    assert sorted(d["to"] for d in channel.documents) == ["+2348011111111", "+2348022222222"]
    db.expire_all()
    assert all(r.confirmed for r in db.query(models.ConventionRegistration))


def test_dinner_sends_one_ticket_per_guest(client, seed, channel):
    seed.dinner(
        "DINNER_1700000000000_08012345678",
        guests=[
            {"name": "Ada", "phone": "08011111111"},
            {"name": "Bola", "phone": "08022222222"},
            {"name": "Chi"},
        ],
    )

    res = client.post(WEBHOOK, json=_charge("DINNER_1700000000000"))

    body = res.json()
    assert body["serviceType"] == "dinner"
    assert body["summary"] == {"totalGuests": 3, "successfulGuests": 3, "alreadyNotifiedGuests": 0}
    assert [d["guestName"] for d in body["details"]] == ["Ada", "Bola", "Chi"]
    codes = [d["verificationCode"] for d in body["details"]]
    assert len(set(codes)) == 3
    assert [d["to"] for d in channel.documents] == ["+2348011111111", "+2348022222222", "+2348012345678"]


def test_late_registration_only_notifies_its_own_purchaser(client, seed, channel):
    seed.convention("CONV_1700000000000_08011111111_0")
    seed.convention("CONV_1700000000000_08022222222_1")
    client.post(WEBHOOK, json=_charge("CONV_1700000000000"))
    assert len(channel.documents) == 2

    # a third attendee lands after the first delivery and the gateway retries
    seed.convention("CONV_1700000000000_08033333333_2")
    body = client.post(WEBHOOK, json=_charge("CONV_1700000000000")).json()

    assert "duplicate" not in body
    assert body["summary"]["uniquePhones"] == 3
    assert body["summary"]["alreadyNotifiedPhones"] == 2
    assert [d["to"] for d in channel.documents[2:]] == ["+2348033333333"]


def test_delivery_log_never_stores_the_raw_phone(client, seed, db, channel):
    channel.document_ok = False
    channel.text_ok = False
    seed.brochure("BROCH_123_08011112222")

    client.post(WEBHOOK, json=_charge("BROCH_123"))

    db.expire_all()
    entry = db.query(models.DeliveryLog).one()
    assert entry.code == "DELIVERY_FAILED"
    assert entry.masked_phone == "+234******2222"
    assert entry.payment_reference == "BROCH_123_0801***2222"
    assert entry.context["reference"] == "BROCH_123_0801***2222"
    assert entry.context["errorCategory"] == "network"
    assert "08011112222" not in entry.context["assetUrl"]


def test_failed_delivery_still_confirms_payment(client, seed, channel):
    channel.document_ok = False
    channel.text_ok = False
    seed.accommodation("ACCOM_1700000000000_08012345678")

    body = client.post(WEBHOOK, json=_charge("ACCOM_1700000000000")).json()

    assert body["success"] is True
    assert body["record"]["confirmed"] is True
    assert body["notification"]["success"] is False
    assert body["notification"]["error"] == "Both document and text message failed"


def test_legacy_path_is_still_served(client, seed, channel):
    seed.donation("DON_1700000000000_08012345678")

    res = client.post("/api/webhook/paystack", json=_charge("DON_1700000000000"))

    assert res.status_code == 200
    assert res.json()["serviceType"] == "donation"
    assert len(channel.documents) == 1


def test_signature_is_checked_when_enabled(client, seed, channel, monkeypatch):
    monkeypatch.setattr(settings, "PAYSTACK_VERIFY_SIGNATURE", True)
    monkeypatch.setattr(settings, "PAYSTACK_SECRET_KEY", "sk_test_secret")
    seed.donation("DON_1700000000000_08012345678")
    raw = json.dumps(_charge("DON_1700000000000")).encode()
    good = hmac.new(b"sk_test_secret", raw, hashlib.sha512).hexdigest()
    headers = {"Content-Type": "application/json"}

    bad = client.post(WEBHOOK, content=raw, headers={**headers, "X-Paystack-Signature": "nope"})
    ok = client.post(WEBHOOK, content=raw, headers={**headers, "X-Paystack-Signature": good})

    assert bad.status_code == 400
    assert bad.json() == {"message": "Invalid signature", "success": False}
    assert ok.status_code == 200
    assert ok.json()["success"] is True
    assert len(channel.documents) == 1
