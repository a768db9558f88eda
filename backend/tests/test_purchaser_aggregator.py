from decimal import Decimal

from regpay.crud.crud_records import RECORD_STORES, ServiceRecordView
from regpay.models.types import ServiceType
from regpay.services.purchaser_aggregator import (
    group,
    group_template,
    guest_targets,
    phone_from_reference,
    purchaser_phone,
)


def _view(reference, record_id=1, phone=None, amount=20000):
    return ServiceRecordView(
        id=record_id,
        service_type=ServiceType.CONVENTION,
        reference=reference,
        confirmed=True,
        amount=Decimal(amount),
        purchaser_name="Ada",
        purchaser_email=None,
        purchaser_phone=phone,
        description="GOSA 2025 Convention Registration",
    )


def test_phone_from_reference_skips_timestamp():
    assert phone_from_reference("CONV_1700000000000_08012345678") == "08012345678"
    assert phone_from_reference("CONV_1700000000000") is None
    assert phone_from_reference("BROCH_123") is None
    assert phone_from_reference("") is None


def test_purchaser_phone_falls_back_to_profile():
    assert purchaser_phone(_view("CONV_1700000000000_08012345678", phone="08099999999")) == "08012345678"
    assert purchaser_phone(_view("CONV_1700000000000", phone="08099999999")) == "08099999999"


def test_four_records_one_phone_make_one_group():
    views = [_view("CONV_1700000000000_08012345678", record_id=i) for i in range(1, 5)]

    groups = group(views)

    assert len(groups) == 1
    assert groups[0].total_quantity == 4
    assert groups[0].total_amount == Decimal(80000)
    template = group_template(groups[0])
    assert template.item_count == 4
    assert template.id == 1


def test_four_records_two_phones_make_two_groups():
    views = [
        _view("CONV_1700000000000_08012345678", record_id=1),
        _view("CONV_1700000000000_08087654321", record_id=2),
        _view("CONV_1700000000000_+2348012345678", record_id=3),
        _view("CONV_1700000000000_08087654321", record_id=4),
    ]

    groups = group(views)

    # 0801... and +234801... are the same purchaser once normalized
    assert [g.total_quantity for g in groups] == [2, 2]
    assert [g.key for g in groups] == ["+2348012345678", "+2348087654321"]


def test_records_without_phone_are_dropped(caplog):
    views = [_view("CONV_1700000000000", record_id=1), _view("CONV_1700000000000_08012345678", record_id=2)]

    with caplog.at_level("WARNING"):
        groups = group(views)

    assert len(groups) == 1
    assert "no purchaser phone" in caplog.text


def test_guest_targets_one_per_seat(db, seed):
    buyer = seed.user(phone_number="08030000000")
    reservation = seed.dinner(
        "DINNER_1700000000000_08012345678",
        guests=[
            {"name": "A", "phone": "08011111111"},
            {"name": "B"},
            {"name": "C", "phone": "08033333333"},
        ],
        user=buyer,
    )

    targets = guest_targets(RECORD_STORES[ServiceType.DINNER], [reservation])

    assert len(targets) == 3
    assert [t.purchaser_name for t in targets] == ["A", "B", "C"]
    # B has no phone of their own: the buyer's reference phone is used
    assert [t.purchaser_phone for t in targets] == ["08011111111", "08012345678", "08033333333"]
    assert len({t.guest_id for t in targets}) == 3
