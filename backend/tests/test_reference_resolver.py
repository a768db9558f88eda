import pytest

from regpay.models.types import ServiceType
from regpay.services.reference_resolver import PROBE_ORDER, resolve
from regpay.utils.errors import InvalidReference


def test_probe_order_puts_dinner_first_and_convention_last():
    assert PROBE_ORDER[0] == ServiceType.DINNER
    assert PROBE_ORDER[-1] == ServiceType.CONVENTION
    assert set(PROBE_ORDER) == set(ServiceType)


def test_resolve_truncated_dinner_reference(db, seed):
    reservation = seed.dinner(
        "DINNER_1700000000000_08012345678",
        guests=[{"name": "A"}, {"name": "B"}],
    )

    resolution = resolve(db, "DINNER_1700000000000")

    assert resolution.service_type == ServiceType.DINNER
    assert resolution.record.id == reservation.id
    assert resolution.record.confirmed is True
    assert resolution.newly_confirmed == 1


def test_resolve_single_record_service(db, seed):
    seed.accommodation("ACCOM_1700000000000_08012345678")

    resolution = resolve(db, "ACCOM_1700000000000")

    assert resolution.service_type == ServiceType.ACCOMMODATION
    assert len(resolution.records) == 1
    assert resolution.records[0].confirmed is True


def test_resolve_twice_is_a_noop_the_second_time(db, seed):
    seed.goodwill("GOOD_1700000000000_08012345678")

    first = resolve(db, "GOOD_1700000000000")
    second = resolve(db, "GOOD_1700000000000")

    assert first.newly_confirmed == 1
    assert second.newly_confirmed == 0
    assert second.record.id == first.record.id
    assert second.record.confirmed is True


def test_resolve_bulk_convention(db, seed):
    for phone in ("08011111111", "08022222222"):
        seed.convention(f"CONV_1700000000000_{phone}")

    resolution = resolve(db, "CONV_1700000000000")

    assert resolution.service_type == ServiceType.CONVENTION
    assert resolution.newly_confirmed == 2
    assert [r.confirmed for r in resolution.records] == [True, True]


def test_resolve_without_confirm_leaves_records_untouched(db, seed):
    seed.donation("DON_1700000000000_08012345678")

    resolution = resolve(db, "DON_1700000000000", confirm=False)

    assert resolution.service_type == ServiceType.DONATION
    assert resolution.record.confirmed is False
    assert resolution.newly_confirmed == 0


def test_resolve_unknown_reference_returns_none(db, seed):
    seed.donation("DON_1700000000000_08012345678")

    assert resolve(db, "NOPE_123") is None


def test_resolve_requires_a_reference(db):
    with pytest.raises(InvalidReference):
        resolve(db, "   ")
