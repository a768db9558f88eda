import pytest

from regpay.utils.errors import InvalidPhoneNumber
from regpay.utils.phone import is_valid_phone, mask_phone, mask_reference, normalize_phone


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("08012345678", "+2348012345678"),
        ("0801 234 5678", "+2348012345678"),
        ("2348012345678", "+2348012345678"),
        ("+2348012345678", "+2348012345678"),
        ("8012345678", "+2348012345678"),
        ("+44 7911 123456", "+447911123456"),
    ],
)
def test_normalize_phone_accepts_local_and_international(raw, expected):
    assert normalize_phone(raw) == expected


@pytest.mark.parametrize("raw", ["", None, "12345", "1700000000000", "0801234567", "+12"])
def test_normalize_phone_rejects_unknown_formats(raw):
    with pytest.raises(InvalidPhoneNumber):
        normalize_phone(raw)
    assert is_valid_phone(raw) is False


def test_normalize_phone_honours_country_code():
    assert normalize_phone("02412345678", country_code="+233") == "+2332412345678"


def test_mask_phone_keeps_edges_only():
    assert mask_phone("+2348012345678") == "+234******5678"
    assert mask_phone("1234") == "****"
    assert mask_phone(None) == ""


@pytest.mark.parametrize(
    "reference,expected",
    [
        ("BROCH_123_08011112222", "BROCH_123_0801***2222"),
        ("CONV_1700000000000_+2348012345678_2", "CONV_1700000000000_+234******5678_2"),
        ("DINNER_1700000000000", "DINNER_1700000000000"),
        ("", ""),
        (None, ""),
    ],
)
def test_mask_reference_hides_only_the_phone_segment(reference, expected):
    assert mask_reference(reference) == expected
