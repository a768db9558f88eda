"""Phone number helpers.

Purchasers enter numbers in whatever local shape they like; every outbound
message needs ``+<country><subscriber>``.
"""

import re

from ..core.config import settings
from .errors import InvalidPhoneNumber

_NON_DIGITS = re.compile(r"\D")
# Nigerian mobile prefixes once the leading trunk zero is dropped
_LOCAL_MOBILE_LEADS = ("7", "8", "9")


def digits_only(value) -> str:
    return _NON_DIGITS.sub("", str(value or ""))


def normalize_phone(raw, country_code: str | None = None) -> str:
    """Return ``raw`` in international form or raise InvalidPhoneNumber.

    Accepted shapes (country code 234 by default):
    ``+<8-15 digits>``, ``234XXXXXXXXXX``, ``0XXXXXXXXXX`` and ``[789]XXXXXXXXX``.
    """
    cc = (country_code or settings.DEFAULT_COUNTRY_CODE).lstrip("+")
    text = str(raw or "").strip()
    digits = digits_only(text)
    if not digits:
        raise InvalidPhoneNumber(f"Invalid phone number: {raw!r}")

    if text.startswith("+"):
        if 8 <= len(digits) <= 15:
            return f"+{digits}"
        raise InvalidPhoneNumber(f"Invalid international phone number: {raw!r}")
    if digits.startswith(cc) and len(digits) == len(cc) + 10:
        return f"+{digits}"
    if digits.startswith("0") and len(digits) == 11:
        return f"+{cc}{digits[1:]}"
    if len(digits) == 10 and digits[0] in _LOCAL_MOBILE_LEADS:
        return f"+{cc}{digits}"
    raise InvalidPhoneNumber(f"Unrecognised phone number format: {raw!r}")


def is_valid_phone(raw) -> bool:
    try:
        normalize_phone(raw)
    except InvalidPhoneNumber:
        return False
    return True


def mask_phone(raw) -> str:
    """Keep the first and last four characters, e.g. ``+234******5678``."""
    text = str(raw or "").strip()
    if len(text) <= 8:
        return "*" * len(text)
    return text[:4] + "*" * (len(text) - 8) + text[-4:]


def mask_reference(reference) -> str:
    """Mask the purchaser phone embedded in ``<PREFIX>_<epochMillis>_<phone>``.

    Anything that is not a phone segment (prefix, timestamp, index) is kept.
    """
    segments = str(reference or "").split("_")
    return "_".join(
        mask_phone(s) if i and is_valid_phone(s) else s for i, s in enumerate(segments)
    )
