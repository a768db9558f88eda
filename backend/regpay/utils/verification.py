import hashlib

from ..models.types import ServiceType

CODE_PREFIXES = {
    ServiceType.CONVENTION: "CONV",
    ServiceType.DINNER: "DINR",
    ServiceType.ACCOMMODATION: "ACCM",
    ServiceType.BROCHURE: "BRCH",
    ServiceType.GOODWILL: "GDWL",
    ServiceType.DONATION: "DONA",
}


def make_verification_code(
    service_type: ServiceType,
    record_id: int,
    reference: str,
    guest_id: int | None = None,
) -> str:
    """Deterministic check-in code for a record (or a single dinner seat).

    The same inputs always yield the same code so a retried delivery never
    issues a second, different code for the same seat.
    """
    service_type = ServiceType(service_type)
    ident = f"G{guest_id}" if guest_id is not None else str(record_id)
    seed = f"{service_type.value}:{record_id}:{guest_id or ''}:{reference}"
    digest = hashlib.sha256(seed.encode("utf-8")).hexdigest()[:6].upper()
    return f"{CODE_PREFIXES[service_type]}-{ident}-{digest}"


def scan_url(code: str, base_url: str) -> str:
    return f"{base_url.rstrip('/')}?id={code}"
