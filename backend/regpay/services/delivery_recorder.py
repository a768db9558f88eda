"""Delivery outcome recording for monitoring and alerting.

Every dispatch attempt ends up here: as a structured log line, a StatsD
counter, and a ``delivery_logs`` row. Urgent entries also email the on-call
address. Recording is fire-and-forget; nothing here may break a delivery.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Callable, Optional

from ..core.config import settings
from ..crud import crud_delivery_log
from ..database import get_db_session
from ..utils import background_worker
from ..utils.email import send_email
from ..utils.metrics import incr
from ..utils.phone import mask_phone, mask_reference

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def categorize_error(message: Optional[str]) -> str:
    """Bucket a free-form failure message for dashboards."""
    text = (message or "").lower()
    if any(k in text for k in ("network", "timeout", "connect", "unreachable")):
        return "network"
    if any(k in text for k in ("auth", "api key", "unauthorized", "forbidden")):
        return "authentication"
    if "rate limit" in text or "too many" in text:
        return "rate_limiting"
    if any(k in text for k in ("invalid", "missing", "required", "format")):
        return "validation"
    if any(k in text for k in ("render", "generat", "upload", "publish", "r2")):
        return "generation"
    return "unknown"


def performance_category(elapsed_ms: float) -> str:
    if elapsed_ms < 5000:
        return "fast"
    if elapsed_ms < 15000:
        return "normal"
    return "slow"


class DeliveryRecorder:
    """Persist and log dispatch outcomes.

    ``session_factory`` is a zero-argument callable returning a context
    manager that yields a SQLAlchemy session; tests hand in their own.
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager] = get_db_session,
        alert_email: Optional[str] = None,
    ) -> None:
        self.session_factory = session_factory
        self.alert_email = alert_email if alert_email is not None else settings.DELIVERY_ALERT_EMAIL

    def record(
        self,
        level: str,
        category: str,
        code: str,
        message: str,
        context: Optional[dict] = None,
        urgent: bool = False,
    ) -> None:
        try:
            self._record(level, category, code, message, dict(context or {}), urgent)
        except Exception as exc:
            # Recording must never take a delivery down with it.
            logger.error("Delivery recorder failed for %s: %s", code, exc)

    def _record(self, level: str, category: str, code: str, message: str, context: dict, urgent: bool) -> None:
        phone = context.pop("phone", None)
        masked = context.get("maskedPhone") or (mask_phone(phone) if phone else None)
        if masked:
            context["maskedPhone"] = masked
        if context.get("reference"):
            context["reference"] = mask_reference(context["reference"])
        service_type = context.get("serviceType")
        reference = context.get("reference")

        logger.log(
            _LEVELS.get(level.lower(), logging.INFO),
            "%s %s: %s",
            category,
            code,
            message,
            extra={"delivery": {**context, "code": code, "urgent": urgent}},
        )
        incr(f"delivery.{category}.{code.lower()}", tags={"service": service_type, "level": level})

        with self.session_factory() as db:
            crud_delivery_log.create_delivery_log(
                db,
                level=level,
                category=category,
                code=code,
                message=message,
                service_type=service_type,
                payment_reference=reference,
                masked_phone=masked,
                context=context,
                urgent=urgent,
            )

        if urgent and self.alert_email:
            background_worker.enqueue(
                send_email,
                self.alert_email,
                f"[{settings.EVENT_NAME}] Receipt delivery alert: {code}",
                _alert_body(code, message, context),
            )

    # Convenience wrappers used by the dispatcher
    def success(self, context: dict, elapsed_ms: float, fallback_used: bool = False) -> None:
        code = "DELIVERED_VIA_FALLBACK" if fallback_used else "DELIVERED"
        context = {**context, "elapsedMs": round(elapsed_ms, 1), "performance": performance_category(elapsed_ms)}
        self.record(
            "warning" if fallback_used else "info",
            "delivery",
            code,
            "Receipt delivered as text link" if fallback_used else "Receipt delivered as document",
            context,
        )

    def failure(
        self,
        code: str,
        error: Optional[str],
        context: dict,
        urgent: bool = True,
        category: Optional[str] = None,
    ) -> None:
        """Record a failed attempt; ``category`` overrides the one derived from ``error``."""
        context = {**context, "errorCategory": category or categorize_error(error), "error": error}
        self.record("error", "delivery", code, error or "Receipt delivery failed", context, urgent=urgent)


def _alert_body(code: str, message: str, context: dict) -> str:
    lines = [f"Code: {code}", f"Message: {message}", ""]
    lines.extend(f"{k}: {v}" for k, v in sorted(context.items()) if k != "stack")
    if context.get("stack"):
        lines.extend(["", str(context["stack"])])
    return "\n".join(lines)
