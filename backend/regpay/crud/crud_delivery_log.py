from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models


def create_delivery_log(
    db: Session,
    *,
    level: str,
    category: str,
    code: str,
    message: str,
    service_type: Optional[str] = None,
    payment_reference: Optional[str] = None,
    masked_phone: Optional[str] = None,
    context: Optional[dict] = None,
    urgent: bool = False,
) -> models.DeliveryLog:
    entry = models.DeliveryLog(
        level=level,
        category=category,
        code=code,
        message=message,
        service_type=service_type,
        payment_reference=payment_reference,
        masked_phone=masked_phone,
        context=context or {},
        urgent=urgent,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def count_by_code(db: Session, service_type: Optional[str] = None) -> dict[str, int]:
    query = db.query(models.DeliveryLog.code, func.count(models.DeliveryLog.id))
    if service_type:
        query = query.filter(models.DeliveryLog.service_type == service_type)
    return {code: int(total) for code, total in query.group_by(models.DeliveryLog.code).all()}


def recent_urgent(db: Session, limit: int = 20) -> list[models.DeliveryLog]:
    return (
        db.query(models.DeliveryLog)
        .filter(models.DeliveryLog.urgent.is_(True))
        .order_by(models.DeliveryLog.id.desc())
        .limit(limit)
        .all()
    )
