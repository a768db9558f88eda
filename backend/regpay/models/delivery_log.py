from sqlalchemy import Boolean, Column, Integer, JSON, String, Text

from .base import BaseModel


class DeliveryLog(BaseModel):
    """Append-only record of a receipt dispatch attempt.

    Written by the delivery recorder for monitoring; business logic never
    reads these rows.
    """

    __tablename__ = "delivery_logs"

    id                = Column(Integer, primary_key=True, index=True)
    level             = Column(String, nullable=False)
    category          = Column(String, nullable=False, index=True)
    code              = Column(String, nullable=False, index=True)
    message           = Column(Text, nullable=False)
    service_type      = Column(String, nullable=True, index=True)
    payment_reference = Column(String, nullable=True, index=True)
    masked_phone      = Column(String, nullable=True)
    context           = Column(JSON, nullable=True)
    urgent            = Column(Boolean, default=False, nullable=False)
