from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, String
from ..database import Base  # This is the same Base created by declarative_base()


class BaseModel(Base):
    __abstract__ = True

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PaymentRecordMixin:
    """Columns shared by every record created at checkout.

    ``payment_reference`` is generated at checkout as
    ``<PREFIX>_<epochMillis>_<purchaserPhone>``; the gateway may echo back only
    a prefix of it. ``confirmed`` is the single "has been paid" flag.
    """

    payment_reference = Column(String, unique=True, index=True, nullable=False)
    confirmed = Column(Boolean, default=False, nullable=False)
    confirmed_at = Column(DateTime, nullable=True)
    verification_code = Column(String, nullable=True)
