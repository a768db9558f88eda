import enum

from sqlalchemy import Boolean, Column, ForeignKey, Integer, JSON, Numeric
from sqlalchemy.orm import relationship

from .base import BaseModel, PaymentRecordMixin
from .types import CaseInsensitiveEnum


class BrochureType(str, enum.Enum):
    DIGITAL = "digital"
    PHYSICAL = "physical"


class BrochureOrder(PaymentRecordMixin, BaseModel):
    __tablename__ = "brochure_orders"

    id                = Column(Integer, primary_key=True, index=True)
    user_id           = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    brochure_type     = Column(CaseInsensitiveEnum(BrochureType), nullable=False, default=BrochureType.DIGITAL)
    quantity          = Column(Integer, nullable=False, default=1)
    # [{"name": ..., "email": ..., "phone": ...}]
    recipient_details = Column(JSON, nullable=True)
    total_amount      = Column(Numeric(12, 2), nullable=False, default=0)
    collected         = Column(Boolean, default=False, nullable=False)

    user = relationship("User")
