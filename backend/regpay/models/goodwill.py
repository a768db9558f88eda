from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel, PaymentRecordMixin


class GoodwillMessage(PaymentRecordMixin, BaseModel):
    __tablename__ = "goodwill_messages"

    id               = Column(Integer, primary_key=True, index=True)
    user_id          = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    message          = Column(Text, nullable=False, default="")
    donation_amount  = Column(Numeric(12, 2), nullable=False, default=0)
    attribution_name = Column(String, nullable=True)
    anonymous        = Column(Boolean, default=False, nullable=False)
    approved         = Column(Boolean, default=False, nullable=False)

    user = relationship("User")
