from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from .base import BaseModel, PaymentRecordMixin


class Donation(PaymentRecordMixin, BaseModel):
    __tablename__ = "donations"

    id             = Column(Integer, primary_key=True, index=True)
    user_id        = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    amount         = Column(Numeric(12, 2), nullable=False, default=0)
    donor_name     = Column(String, nullable=True)
    donor_email    = Column(String, nullable=True)
    donor_phone    = Column(String, nullable=True)
    anonymous      = Column(Boolean, default=False, nullable=False)
    on_behalf_of   = Column(String, nullable=True)
    receipt_number = Column(String, nullable=True)

    user = relationship("User")
