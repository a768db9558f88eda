import enum

from sqlalchemy import Column, Date, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel, PaymentRecordMixin
from .types import CaseInsensitiveEnum


class AccommodationType(str, enum.Enum):
    STANDARD = "standard"
    PREMIUM = "premium"
    LUXURY = "luxury"


class Accommodation(PaymentRecordMixin, BaseModel):
    __tablename__ = "accommodations"

    id                 = Column(Integer, primary_key=True, index=True)
    user_id            = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    accommodation_type = Column(CaseInsensitiveEnum(AccommodationType), nullable=False, default=AccommodationType.STANDARD)
    check_in_date      = Column(Date, nullable=True)
    check_out_date     = Column(Date, nullable=True)
    number_of_guests   = Column(Integer, nullable=False, default=1)
    total_amount       = Column(Numeric(12, 2), nullable=False, default=0)
    confirmation_code  = Column(String, nullable=True)
    special_requests   = Column(Text, nullable=True)

    user = relationship("User")
