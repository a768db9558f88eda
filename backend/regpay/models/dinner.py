from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel, PaymentRecordMixin


class DinnerReservation(PaymentRecordMixin, BaseModel):
    __tablename__ = "dinner_reservations"

    id               = Column(Integer, primary_key=True, index=True)
    user_id          = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    number_of_guests = Column(Integer, nullable=False, default=1)
    total_amount     = Column(Numeric(12, 2), nullable=False, default=0)
    special_requests = Column(Text, nullable=True)

    user = relationship("User")
    guests = relationship(
        "DinnerGuest",
        back_populates="reservation",
        order_by="DinnerGuest.id",
        cascade="all, delete-orphan",
    )


class DinnerGuest(BaseModel):
    """A single seat; each guest is ticketed and receipted on its own."""

    __tablename__ = "dinner_guests"

    id                   = Column(Integer, primary_key=True, index=True)
    reservation_id       = Column(Integer, ForeignKey("dinner_reservations.id"), nullable=False, index=True)
    name                 = Column(String, nullable=False)
    email                = Column(String, nullable=True)
    phone                = Column(String, nullable=True)
    dietary_requirements = Column(String, nullable=True)
    verification_code    = Column(String, nullable=True, index=True)
    used                 = Column(Boolean, default=False, nullable=False)

    reservation = relationship("DinnerReservation", back_populates="guests")
