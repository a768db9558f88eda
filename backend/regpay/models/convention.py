from sqlalchemy import Boolean, Column, ForeignKey, Integer, JSON, Numeric
from sqlalchemy.orm import relationship

from .base import BaseModel, PaymentRecordMixin


class ConventionRegistration(PaymentRecordMixin, BaseModel):
    """One registered attendee.

    A bulk checkout creates one row per person, each with its own phone
    suffix on the shared gateway reference.
    """

    __tablename__ = "convention_registrations"

    id        = Column(Integer, primary_key=True, index=True)
    user_id   = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    amount    = Column(Numeric(12, 2), nullable=False, default=0)
    quantity  = Column(Integer, nullable=False, default=1)
    # [{"fullName": ..., "email": ..., "phone": ...}] for additional attendees
    persons   = Column(JSON, nullable=True)
    collected = Column(Boolean, default=False, nullable=False)

    user = relationship("User")
