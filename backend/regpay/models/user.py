from sqlalchemy import Column, Integer, String
from .base import BaseModel


class User(BaseModel):
    """Purchaser profile captured at checkout."""

    __tablename__ = "users"

    id           = Column(Integer, primary_key=True, index=True)
    full_name    = Column(String, nullable=False)
    email        = Column(String, index=True, nullable=True)
    phone_number = Column(String, nullable=True)
