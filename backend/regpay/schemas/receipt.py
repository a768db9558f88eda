from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ReceiptResendRequest(BaseModel):
    reference: str = Field(..., min_length=1, max_length=200)


class DeliveryLogRead(BaseModel):
    id: int
    level: str
    category: str
    code: str
    message: str
    service_type: Optional[str] = None
    payment_reference: Optional[str] = None
    masked_phone: Optional[str] = None
    urgent: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class DeliverySummary(BaseModel):
    counts: Dict[str, int]
    total: int
    recent_urgent: List[DeliveryLogRead]
