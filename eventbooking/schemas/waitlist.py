"""
Pydantic schemas for waitlist responses.
"""

from datetime import datetime
from pydantic import BaseModel


class WaitlistPositionResponse(BaseModel):
    event_id: int
    position: int
    joined_at: datetime

    model_config = {"from_attributes": True}


class WaitlistEntryResponse(BaseModel):
    user_id: int
    position: int
    joined_at: datetime

    model_config = {"from_attributes": True}
