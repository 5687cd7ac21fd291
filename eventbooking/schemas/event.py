"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    location: Optional[str] = Field(None, max_length=255)
    start_date: datetime
    end_date: datetime
    capacity: int = Field(..., ge=0, le=100000)
    price: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    status: Literal["draft", "published"] = "published"

    @model_validator(mode="after")
    def check_dates(self) -> "EventCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class EventResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    location: Optional[str]
    start_date: datetime
    end_date: datetime
    capacity: int
    price: Decimal
    status: str
    organizer_id: int
    confirmed_count: int = 0
    available_seats: int = 0

    model_config = {"from_attributes": True}

    @classmethod
    def from_event(cls, event, confirmed_count: int) -> "EventResponse":
        response = cls.model_validate(event)
        response.confirmed_count = confirmed_count
        response.available_seats = max(0, event.capacity - confirmed_count)
        return response


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False
