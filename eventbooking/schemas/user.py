"""
Pydantic schemas for the caller's profile and loyalty standing.
"""

from decimal import Decimal
from pydantic import BaseModel


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    loyalty_points: int
    loyalty_tier: str
    loyalty_discount: Decimal

    model_config = {"from_attributes": True}
