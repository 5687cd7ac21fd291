"""
User model carrying the loyalty balance.

Identity lives with the external provider; `external_subject` is its stable
subject id. Tier and discount are computed from `loyalty_points` on every
access and are never persisted.
"""

from decimal import Decimal

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint

from eventbooking.db.base import Base, TimestampMixin
from eventbooking.domain.loyalty import loyalty_discount, loyalty_tier


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    external_subject = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), index=True, nullable=False, default="")
    name = Column(String(255), nullable=False, default="")
    loyalty_points = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("loyalty_points >= 0", name="check_loyalty_points_non_negative"),
    )

    @property
    def loyalty_tier(self) -> str:
        return loyalty_tier(self.loyalty_points or 0)

    @property
    def loyalty_discount(self) -> Decimal:
        return loyalty_discount(self.loyalty_points or 0)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, points={self.loyalty_points})>"
