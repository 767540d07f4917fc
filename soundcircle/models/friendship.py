from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from soundcircle.models.base import Base

PENDING = "pending"
ACCEPTED = "accepted"


class Friendship(Base):
    __tablename__ = "friendships"

    requester_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    addressee_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Canonical ordering of the pair: user_low_id < user_high_id, whoever asked
    user_low_id: Mapped[int] = mapped_column(nullable=False)
    user_high_id: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PENDING
    )  # pending, accepted
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_friendships_pair"),
        CheckConstraint("user_low_id < user_high_id", name="canonical_order"),
        CheckConstraint("requester_id <> addressee_id", name="not_self"),
    )

    @staticmethod
    def canonical_pair(user_a: int, user_b: int) -> tuple[int, int]:
        return (min(user_a, user_b), max(user_a, user_b))
