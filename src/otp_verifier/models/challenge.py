"""SQLAlchemy Challenge model."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from otp_verifier.models.base import Base, UTCDateTime


class Challenge(Base):
    """A live one-time passcode bound to a single identity.

    The identity (a normalised email address) is the primary key, so the
    table can never hold two challenges for the same identity.
    """

    __tablename__ = "otp_challenges"

    identity: Mapped[str] = mapped_column(String(320), primary_key=True)
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )

    __table_args__ = (Index("ix_otp_challenges_expires_at", "expires_at"),)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    @property
    def attempts_left(self) -> int:
        return max(0, self.max_attempts - self.attempts)

    def __repr__(self) -> str:
        return (
            f"<Challenge identity={self.identity!r} attempts={self.attempts}"
            f"/{self.max_attempts} expires_at={self.expires_at.isoformat()}>"
        )
