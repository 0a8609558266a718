"""SQLAlchemy Account model."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from otp_verifier.models.base import Base, UTCDateTime


class Account(Base):
    """A registered account whose email address can be verified by passcode."""

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    verified_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        return (
            f"<Account id={self.id} email={self.email!r} "
            f"verified={self.email_verified}>"
        )
