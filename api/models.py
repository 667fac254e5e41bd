"""SQLAlchemy models for certificate issuance records."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


# Upper bound for every free-text certificate field
TEXT_FIELD_LENGTH = 255


def utcnow() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


class Certificate(Base):
    """One issued certificate.

    Rows are written once, after the PDF artifact is durably on disk, and are
    never updated; the admin API can only delete them.
    """

    __tablename__ = "certificates"
    __table_args__ = (
        UniqueConstraint("certificate_id", name="uq_certificates_certificate_id"),
        UniqueConstraint(
            "verification_token", name="uq_certificates_verification_token"
        ),
        Index("ix_certificates_issued_at", "issued_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    certificate_id: Mapped[str] = mapped_column(String(32), nullable=False)
    recipient_name: Mapped[str] = mapped_column(
        String(TEXT_FIELD_LENGTH), nullable=False
    )
    recipient_email: Mapped[str] = mapped_column(
        String(TEXT_FIELD_LENGTH), nullable=False
    )
    resource_name: Mapped[str] = mapped_column(
        String(TEXT_FIELD_LENGTH), nullable=False
    )
    issuer_name: Mapped[str | None] = mapped_column(
        String(TEXT_FIELD_LENGTH), nullable=True
    )
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
    )
    artifact_ref: Mapped[str] = mapped_column(
        String(TEXT_FIELD_LENGTH), nullable=False
    )
    verification_token: Mapped[str] = mapped_column(String(64), nullable=False)
    extra: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
