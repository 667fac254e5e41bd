"""Repository for certificate operations."""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models import Certificate, utcnow
from repositories.utils import log_slow_query


class UniqueConstraintViolation(Exception):
    """Raised when a certificate id or verification token is already taken."""

    pass


class CertificateRepository:
    """Repository for certificate CRUD operations.

    Records are immutable once persisted: there is no update method.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @log_slow_query("persist_certificate")
    async def persist(
        self,
        *,
        certificate_id: str,
        recipient_name: str,
        recipient_email: str,
        resource_name: str,
        issuer_name: str | None,
        artifact_ref: str,
        verification_token: str,
        issued_at: datetime | None = None,
        extra: dict[str, Any] | None = None,
    ) -> Certificate:
        """Insert a new certificate record.

        Calls flush() but does NOT commit; the caller is responsible for
        transaction management.

        Raises:
            UniqueConstraintViolation: Duplicate certificate_id or
                verification_token. The session is rolled back first so it
                stays usable.
        """
        certificate = Certificate(
            certificate_id=certificate_id,
            recipient_name=recipient_name,
            recipient_email=recipient_email,
            resource_name=resource_name,
            issuer_name=issuer_name,
            issued_at=issued_at or utcnow(),
            artifact_ref=artifact_ref,
            verification_token=verification_token,
            extra=extra,
        )
        self.db.add(certificate)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise UniqueConstraintViolation(str(e.orig)) from e
        return certificate

    @log_slow_query("get_certificate_by_id")
    async def get_by_certificate_id(self, certificate_id: str) -> Certificate | None:
        result = await self.db.execute(
            select(Certificate).where(Certificate.certificate_id == certificate_id)
        )
        return result.scalar_one_or_none()

    @log_slow_query("get_certificate_by_token")
    async def get_by_verification_token(self, token: str) -> Certificate | None:
        """Get a certificate by its verification token (for public verification)."""
        result = await self.db.execute(
            select(Certificate).where(Certificate.verification_token == token)
        )
        return result.scalar_one_or_none()

    @log_slow_query("list_certificates")
    async def list_page(self, *, offset: int, limit: int) -> Sequence[Certificate]:
        """Certificates ordered by issued_at, most recent first.

        Ties are broken by insertion order (newest first) so paging is stable.
        """
        result = await self.db.execute(
            select(Certificate)
            .order_by(Certificate.issued_at.desc(), Certificate.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return result.scalars().all()

    @log_slow_query("delete_certificate")
    async def delete_by_certificate_id(self, certificate_id: str) -> Certificate | None:
        """Delete a certificate record.

        Returns:
            The removed record, or None when no record matched.
        """
        certificate = await self.get_by_certificate_id(certificate_id)
        if certificate is None:
            return None
        await self.db.delete(certificate)
        await self.db.flush()
        return certificate
