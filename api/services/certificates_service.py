"""Certificate business logic.

This module handles certificate business logic:
- Issuance: identifiers, verification link, rendering, durable artifact
  write, persistence, optional e-mail delivery
- Public verification by token
- Admin lookup, listing and deletion

Routes should delegate all certificate business logic to this module.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings
from core.wide_event import set_wide_event_fields
from models import TEXT_FIELD_LENGTH, Certificate, utcnow
from rendering.assets import AssetStore
from rendering.certificates import CertificateFields, render_certificate_pdf
from rendering.qr import encode_qr_png
from repositories.certificate_repository import (
    CertificateRepository,
    UniqueConstraintViolation,
)
from schemas import (
    CertificateData,
    CertificatePage,
    IssuedCertificate,
    PublicCertificate,
    VerificationResult,
)
from services.artifacts import ArtifactExistsError, ArtifactStorage
from services.email_service import DeliveryError, send_certificate_email
from services.identifiers import generate_certificate_id, generate_verification_token

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


class CertificateValidationError(Exception):
    """Raised when an issuance request is missing required fields."""

    pass


class CertificateNotFoundError(Exception):
    """Raised when no certificate matches the given id."""

    def __init__(self, certificate_id: str):
        self.certificate_id = certificate_id
        super().__init__(f"Certificate not found: {certificate_id}")


class CertificateStorageError(Exception):
    """Raised when a unique id/token could not be obtained within the attempts."""

    pass


class RenderError(Exception):
    """Raised when the PDF could not be rendered or durably stored."""

    pass


def _to_certificate_data(certificate: Certificate) -> CertificateData:
    return CertificateData.model_validate(certificate)


def _to_public_certificate(certificate: Certificate) -> PublicCertificate:
    return PublicCertificate.model_validate(certificate)


def build_verify_url(base_url: str, token: str) -> str:
    """Public verification link embedded in the PDF's QR code and footer."""
    return f"{base_url.rstrip('/')}/verify.html?hash={token}"


def _validate_issue_request(
    recipient_name: str | None,
    recipient_email: str | None,
    resource_name: str | None,
    issuer_name: str | None,
) -> tuple[str, str, str, str | None]:
    name, email, resource, issuer = (
        (value or "").strip()
        for value in (recipient_name, recipient_email, resource_name, issuer_name)
    )
    if not (name and email and resource):
        raise CertificateValidationError(
            "userName, userEmail and resourceName required"
        )
    fields = (name, email, resource, issuer)
    if any(len(value) > TEXT_FIELD_LENGTH for value in fields):
        raise CertificateValidationError(
            f"userName, userEmail, resourceName and issuer must be at most "
            f"{TEXT_FIELD_LENGTH} characters"
        )
    return name, email, resource, issuer or None


def _render_sync(settings: Settings, fields: CertificateFields) -> bytes:
    qr_png = encode_qr_png(fields.verify_url)
    return render_certificate_pdf(
        fields,
        qr_png,
        AssetStore(settings.assets_dir_path),
        signature_asset=settings.signature_asset,
        watermark_asset=settings.watermark_asset,
    )


async def _discard_artifact(storage: ArtifactStorage, certificate_id: str) -> None:
    """Best-effort removal of an artifact whose record was never persisted."""
    try:
        await storage.delete(certificate_id)
    except OSError:
        logger.warning(
            "certificate.artifact.discard_failed",
            exc_info=True,
            extra={"certificate_id": certificate_id},
        )


async def issue_certificate(
    db: AsyncSession,
    settings: Settings,
    *,
    recipient_name: str | None,
    recipient_email: str | None,
    resource_name: str | None,
    issuer_name: str | None = None,
    auto_email: bool = False,
) -> IssuedCertificate:
    """Issue a new certificate.

    The PDF is written durably before the record is persisted, and the record
    is committed before any e-mail is sent, so a delivery failure can never
    undo an issuance.

    Args:
        db: Database session
        settings: Application settings (base URL, directories, SMTP, attempts)
        recipient_name: Name printed on the certificate
        recipient_email: Recipient address (never exposed publicly)
        resource_name: Course or resource the certificate is for
        issuer_name: Optional issuing organisation
        auto_email: Send the PDF to the recipient after issuance

    Returns:
        IssuedCertificate with the identifiers; ``email_sent`` is None when
        no e-mail was requested

    Raises:
        CertificateValidationError: A required field is missing or blank, or
            a field is longer than the stored column allows
        RenderError: Rendering or storing the PDF failed (no record created)
        CertificateStorageError: No unique id/token within the allowed attempts
    """
    name, email, resource, issuer = _validate_issue_request(
        recipient_name, recipient_email, resource_name, issuer_name
    )

    storage = ArtifactStorage(settings.certs_dir_path)
    repo = CertificateRepository(db)
    max_attempts = settings.issuance_max_attempts

    for attempt in range(1, max_attempts + 1):
        certificate_id = generate_certificate_id()
        token = generate_verification_token(certificate_id, email)
        verify_url = build_verify_url(settings.base_url, token)
        issued_at = utcnow()

        fields = CertificateFields(
            recipient_name=name,
            recipient_email=email,
            resource_name=resource,
            issuer_name=issuer,
            certificate_id=certificate_id,
            issued_at=issued_at,
            verify_url=verify_url,
        )

        try:
            pdf_bytes = await asyncio.to_thread(_render_sync, settings, fields)
        except Exception as e:
            logger.exception(
                "certificate.render.failed",
                extra={"certificate_id": certificate_id},
            )
            raise RenderError("Certificate rendering failed") from e

        try:
            artifact_ref = await storage.write(certificate_id, pdf_bytes)
        except ArtifactExistsError:
            logger.warning(
                "certificate.id.collision",
                extra={"certificate_id": certificate_id, "attempt": attempt},
            )
            continue
        except OSError as e:
            logger.exception(
                "certificate.artifact.write_failed",
                extra={"certificate_id": certificate_id},
            )
            raise RenderError("Could not store certificate artifact") from e

        try:
            certificate = await repo.persist(
                certificate_id=certificate_id,
                recipient_name=name,
                recipient_email=email,
                resource_name=resource,
                issuer_name=issuer,
                issued_at=issued_at,
                artifact_ref=artifact_ref,
                verification_token=token,
            )
        except UniqueConstraintViolation:
            logger.warning(
                "certificate.store.collision",
                extra={"certificate_id": certificate_id, "attempt": attempt},
            )
            await _discard_artifact(storage, certificate_id)
            continue
        except Exception:
            await _discard_artifact(storage, certificate_id)
            raise

        await db.commit()
        break
    else:
        raise CertificateStorageError(
            f"Could not allocate a unique certificate after {max_attempts} attempt(s)"
        )

    logger.info(
        "certificate.issued",
        extra={
            "certificate_id": certificate.certificate_id,
            "attempts": attempt,
        },
    )
    set_wide_event_fields(certificate_id=certificate.certificate_id)

    email_sent: bool | None = None
    if auto_email:
        try:
            await send_certificate_email(
                settings,
                to=email,
                recipient_name=name,
                resource_name=resource,
                certificate_id=certificate.certificate_id,
                pdf_path=storage.path_for(certificate.certificate_id),
            )
            email_sent = True
        except DeliveryError:
            logger.warning(
                "certificate.email.failed",
                exc_info=True,
                extra={"certificate_id": certificate.certificate_id},
            )
            email_sent = False
        set_wide_event_fields(email_sent=email_sent)

    return IssuedCertificate(
        certificate_id=certificate.certificate_id,
        artifact_ref=certificate.artifact_ref,
        verification_token=certificate.verification_token,
        verify_url=verify_url,
        issued_at=certificate.issued_at,
        email_sent=email_sent,
    )


async def verify_certificate(
    db: AsyncSession,
    token: str,
) -> VerificationResult:
    """Verify a certificate by its verification token.

    A miss is not an error: it returns ``is_valid=False``. The result never
    carries the recipient's e-mail address.
    """
    if not token:
        return VerificationResult(is_valid=False)

    cert_repo = CertificateRepository(db)
    certificate = await cert_repo.get_by_verification_token(token)
    if certificate is None:
        return VerificationResult(is_valid=False)

    return VerificationResult(
        is_valid=True,
        certificate=_to_public_certificate(certificate),
    )


async def get_certificate(
    db: AsyncSession,
    certificate_id: str,
) -> CertificateData:
    """Full certificate record (admin).

    Raises:
        CertificateNotFoundError: No certificate with this id
    """
    cert_repo = CertificateRepository(db)
    certificate = await cert_repo.get_by_certificate_id(certificate_id)
    if certificate is None:
        raise CertificateNotFoundError(certificate_id)
    return _to_certificate_data(certificate)


async def list_certificates(
    db: AsyncSession,
    page: int = 0,
    limit: int = DEFAULT_PAGE_SIZE,
) -> CertificatePage:
    """Page through certificates, most recently issued first.

    ``page`` is zero-based. Negative pages are clamped to 0 and limits below
    1 are clamped to 1; there is no upper bound on ``limit``.
    """
    page = max(0, page)
    limit = max(1, limit)

    cert_repo = CertificateRepository(db)
    certificates = await cert_repo.list_page(offset=page * limit, limit=limit)
    return CertificatePage(
        page=page,
        limit=limit,
        results=[_to_certificate_data(c) for c in certificates],
    )


async def delete_certificate(
    db: AsyncSession,
    settings: Settings,
    certificate_id: str,
) -> CertificateData:
    """Delete a certificate record, then its PDF.

    The record deletion is committed before the file is touched. Removing the
    file is best-effort: a missing file is fine and other failures are only
    logged.

    Raises:
        CertificateNotFoundError: No certificate with this id (nothing is
            changed)
    """
    cert_repo = CertificateRepository(db)
    certificate = await cert_repo.delete_by_certificate_id(certificate_id)
    if certificate is None:
        raise CertificateNotFoundError(certificate_id)

    data = _to_certificate_data(certificate)
    await db.commit()

    storage = ArtifactStorage(settings.certs_dir_path)
    try:
        removed = await storage.delete(data.certificate_id)
    except (OSError, ValueError):
        logger.warning(
            "certificate.artifact.delete_failed",
            exc_info=True,
            extra={"certificate_id": data.certificate_id},
        )
        removed = False

    logger.info(
        "certificate.deleted",
        extra={"certificate_id": data.certificate_id, "artifact_removed": removed},
    )
    set_wide_event_fields(certificate_id=data.certificate_id)
    return data
