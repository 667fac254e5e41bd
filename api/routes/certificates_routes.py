"""Certificate issuance, verification and admin endpoints.

Route ordering note: Literal path segments (/generate, /verify/) are defined
before parameterized segments (/{certificate_id}) to prevent routing conflicts.
"""

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from core.auth import AdminAuth, AppSettings
from core.database import DbSession
from core.ratelimit import ISSUANCE_LIMIT, limiter
from schemas import (
    CertificateGenerateRequest,
    CertificateGenerateResponse,
    CertificateListResponse,
    CertificateRecordResponse,
    CertificateVerifyResponse,
    MessageResponse,
)
from services.certificates_service import (
    DEFAULT_PAGE_SIZE,
    CertificateNotFoundError,
    CertificateValidationError,
    delete_certificate,
    get_certificate,
    issue_certificate,
    list_certificates,
    verify_certificate,
)

router = APIRouter(prefix="/api/certificates", tags=["certificates"])

ISSUED_MESSAGE = "Certificate generated"
ISSUED_DELIVERY_FAILED_MESSAGE = "Certificate generated, but email delivery failed"
NOT_FOUND_MESSAGE = "Not found"
VERIFY_MISS_MESSAGE = "Certificate not found or invalid"

_ADMIN_RESPONSES: dict[int | str, dict] = {
    401: {"model": MessageResponse, "description": "Missing Authorization header"},
    403: {"model": MessageResponse, "description": "Invalid admin token"},
}


@router.post(
    "/generate",
    response_model=CertificateGenerateResponse,
    responses={
        400: {"model": MessageResponse, "description": "Missing required fields"},
        500: {"model": MessageResponse, "description": "Server error"},
    },
)
@limiter.limit(ISSUANCE_LIMIT)
async def generate_certificate_endpoint(
    request: Request,
    body: CertificateGenerateRequest,
    db: DbSession,
    settings: AppSettings,
) -> CertificateGenerateResponse:
    """Issue a certificate, render its PDF and optionally e-mail it."""
    try:
        issued = await issue_certificate(
            db,
            settings,
            recipient_name=body.recipient_name,
            recipient_email=body.recipient_email,
            resource_name=body.resource_name,
            issuer_name=body.issuer_name,
            auto_email=body.auto_email,
        )
    except CertificateValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    message = (
        ISSUED_DELIVERY_FAILED_MESSAGE if issued.email_sent is False else ISSUED_MESSAGE
    )
    return CertificateGenerateResponse(
        message=message,
        certificate_id=issued.certificate_id,
        pdf_path=issued.artifact_ref,
        verification_hash=issued.verification_token,
    )


@router.get(
    "",
    response_model=CertificateListResponse,
    responses=_ADMIN_RESPONSES,
    dependencies=[AdminAuth],
)
async def list_certificates_endpoint(
    db: DbSession,
    page: int = Query(default=0, description="Zero-based page index"),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, description="Page size"),
) -> CertificateListResponse:
    """List certificates, most recently issued first (admin)."""
    result = await list_certificates(db, page=page, limit=limit)
    return CertificateListResponse(
        page=result.page,
        limit=result.limit,
        results=[
            CertificateRecordResponse(**certificate.model_dump())
            for certificate in result.results
        ],
    )


# --- Literal path routes (before parameterized) ---


@router.get(
    "/verify/{token}",
    response_model=CertificateVerifyResponse,
    responses={404: {"description": "Certificate not found or invalid"}},
)
async def verify_certificate_endpoint(
    token: str,
    db: DbSession,
) -> CertificateVerifyResponse | JSONResponse:
    """Public verification endpoint used by the QR code.

    Never returns the recipient's e-mail address or the token itself.
    """
    result = await verify_certificate(db, token)

    if not result.is_valid or result.certificate is None:
        return JSONResponse(
            status_code=404,
            content={"valid": False, "message": VERIFY_MISS_MESSAGE},
        )

    certificate = result.certificate
    return CertificateVerifyResponse(
        valid=True,
        certificate_id=certificate.certificate_id,
        recipient_name=certificate.recipient_name,
        resource_name=certificate.resource_name,
        issuer_name=certificate.issuer_name,
        issued_at=certificate.issued_at,
        artifact_ref=certificate.artifact_ref,
    )


# --- Parameterized routes ---


@router.get(
    "/{certificate_id}",
    response_model=CertificateRecordResponse,
    responses={
        **_ADMIN_RESPONSES,
        404: {"model": MessageResponse, "description": "Certificate not found"},
    },
    dependencies=[AdminAuth],
)
async def get_certificate_endpoint(
    certificate_id: str,
    db: DbSession,
) -> CertificateRecordResponse:
    """Full certificate record, including e-mail and token (admin)."""
    try:
        certificate = await get_certificate(db, certificate_id)
    except CertificateNotFoundError:
        raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)

    return CertificateRecordResponse(**certificate.model_dump())


@router.delete(
    "/{certificate_id}",
    response_model=MessageResponse,
    responses={
        **_ADMIN_RESPONSES,
        404: {"model": MessageResponse, "description": "Certificate not found"},
    },
    dependencies=[AdminAuth],
)
async def delete_certificate_endpoint(
    certificate_id: str,
    db: DbSession,
    settings: AppSettings,
) -> MessageResponse:
    """Delete a certificate record and its PDF (admin)."""
    try:
        await delete_certificate(db, settings, certificate_id)
    except CertificateNotFoundError:
        raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)

    return MessageResponse(message="Deleted")
