"""Pydantic schemas for API request/response validation.

The HTTP contract keeps the original camel-case JSON keys (userName,
pdfPath, verificationHash, ...) through field aliases; Python code uses the
snake_case field names.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MessageResponse(BaseModel):
    """Plain message body used for errors and simple acknowledgements."""

    message: str


class HealthResponse(BaseModel):
    status: str
    service: str


# ============ Certificate Schemas ============


class CertificateGenerateRequest(BaseModel):
    """Request to issue a certificate.

    Required fields are optional at the schema level so blank or missing
    values reach the issuance service, which rejects them with a 400.
    """

    model_config = ConfigDict(populate_by_name=True)

    recipient_name: str | None = Field(default=None, alias="userName")
    recipient_email: str | None = Field(default=None, alias="userEmail")
    resource_name: str | None = Field(default=None, alias="resourceName")
    issuer_name: str | None = Field(default=None, alias="issuer")
    auto_email: bool = Field(default=False, alias="autoEmail")


class CertificateGenerateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    certificate_id: str = Field(alias="certificateId")
    pdf_path: str = Field(alias="pdfPath")
    verification_hash: str = Field(alias="verificationHash")


class CertificateRecordResponse(BaseModel):
    """Full certificate record (admin only)."""

    model_config = ConfigDict(populate_by_name=True)

    certificate_id: str = Field(alias="certificateId")
    recipient_name: str = Field(alias="userName")
    recipient_email: str = Field(alias="userEmail")
    resource_name: str = Field(alias="resourceName")
    issuer_name: str | None = Field(default=None, alias="issuer")
    issued_at: datetime = Field(alias="issuedAt")
    artifact_ref: str = Field(alias="pdfPath")
    verification_token: str = Field(alias="verificationHash")
    extra: dict[str, Any] | None = None


class CertificateListResponse(BaseModel):
    page: int
    limit: int
    results: list[CertificateRecordResponse]


class CertificateVerifyResponse(BaseModel):
    """Public verification result.

    Deliberately has no e-mail or token field.
    """

    model_config = ConfigDict(populate_by_name=True)

    valid: bool
    certificate_id: str = Field(alias="certificateId")
    recipient_name: str = Field(alias="userName")
    resource_name: str = Field(alias="resourceName")
    issuer_name: str | None = Field(default=None, alias="issuer")
    issued_at: datetime = Field(alias="issuedAt")
    artifact_ref: str = Field(alias="pdfPath")


# ============ Service-layer data ============


class CertificateData(BaseModel):
    """Full certificate record as seen by the service layer."""

    model_config = ConfigDict(from_attributes=True)

    certificate_id: str
    recipient_name: str
    recipient_email: str
    resource_name: str
    issuer_name: str | None = None
    issued_at: datetime
    artifact_ref: str
    verification_token: str
    extra: dict[str, Any] | None = None


class PublicCertificate(BaseModel):
    """The fixed public projection returned by verification."""

    model_config = ConfigDict(from_attributes=True)

    certificate_id: str
    recipient_name: str
    resource_name: str
    issuer_name: str | None = None
    issued_at: datetime
    artifact_ref: str


class VerificationResult(BaseModel):
    is_valid: bool
    certificate: PublicCertificate | None = None


class IssuedCertificate(BaseModel):
    """Identifiers returned to the caller after a successful issuance."""

    certificate_id: str
    artifact_ref: str
    verification_token: str
    verify_url: str
    issued_at: datetime
    email_sent: bool | None = None  # None when no e-mail was requested


class CertificatePage(BaseModel):
    """One page of the admin listing, with the normalised paging values."""

    page: int
    limit: int
    results: list[CertificateData]
