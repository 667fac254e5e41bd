"""Certificate identifier and verification token generation."""

import hashlib
import secrets
import time

CERTIFICATE_ID_PREFIX = "CERT-"
CERTIFICATE_ID_LENGTH = 8

# Uppercase alphanumerics without the look-alikes 0/O and 1/I (32 symbols)
CERTIFICATE_ID_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"


def generate_certificate_id() -> str:
    """Generate a human-readable certificate id.

    Format: CERT-XXXXXXXX (8 characters from a 32-symbol alphabet, 2^40
    values). Uniqueness is enforced downstream by the database and by
    exclusive artifact creation, not here.
    """
    suffix = "".join(
        secrets.choice(CERTIFICATE_ID_ALPHABET) for _ in range(CERTIFICATE_ID_LENGTH)
    )
    return f"{CERTIFICATE_ID_PREFIX}{suffix}"


def generate_verification_token(certificate_id: str, recipient_email: str) -> str:
    """Derive the public verification token for a certificate.

    sha256 over "<certificate_id>:<recipient_email>:<epoch millis>", as 64
    lowercase hex characters. The timestamp makes the token an opaque lookup
    key: a verifier cannot recompute it from the printed fields.
    """
    epoch_ms = time.time_ns() // 1_000_000
    data = f"{certificate_id}:{recipient_email}:{epoch_ms}"
    return hashlib.sha256(data.encode()).hexdigest()
