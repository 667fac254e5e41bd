"""Repository layer for database operations.

Repositories encapsulate all database queries, keeping routes and services
free of SQL. They flush but never commit; the caller owns the transaction.
"""

from repositories.certificate_repository import (
    CertificateRepository,
    UniqueConstraintViolation,
)
from repositories.utils import log_slow_query

__all__ = [
    "CertificateRepository",
    "UniqueConstraintViolation",
    "log_slow_query",
]
