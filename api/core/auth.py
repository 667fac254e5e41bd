"""Admin authentication for the certificate management endpoints.

A single shared bearer secret (ADMIN_TOKEN) guards the admin API. The secret
is taken from the Settings instance stored on ``app.state`` at startup, so
tests and alternate deployments can inject their own configuration.

- Missing Authorization header -> 401
- Malformed header, wrong token, or no token configured -> 403
"""

from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from core.config import Settings
from core.logger import get_logger
from core.wide_event import set_wide_event_fields

logger = get_logger(__name__)


def get_app_settings(request: Request) -> Settings:
    """Settings injected into the app at startup."""
    return request.app.state.settings


AppSettings = Annotated[Settings, Depends(get_app_settings)]


def _token_matches(presented: str, expected: str) -> bool:
    if not expected:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())


def require_admin(request: Request, settings: AppSettings) -> None:
    """Raises 401/403 unless the request carries the admin bearer token."""
    auth = request.headers.get("authorization")
    if not auth:
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    parts = auth.split(" ")
    if (
        len(parts) != 2
        or parts[0] != "Bearer"
        or not _token_matches(parts[1], settings.admin_token)
    ):
        logger.warning("admin.auth.rejected", path=request.url.path)
        raise HTTPException(status_code=403, detail="Forbidden")

    set_wide_event_fields(admin=True)


AdminAuth = Depends(require_admin)
