"""
Shared-secret check for the mutating edit endpoints.

Edits, merges and enhance requests spend FFmpeg time and write to the
artifact store, so deployments set ``VEDIT_API_KEY`` and callers echo it in
the ``X-Vedit-API-Key`` header. Read-only endpoints (health, presets) stay open.
"""

import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from vedit_engine.config import get_settings

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-Vedit-API-Key"


def _unauthorized(reason: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=reason,
        headers={"WWW-Authenticate": API_KEY_HEADER},
    )


async def verify_api_key(
    api_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
) -> None:
    """
    Reject edit requests that do not carry the configured key.

    With no key configured every caller is accepted, which is how local
    runs and the test suite use the service.

    Raises:
        HTTPException: 401 when the header is absent or does not match
    """
    configured = get_settings().vedit_api_key
    if not configured:
        return

    if api_key is None:
        logger.warning(f"Edit request without {API_KEY_HEADER}")
        raise _unauthorized("Missing API key")

    if not secrets.compare_digest(api_key.encode(), configured.encode()):
        logger.warning("Edit request with a wrong API key")
        raise _unauthorized("Invalid API key")
