"""API key authentication logic.

Two key sets are configured through environment variables:

- ``APP_API_KEYS``: clients allowed to consume quotas (``/v1/quota/*``).
- ``APP_ADMIN_API_KEYS``: operators allowed to manage rules and read the
  overage ledger (``/v1/rules``, ``/v1/overages``). Admin keys may also
  consume quotas.

Design principles:
- Dependency Injection: used via FastAPI Depends() for loose coupling
- Configuration-driven: keys managed via env vars, not hardcoded
- Testable: pure validation function with minimal dependencies
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Header, HTTPException, status

from quota_api.core.config import settings
from quota_api.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Args:
        keys_string: Comma-separated string of API keys, or None.

    Returns:
        Set of trimmed, non-empty API keys.

    Examples:
        >>> sorted(parse_api_keys("key1, key2 ,key1"))
        ['key1', 'key2']
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()
    return {key.strip() for key in keys_string.split(",") if key.strip()}


def _allowed_keys(admin: bool) -> set[str]:
    admin_keys = parse_api_keys(settings.app.admin_api_keys)
    if admin:
        return admin_keys
    return parse_api_keys(settings.app.api_keys) | admin_keys


def _key_hash(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def validate_api_key(provided_key: str, *, admin: bool = False) -> None:
    """Validate a provided API key against the configured key set.

    Args:
        provided_key: API key to validate.
        admin: Require an admin key instead of a client key.

    Raises:
        AuthenticationAppError: If the key is not accepted, or authentication
            is required but the relevant key set is empty.
    """
    if not settings.app.api_key_required:
        return

    scope = "admin" if admin else "client"
    valid_keys = _allowed_keys(admin)

    if not valid_keys:
        logger.error(
            "api_key_validation_failed",
            extra={"reason": "api_keys_not_configured", "scope": scope},
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message=f"API key authentication is enabled but no {scope} keys are configured",
            details={
                "hint": "Set APP_API_KEYS / APP_ADMIN_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"
            },
        )

    if provided_key not in valid_keys:
        logger.warning(
            "api_key_validation_failed",
            extra={
                "reason": "invalid_api_key",
                "scope": scope,
                "api_key_hash": _key_hash(provided_key),
            },
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


def _check_header(x_api_key: str | None, *, admin: bool) -> None:
    if not settings.app.api_key_required:
        logger.debug("auth.skipped", extra={"reason": "auth_required_false"})
        return

    if not x_api_key:
        logger.warning("auth.missing_key", extra={"admin": admin})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing API key. Provide X-API-Key header.",
        )

    try:
        validate_api_key(x_api_key, admin=admin)
    except AuthenticationAppError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=exc.message,
        ) from exc

    logger.debug("auth.success", extra={"admin": admin, "api_key_hash": _key_hash(x_api_key)})


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency accepting client or admin keys.

    Raises:
        HTTPException: 403 Forbidden if authentication fails.
    """
    _check_header(x_api_key, admin=False)


async def verify_admin_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency accepting admin keys only.

    Raises:
        HTTPException: 403 Forbidden if authentication fails.
    """
    _check_header(x_api_key, admin=True)
