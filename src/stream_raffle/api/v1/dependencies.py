"""Shared API dependencies for authorization and result translation."""

import logging
import secrets
from typing import Annotated, Any, NoReturn

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from stream_raffle.core.settings import settings
from stream_raffle.db.session import get_db
from stream_raffle.services.results import ServiceResult
from stream_raffle.services.weight_settings import WeightSettingsStore, get_weight_settings_store

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for shared-secret authorization
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_settings_store_dep() -> WeightSettingsStore:
    """Return the shared weight settings store."""
    return get_weight_settings_store()


SettingsStoreDep = Annotated[WeightSettingsStore, Depends(get_settings_store_dep)]


def _check_token(presented: str, expected: str | None) -> None:
    if not expected:
        logger.error("Shared secret is not configured; refusing request")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration missing",
        )
    if not secrets.compare_digest(presented.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized access",
        )


def require_admin(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> None:
    """Allow the request only with the configured admin token."""
    _check_token(credentials.credentials, settings.admin_token)


def require_ingress(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> None:
    """Allow the request only with the configured event-ingress token."""
    _check_token(credentials.credentials, settings.ingress_token)


def raise_for_failure(result: ServiceResult[Any]) -> NoReturn:
    """Translate a failed service result into an HTTP error."""
    if result.ok or result.error is None:
        raise ValueError("raise_for_failure needs a failed result")
    raise HTTPException(
        status_code=result.error.http_status,
        detail={
            "code": result.error.value,
            "message": result.message,
            "retryable": result.error.retryable,
        },
    )
