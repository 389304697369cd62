"""
Request dependencies: the engine instance and the acting user.

Authentication happens upstream; the verified identity arrives in the
X-User-Id, X-User-Name and X-User-Role headers.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from backoffice.config import load_settings
from backoffice.domain.errors import (
    BackOfficeError,
    ConflictError,
    InvariantViolationError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)
from backoffice.domain.user import ActingUser, UserRole
from backoffice.engine import BackOffice

_STATUS_CODES = (
    (ValidationError, 400),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (InvariantViolationError, 422),
    (StorageError, 503),
)


def get_engine(request: Request) -> BackOffice:
    """The process-wide engine, built from settings on first use."""

    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        settings = getattr(request.app.state, "settings", None) or load_settings()
        engine = BackOffice.from_settings(settings)
        request.app.state.engine = engine
    return engine


def get_acting_user(
    x_user_id: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> ActingUser:
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="X-User-Id and X-User-Role headers are required")
    try:
        role = UserRole(x_user_role.strip().lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role: {x_user_role}")
    return ActingUser(user_id=x_user_id, name=x_user_name or "", role=role)


def to_http_exception(error: BackOfficeError) -> HTTPException:
    """Translate an engine error into the matching HTTP status."""

    for error_type, status_code in _STATUS_CODES:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


EngineDep = Depends(get_engine)
ActingUserDep = Depends(get_acting_user)
