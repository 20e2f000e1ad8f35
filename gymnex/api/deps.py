import secrets
from collections.abc import Callable
from typing import Annotated
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session
from ..config import get_settings
from ..core import security
from ..core.constants import MEMBER_ACTOR
from ..core.errors import EnrollmentError
from ..db.session import SessionLocal, get_db
from ..db.models import AdminUser
from ..services.enrollment_service import ClassEnrollmentFacade
from ..services.transactions import ClassLockRegistry


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

# Shared by every request handled by this process
class_locks = ClassLockRegistry()

_ERROR_STATUS = {
    "precondition": status.HTTP_409_CONFLICT,
    "invalid": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "not_found": status.HTTP_404_NOT_FOUND,
    "contention": status.HTTP_503_SERVICE_UNAVAILABLE,
    "deadline": status.HTTP_504_GATEWAY_TIMEOUT,
}


def get_session_factory() -> Callable[[], Session]:
    return SessionLocal


def get_enrollment(
    session_factory: Annotated[Callable[[], Session], Depends(get_session_factory)],
) -> ClassEnrollmentFacade:
    return ClassEnrollmentFacade(session_factory, locks=class_locks)


def enrollment_http_error(exc: EnrollmentError) -> HTTPException:
    return HTTPException(
        status_code=_ERROR_STATUS.get(exc.category, status.HTTP_400_BAD_REQUEST),
        detail=exc.as_dict(),
    )


def _admin_from_token(db: Session, token: str) -> AdminUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )
    try:
        payload = security.decode_access_token(token)
    except JWTError as exc:
        raise credentials_exception from exc
    user_id = payload.get("sub")
    if user_id is None:
        raise credentials_exception
    user = db.get(AdminUser, int(user_id))
    if user is None:
        raise credentials_exception
    return user


def get_current_admin(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[Session, Depends(get_db)],
) -> AdminUser:
    return _admin_from_token(db, token)


def verify_service_token(
    x_service_token: Annotated[str | None, Header()] = None,
) -> None:
    expected = get_settings().service_api_token
    if (
        not expected
        or not x_service_token
        or not secrets.compare_digest(x_service_token, expected)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid service token"
        )


def get_caller(
    token: Annotated[str | None, Depends(optional_oauth2_scheme)],
    db: Annotated[Session, Depends(get_db)],
    x_service_token: Annotated[str | None, Header()] = None,
) -> str:
    """Actor name for member-facing writes: the admin's login, or ``member`` for the member app."""
    if token:
        return _admin_from_token(db, token).login
    verify_service_token(x_service_token)
    return MEMBER_ACTOR


def require_roles(*roles: str):
    def dependency(user: Annotated[AdminUser, Depends(get_current_admin)]) -> AdminUser:
        if user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return user

    return dependency
