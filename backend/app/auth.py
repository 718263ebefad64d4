"""Authentication (token verification) and role/department authorization."""
import logging
import time
from uuid import UUID

from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .domain_errors import PermissionDeniedError
from .models import User

logger = logging.getLogger(__name__)

# Bearer token scheme
security = HTTPBearer()


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> dict:
    """Decode JWT token issued by the identity service."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError:
        raise _credentials_error()

    now = int(time.time())
    exp = payload.get("exp")
    if exp is None:
        raise _credentials_error()
    try:
        exp_int = int(exp)
    except (TypeError, ValueError):
        raise _credentials_error()
    if now > exp_int + int(settings.JWT_LEEWAY_SECONDS):
        raise _credentials_error("Token expired")
    return payload


def _parse_token_subject(payload: dict) -> UUID:
    """Parse and validate JWT subject as UUID."""
    sub = payload.get("sub")
    if not sub:
        raise _credentials_error()
    try:
        return UUID(str(sub))
    except ValueError:
        raise _credentials_error()


def _assert_token_not_revoked(user: User, payload: dict) -> None:
    try:
        token_ver = int(payload.get("ver", 0))
    except (TypeError, ValueError):
        raise _credentials_error()
    if user.token_version != token_ver:
        raise _credentials_error("Token has been revoked")


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the bearer token to an active user profile."""
    payload = decode_token(credentials.credentials)

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    user_id = _parse_token_subject(payload)
    user = db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )

    _assert_token_not_revoked(user, payload)
    return user


# Role permissions matrix
ROLE_PERMISSIONS = {
    "ADMIN": {
        "canIssueDocuments": True,
        "canCloseJobs": True,
        "canMigrateArchive": True,
    },
    "MANAGER": {
        "canIssueDocuments": True,
        "canCloseJobs": True,
        "canMigrateArchive": True,
    },
    "OFFICER": {
        "canIssueDocuments": True,
        "canCloseJobs": False,
        "canMigrateArchive": False,
    },
    "WORKER": {
        "canIssueDocuments": False,
        "canCloseJobs": False,
        "canMigrateArchive": False,
    },
    "VIEWER": {
        "canIssueDocuments": False,
        "canCloseJobs": False,
        "canMigrateArchive": False,
    },
}

# Department grants are additive to the role matrix.
DEPARTMENT_PERMISSIONS = {
    "MANAGEMENT": {
        "canIssueDocuments": True,
        "canCloseJobs": True,
        "canMigrateArchive": True,
    },
    "OFFICE": {
        "canIssueDocuments": True,
        "canCloseJobs": True,
        "canMigrateArchive": False,
    },
}


def check_permission(user: User, permission: str) -> bool:
    """Check if user has specific permission via role or department."""
    if ROLE_PERMISSIONS.get(user.role, {}).get(permission, False):
        return True
    department = getattr(user, "department", None)
    return DEPARTMENT_PERMISSIONS.get(department, {}).get(permission, False)


class PermissionChecker:
    """FastAPI dependency enforcing one permission before the handler runs."""

    def __init__(self, required_permission: str):
        self.required_permission = required_permission

    def __call__(self, current_user: User = Depends(get_current_user)):
        if not check_permission(current_user, self.required_permission):
            logger.warning(
                "Permission %s denied for user %s (role=%s, department=%s)",
                self.required_permission,
                current_user.id,
                current_user.role,
                current_user.department,
            )
            raise PermissionDeniedError(
                f"Permission denied: {self.required_permission} required"
            )
        return current_user
