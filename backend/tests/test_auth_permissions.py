from __future__ import annotations

import time
from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from app.auth import (
    DEPARTMENT_PERMISSIONS,
    ROLE_PERMISSIONS,
    PermissionChecker,
    check_permission,
    decode_token,
    get_current_user,
)
from app.config import settings
from app.domain_errors import PermissionDeniedError


def _user(role: str, department: str | None = None):
    return SimpleNamespace(id=uuid4(), role=role, department=department)


def _token(**claims) -> str:
    payload = {"type": "access", "exp": int(time.time()) + 600, "ver": 0, **claims}
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


@pytest.mark.parametrize(
    ("role", "department", "expected"),
    [
        ("ADMIN", None, {"canIssueDocuments": True, "canCloseJobs": True, "canMigrateArchive": True}),
        ("MANAGER", "CAR_SERVICE", {"canIssueDocuments": True, "canCloseJobs": True, "canMigrateArchive": True}),
        ("OFFICER", None, {"canIssueDocuments": True, "canCloseJobs": False, "canMigrateArchive": False}),
        ("OFFICER", "OFFICE", {"canIssueDocuments": True, "canCloseJobs": True, "canMigrateArchive": False}),
        ("WORKER", "MECHANIC", {"canIssueDocuments": False, "canCloseJobs": False, "canMigrateArchive": False}),
        ("WORKER", "MANAGEMENT", {"canIssueDocuments": True, "canCloseJobs": True, "canMigrateArchive": True}),
        ("VIEWER", None, {"canIssueDocuments": False, "canCloseJobs": False, "canMigrateArchive": False}),
    ],
)
def test_role_and_department_grant_permissions(role, department, expected) -> None:
    user = _user(role, department)

    assert {key: check_permission(user, key) for key in expected} == expected


def test_role_matrix_keys_are_consistent() -> None:
    keys = set(ROLE_PERMISSIONS["ADMIN"])
    for permissions in list(ROLE_PERMISSIONS.values()) + list(DEPARTMENT_PERMISSIONS.values()):
        assert set(permissions) == keys


def test_unknown_role_has_no_permissions() -> None:
    assert check_permission(_user("GHOST"), "canIssueDocuments") is False


def test_permission_checker_raises_domain_error() -> None:
    checker = PermissionChecker("canMigrateArchive")

    with pytest.raises(PermissionDeniedError) as exc_info:
        checker(current_user=_user("OFFICER", "OFFICE"))

    assert exc_info.value.code == "PERMISSION_DENIED"
    assert exc_info.value.http_status == 403


def test_permission_checker_returns_allowed_user() -> None:
    user = _user("MANAGER")

    assert PermissionChecker("canCloseJobs")(current_user=user) is user


def test_decode_token_rejects_expired_and_tampered_tokens() -> None:
    assert decode_token(_token(sub="abc"))["sub"] == "abc"

    with pytest.raises(HTTPException) as expired:
        decode_token(_token(sub="abc", exp=int(time.time()) - 3600))
    assert expired.value.status_code == 401

    with pytest.raises(HTTPException):
        decode_token(_token(sub="abc") + "x")


def test_get_current_user_resolves_active_user(db, officer) -> None:
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=_token(sub=str(officer.id)))

    assert get_current_user(credentials=credentials, db=db).id == officer.id


def test_get_current_user_rejects_revoked_token(db, officer) -> None:
    officer.token_version = 3
    db.commit()
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=_token(sub=str(officer.id), ver=2))

    with pytest.raises(HTTPException) as exc_info:
        get_current_user(credentials=credentials, db=db)

    assert exc_info.value.status_code == 401


def test_get_current_user_rejects_refresh_tokens(db, officer) -> None:
    credentials = HTTPAuthorizationCredentials(
        scheme="Bearer",
        credentials=_token(sub=str(officer.id), type="refresh"),
    )

    with pytest.raises(HTTPException):
        get_current_user(credentials=credentials, db=db)
