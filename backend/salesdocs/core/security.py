from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from salesdocs.core.config import Settings, get_settings


security = HTTPBasic(auto_error=False, realm="salesdocs")

_CHALLENGE = {"WWW-Authenticate": 'Basic realm="salesdocs"'}


def _credentials_match(credentials: HTTPBasicCredentials, settings: Settings) -> bool:
    user_ok = secrets.compare_digest(credentials.username.encode(), settings.basic_auth_username.encode())
    pass_ok = secrets.compare_digest(credentials.password.encode(), settings.basic_auth_password.encode())
    return user_ok and pass_ok


def require_actor(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    """Resolve the audit actor for a request; every write endpoint records it."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Authentication required", headers=_CHALLENGE)
    if not _credentials_match(credentials, get_settings()):
        raise HTTPException(status_code=401, detail="Invalid credentials", headers=_CHALLENGE)
    return credentials.username
