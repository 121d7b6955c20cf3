import hmac
import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import HTTPException, Request

from app.core.config import get_settings

logger = logging.getLogger(__name__)

SESSION_AUDIENCE = "water-service-admin"
SESSION_ALGORITHM = "HS256"
ADMIN_HOME = "/admin"

# Process-local secret used when SESSION_SECRET is unset (dev only; sessions die on restart).
_fallback_secret = secrets.token_urlsafe(48)


@dataclass(frozen=True)
class AdminSession:
    session_id: str
    username: str
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at


class SessionRevocationList:
    """Remembers revoked session ids until their tokens would have expired anyway."""

    def __init__(self) -> None:
        self._revoked: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def revoke(self, session: AdminSession) -> None:
        with self._lock:
            self._revoked[session.session_id] = session.expires_at

    def is_revoked(self, session_id: str) -> bool:
        now = datetime.now(timezone.utc)
        with self._lock:
            self._prune(now)
            return session_id in self._revoked

    def _prune(self, now: datetime) -> None:
        stale = [sid for sid, expires_at in self._revoked.items() if expires_at <= now]
        for sid in stale:
            del self._revoked[sid]

    def reset(self) -> None:
        with self._lock:
            self._revoked.clear()


revoked_sessions = SessionRevocationList()


def _signing_secret() -> str:
    return get_settings().session_secret or _fallback_secret


def authenticate_admin(username: Optional[str], password: Optional[str]) -> bool:
    settings = get_settings()
    if not username or not password:
        return False
    user_ok = hmac.compare_digest(username.strip().encode("utf-8"), settings.admin_username.encode("utf-8"))
    pass_ok = hmac.compare_digest(password.encode("utf-8"), settings.admin_password.encode("utf-8"))
    return user_ok and pass_ok


def create_admin_session(username: str, now: Optional[datetime] = None) -> tuple[AdminSession, str]:
    settings = get_settings()
    issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    session = AdminSession(
        session_id=secrets.token_urlsafe(16),
        username=username,
        issued_at=issued_at,
        expires_at=issued_at + timedelta(hours=settings.session_ttl_hours),
    )
    payload = {
        "sid": session.session_id,
        "sub": session.username,
        "aud": SESSION_AUDIENCE,
        "iat": int(session.issued_at.timestamp()),
        "exp": int(session.expires_at.timestamp()),
    }
    token = jwt.encode(payload, _signing_secret(), algorithm=SESSION_ALGORITHM)
    return session, token


def read_admin_session(token: Optional[str]) -> Optional[AdminSession]:
    """Return the session carried by ``token``; None when invalid, expired or revoked."""
    if not token:
        return None
    try:
        payload = jwt.decode(
            token,
            _signing_secret(),
            algorithms=[SESSION_ALGORITHM],
            audience=SESSION_AUDIENCE,
        )
    except jwt.InvalidTokenError as exc:
        logger.debug("Admin session rejected: %s", exc)
        return None

    session_id = payload.get("sid")
    username = payload.get("sub")
    if not session_id or not username:
        return None
    if revoked_sessions.is_revoked(session_id):
        return None

    return AdminSession(
        session_id=session_id,
        username=username,
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def revoke_admin_session(session: AdminSession) -> None:
    revoked_sessions.revoke(session)


def _token_from_request(request: Request) -> Optional[str]:
    authorization = request.headers.get("authorization") or ""
    if authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip()
    return request.cookies.get(get_settings().session_cookie_name)


def require_admin_session(request: Request) -> AdminSession:
    session = read_admin_session(_token_from_request(request))
    if session is None:
        raise HTTPException(401, "Admin login required")
    return session


def safe_redirect_target(raw: Optional[str]) -> str:
    target = (raw or "").strip()
    if target.startswith(ADMIN_HOME) and not target.startswith("//"):
        return target
    return ADMIN_HOME
