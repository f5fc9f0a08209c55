"""
In-memory session store.

Why: The cookie carries only an opaque session id; the identity (sub, name,
roles) stays server-side and is handed to each request as ``request.state.user``.
For multi-process deployments replace with a Redis/DB-backed store.

Lifecycle: created at ``POST /auth/session``, removed at logout, and dropped
lazily on the first lookup after ``expires_at``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional
import secrets
import time


def _now() -> int:
    return int(time.time())


@dataclass
class SessionRecord:
    session_id: str
    sub: str
    name: str
    roles: list[str] = field(default_factory=list)
    expires_at: Optional[int] = None


class SessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}

    def create(self, *, sub: str, name: str, roles: list[str], ttl_seconds: int = 3600) -> SessionRecord:
        sid = secrets.token_urlsafe(24)
        rec = SessionRecord(session_id=sid, sub=sub, name=name, roles=list(roles), expires_at=_now() + ttl_seconds)
        self._data[sid] = rec
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at and rec.expires_at < _now():
            self._data.pop(session_id, None)
            return None
        return rec

    def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)


__all__ = ["SessionRecord", "SessionStore"]
