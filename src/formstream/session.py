"""Signed, time-limited session cookies."""

from __future__ import annotations

import typing

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

__all__ = ["SESSION_COOKIE", "SessionManager"]

SESSION_COOKIE = "session"


class SessionManager:
    """Issue and verify the cookie that identifies a logged-in user."""

    def __init__(self, secret: str, timeout: int, *, salt: str = "formstream") -> None:
        self._serializer = URLSafeTimedSerializer(secret, salt=salt)
        self.timeout = timeout

    def create_cookie(self, subject: str) -> str:
        """Return a signed cookie value for the login *subject*."""
        return self._serializer.dumps({"sub": subject})

    def verify_cookie(self, cookie: str) -> str | None:
        """Return the subject stored in *cookie*, or ``None`` if it is unusable.

        Expired cookies, bad signatures and payloads without a string subject
        are all treated the same way.
        """
        try:
            data = typing.cast(
                "dict[str, typing.Any]",
                self._serializer.loads(cookie, max_age=self.timeout),
            )
        except (SignatureExpired, BadSignature):
            return None
        subject = data.get("sub") if isinstance(data, dict) else None
        return subject if isinstance(subject, str) else None
