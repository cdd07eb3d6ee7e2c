from __future__ import annotations

import hashlib
import logging
import secrets
import uuid
from typing import Callable, Dict, List, Optional, Protocol

from app.errors import InvalidInput, NotFound
from app.models import AuthSession

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[AuthSession]], None]
Unsubscribe = Callable[[], None]


class AuthBackend(Protocol):
    """Account provider contract. The search pipeline only ever reads the current session."""

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> AuthSession: ...

    async def sign_in(self, email: str, password: str) -> AuthSession: ...

    async def sign_out(self) -> None: ...

    async def sign_in_with_federated_provider(self) -> AuthSession: ...

    async def send_password_reset(self, email: str) -> None: ...

    def subscribe(self, listener: SessionListener) -> Unsubscribe: ...


class SessionObserver:
    """Holds the current session value, fed by one subscription on the backend."""

    def __init__(self, backend: AuthBackend) -> None:
        self.current: Optional[AuthSession] = None
        self._unsubscribe = backend.subscribe(self._on_change)

    def _on_change(self, session: Optional[AuthSession]) -> None:
        self.current = session

    @property
    def is_authenticated(self) -> bool:
        return self.current is not None

    def close(self) -> None:
        self._unsubscribe()


def _hash_password(password: str, salt: str) -> str:
    return hashlib.sha256(f"{salt}:{password}".encode("utf-8")).hexdigest()


class InMemoryAuthBackend:
    """Process-local account store for development and tests."""

    def __init__(self) -> None:
        self._accounts: Dict[str, Dict[str, str]] = {}
        self._listeners: List[SessionListener] = []
        self._current: Optional[AuthSession] = None
        self.password_resets: List[str] = []

    def _set_current(self, session: Optional[AuthSession]) -> None:
        self._current = session
        for listener in list(self._listeners):
            listener(session)

    def subscribe(self, listener: SessionListener) -> Unsubscribe:
        self._listeners.append(listener)
        # new subscribers learn the current value straight away
        listener(self._current)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> AuthSession:
        email = email.strip().lower()
        if not email or "@" not in email:
            raise InvalidInput("A valid email is required")
        if len(password) < 6:
            raise InvalidInput("Password must be at least 6 characters")
        if email in self._accounts:
            raise InvalidInput("Email already registered")

        salt = secrets.token_hex(8)
        self._accounts[email] = {
            "uid": uuid.uuid4().hex,
            "salt": salt,
            "password": _hash_password(password, salt),
            "display_name": display_name or "",
        }
        return await self.sign_in(email, password)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        account = self._accounts.get(email.strip().lower())
        if account is None or account["password"] != _hash_password(password, account["salt"]):
            raise InvalidInput("Invalid email or password")
        session = AuthSession(
            uid=account["uid"],
            email=email.strip().lower(),
            display_name=account["display_name"] or None,
        )
        self._set_current(session)
        logger.info("Signed in %s", session.uid)
        return session

    async def sign_out(self) -> None:
        self._set_current(None)

    async def sign_in_with_federated_provider(self) -> AuthSession:
        session = AuthSession(uid=uuid.uuid4().hex, email="guest@federated.local", display_name="Guest")
        self._set_current(session)
        return session

    async def send_password_reset(self, email: str) -> None:
        email = email.strip().lower()
        if email not in self._accounts:
            raise NotFound("No account for that email")
        self.password_resets.append(email)
