"""Work out who is calling from a request's credentials.

Credential sources are tried in a fixed order and the first that resolves to
an active user wins:

1. a signed session token (JWT) from a session cookie or ``Authorization``
   header;
2. a bearer credential naming a user directly (``Bearer user:<id>`` or
   ``Bearer <id>``);
3. the legacy plain cookie holding a user id.

No source resolving means the caller is unauthenticated. It never means a
guest role.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, Sequence

from jose import JWTError, jwt
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from starlette.requests import HTTPConnection

from ..config import (
    get_legacy_auth_cookie,
    get_session_cookie_names,
    get_session_jwt_algorithm,
    get_session_jwt_secret,
)
from ..models import Role, User
from .roles import DEFAULT_ROLE_NAME, normalize_role

logger = logging.getLogger(__name__)

USER_REFERENCE_PREFIX = "user:"
MIN_USER_REFERENCE_LENGTH = 8


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str
    group_id: int = 0
    email: Optional[str] = None
    source: str = ""

    @property
    def has_group(self) -> bool:
        return bool(self.group_id)


def load_identity(session: Session, user_id: str, *, source: str = "") -> Optional[Identity]:
    """Build an :class:`Identity` for ``user_id`` or return ``None``.

    Unknown and inactive users do not resolve. A missing group is reported as
    ``0``.
    """

    if not user_id:
        return None
    user = session.get(User, user_id)
    if user is None:
        return None
    if not user.is_active:
        logger.warning("Rejected credential for inactive user", extra={"target_user_id": user.id, "source": source})
        return None
    role_name = DEFAULT_ROLE_NAME
    if user.role_id is not None:
        role = session.get(Role, user.role_id)
        if role is not None and role.name:
            role_name = role.name
    return Identity(
        user_id=str(user.id),
        role=normalize_role(role_name),
        group_id=user.group_id or 0,
        email=user.email or None,
        source=source,
    )


def extract_bearer_token(conn: HTTPConnection) -> Optional[str]:
    header = conn.headers.get("authorization")
    if not header:
        return None
    parts = header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


class CredentialProvider(Protocol):
    name: str

    def try_resolve(self, conn: HTTPConnection, session: Session) -> Optional[Identity]:
        """Return the identity carried by ``conn`` or ``None``."""


class SessionTokenProvider:
    name = "session_token"

    def __init__(
        self,
        secret: Optional[str],
        *,
        algorithm: str = "HS256",
        cookie_names: Sequence[str] = (),
    ) -> None:
        self.secret = secret
        self.algorithm = algorithm
        self.cookie_names = tuple(cookie_names)

    def _candidate_tokens(self, conn: HTTPConnection) -> List[str]:
        tokens = [conn.cookies[name] for name in self.cookie_names if conn.cookies.get(name)]
        bearer = extract_bearer_token(conn)
        # Only JWT-shaped bearer values; plain user references belong to the next provider.
        if bearer and bearer.count(".") == 2:
            tokens.append(bearer)
        return tokens

    def try_resolve(self, conn: HTTPConnection, session: Session) -> Optional[Identity]:
        if not self.secret:
            return None
        for token in self._candidate_tokens(conn):
            try:
                payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
            except JWTError as exc:
                logger.debug("Session token rejected: %s", exc)
                continue
            subject = payload.get("sub") or payload.get("id")
            if not subject:
                continue
            identity = load_identity(session, str(subject), source=self.name)
            if identity is not None:
                return identity
        return None


class BearerUserProvider:
    name = "bearer_user"

    def __init__(self, min_length: int = MIN_USER_REFERENCE_LENGTH) -> None:
        self.min_length = min_length

    def try_resolve(self, conn: HTTPConnection, session: Session) -> Optional[Identity]:
        token = extract_bearer_token(conn)
        if not token:
            return None
        candidate = token
        if candidate.startswith(USER_REFERENCE_PREFIX):
            candidate = candidate[len(USER_REFERENCE_PREFIX):].strip()
        if len(candidate) < self.min_length:
            return None
        return load_identity(session, candidate, source=self.name)


class LegacyCookieProvider:
    name = "legacy_cookie"

    def __init__(self, cookie_name: str) -> None:
        self.cookie_name = cookie_name

    def try_resolve(self, conn: HTTPConnection, session: Session) -> Optional[Identity]:
        value = (conn.cookies.get(self.cookie_name) or "").strip()
        if not value:
            return None
        return load_identity(session, value, source=self.name)


class IdentityExtractor:
    def __init__(self, providers: Iterable[CredentialProvider]) -> None:
        self.providers = list(providers)

    def get_identity(self, conn: HTTPConnection, session: Session) -> Optional[Identity]:
        for provider in self.providers:
            try:
                identity = provider.try_resolve(conn, session)
            except SQLAlchemyError:
                logger.error(
                    "Identity lookup failed",
                    extra={"source": provider.name, "path": conn.url.path},
                    exc_info=True,
                )
                continue
            if identity is not None:
                return identity
        return None


def default_providers() -> List[CredentialProvider]:
    return [
        SessionTokenProvider(
            get_session_jwt_secret(),
            algorithm=get_session_jwt_algorithm(),
            cookie_names=get_session_cookie_names(),
        ),
        BearerUserProvider(),
        LegacyCookieProvider(get_legacy_auth_cookie()),
    ]


def build_identity_extractor() -> IdentityExtractor:
    return IdentityExtractor(default_providers())


__all__ = [
    "Identity",
    "CredentialProvider",
    "SessionTokenProvider",
    "BearerUserProvider",
    "LegacyCookieProvider",
    "IdentityExtractor",
    "load_identity",
    "extract_bearer_token",
    "default_providers",
    "build_identity_extractor",
]
