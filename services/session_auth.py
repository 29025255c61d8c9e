"""
Session authentication flows: login, refresh, logout and bearer verification.

Access tokens are stateless HS256 JWTs. Refresh tokens are opaque 64-hex
secrets sent in an HTTP-only cookie; only their keyed hash is stored, via
RefreshTokenStore. This service never touches the database directly.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from models.refresh_token import RefreshToken
from models.refresh_token_store import RefreshTokenStore
from models.user import User
from services.identity import IdentityProvider
from utils.cookies import CookiePolicy, CookieSpec
from utils.exceptions import (
    TokenError,
    NotFound,
    Expired,
    Revoked,
    StorageError,
    MissingCredentials,
    InvalidCredentials,
    MissingRefreshToken,
    InvalidRefreshToken,
    RefreshTokenReused,
    InvalidUser,
    MissingSecret,
    InvalidToken,
    InvalidSubject,
    UnknownUser,
    StorageFailure,
)
from utils.security import encode_token, decode_token, generate_token, generate_jti, REFRESH_TOKEN_LENGTH

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthSettings:
    secret: Optional[str] = None
    issuer: str = "jwt-session-api"
    access_ttl: int = 3600
    refresh_ttl: int = 2592000
    rotate_refresh_tokens: bool = True
    revoke_on_reuse: bool = True
    token_type: str = "jwt"
    retention: int = 0

    def __post_init__(self):
        if self.access_ttl <= 0 or self.refresh_ttl <= 0:
            raise ValueError("token lifetimes must be positive")
        if not self.secret:
            object.__setattr__(self, "secret", None)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "AuthSettings":
        return cls(
            secret=config.get("JWT_SECRET"),
            issuer=config.get("JWT_ISSUER", cls.issuer),
            access_ttl=int(config.get("JWT_ACCESS_TTL", cls.access_ttl)),
            refresh_ttl=int(config.get("JWT_REFRESH_TTL", cls.refresh_ttl)),
            rotate_refresh_tokens=bool(config.get("JWT_ROTATE_REFRESH_TOKENS", True)),
            revoke_on_reuse=bool(config.get("JWT_REVOKE_ON_REUSE", True)),
            token_type=config.get("JWT_TOKEN_TYPE", cls.token_type),
            retention=int(config.get("TOKEN_RETENTION_SECONDS", 0)),
        )


@dataclass
class IssuedSession:
    access_token: str
    expires_in: int
    user: User
    # None when the refresh token could not be stored: the client keeps a
    # working access token but cannot refresh it
    refresh_cookie: Optional[CookieSpec]


@dataclass
class RefreshedSession:
    access_token: str
    expires_in: int
    user: User
    refresh_cookie: Optional[CookieSpec]


class SessionAuthService:
    def __init__(self, settings: AuthSettings, store: RefreshTokenStore,
                 identity: IdentityProvider, cookies: CookiePolicy,
                 clock: Callable[[], float] = time.time):
        self.settings = settings
        self.store = store
        self.identity = identity
        self.cookies = cookies
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    def _require_secret(self) -> str:
        if not self.settings.secret:
            logger.error("JWT secret not configured. Set JWT_SECRET.")
            raise MissingSecret()
        return self.settings.secret

    def _metadata(self, now: int, user_agent: Optional[str], ip_address: Optional[str]) -> Dict[str, Any]:
        return {"issued_at": now, "user_agent": user_agent, "ip_address": ip_address}

    def generate_access_token(self, user_id: int, extra_claims: Optional[Dict[str, Any]] = None) -> str:
        secret = self._require_secret()
        now = self.now()
        claims = {
            "iss": self.settings.issuer,
            "sub": str(user_id),
            "iat": now,
            "exp": now + self.settings.access_ttl,
            "jti": generate_jti(),
        }
        if extra_claims:
            claims.update(extra_claims)
        return encode_token(claims, secret)

    def _access_token_for(self, user: User) -> str:
        return self.generate_access_token(user.id, {"roles": list(user.roles or [])})

    def issue_session(self, username: str, password: str,
                      user_agent: Optional[str] = None, ip_address: Optional[str] = None) -> IssuedSession:
        if not username or not password:
            raise MissingCredentials()
        self._require_secret()

        user = self.identity.authenticate(username, password)
        if user is None:
            logger.info("Failed login for %r from %s", username, ip_address or "unknown")
            raise InvalidCredentials()

        now = self.now()
        access_token = self._access_token_for(user)

        refresh_token = generate_token(REFRESH_TOKEN_LENGTH)
        refresh_expires = now + self.settings.refresh_ttl
        refresh_cookie = None
        try:
            self.store.store(user.id, refresh_token, refresh_expires,
                             self._metadata(now, user_agent, ip_address))
            refresh_cookie = self.cookies.build(refresh_token, refresh_expires, now)
        except StorageError:
            logger.error("Refresh token not stored for user %s; issuing access token only", user.id)

        return IssuedSession(
            access_token=access_token,
            expires_in=self.settings.access_ttl,
            user=user,
            refresh_cookie=refresh_cookie,
        )

    def _handle_reuse(self, record: Optional[RefreshToken]):
        if record is None:
            return
        logger.warning(
            "Revoked refresh token %s presented again for user %s", record.id, record.user_id
        )
        if self.settings.revoke_on_reuse:
            try:
                revoked = self.store.revoke_all(record.user_id)
            except StorageError:
                logger.exception("Could not revoke sessions of user %s after reuse", record.user_id)
                return
            logger.warning("Revoked %d active sessions of user %s", revoked, record.user_id)

    def _translate(self, exc: Exception):
        if isinstance(exc, Revoked):
            self._handle_reuse(exc.record)
            return RefreshTokenReused()
        if isinstance(exc, (NotFound, Expired)):
            return InvalidRefreshToken()
        return StorageFailure()

    def refresh_session(self, cookie_value: Optional[str],
                        user_agent: Optional[str] = None, ip_address: Optional[str] = None) -> RefreshedSession:
        if not cookie_value:
            raise MissingRefreshToken()
        self._require_secret()

        try:
            record = self.store.validate(cookie_value)
        except (NotFound, Expired, Revoked, StorageError) as exc:
            raise self._translate(exc) from exc

        user = self.identity.get_user(record.user_id)
        if user is None:
            try:
                self.store.revoke(cookie_value)
            except StorageError:
                logger.exception("Could not revoke refresh token of deleted user %s", record.user_id)
            raise InvalidUser()

        refresh_cookie = None
        if self.settings.rotate_refresh_tokens:
            now = self.now()
            new_refresh_token = generate_token(REFRESH_TOKEN_LENGTH)
            refresh_expires = now + self.settings.refresh_ttl
            try:
                self.store.rotate(cookie_value, new_refresh_token, user.id, refresh_expires,
                                  self._metadata(now, user_agent, ip_address))
            except (NotFound, Expired, Revoked, StorageError) as exc:
                raise self._translate(exc) from exc
            refresh_cookie = self.cookies.build(new_refresh_token, refresh_expires, now)

        return RefreshedSession(
            access_token=self._access_token_for(user),
            expires_in=self.settings.access_ttl,
            user=user,
            refresh_cookie=refresh_cookie,
        )

    def logout(self, cookie_value: Optional[str]) -> CookieSpec:
        """Revoke the refresh token if there is one and return the clearing cookie."""
        if cookie_value and self.settings.secret:
            try:
                self.store.revoke(cookie_value)
            except StorageError:
                logger.exception("Could not revoke refresh token on logout")
        return self.cookies.clear()

    def verify_bearer(self, token: Optional[str]) -> User:
        secret = self._require_secret()
        try:
            claims = decode_token(token or "", secret, now=self.now())
        except TokenError as exc:
            raise InvalidToken() from exc

        try:
            user_id = int(str(claims.get("sub")))
        except (TypeError, ValueError):
            user_id = 0
        if user_id <= 0:
            raise InvalidSubject()

        user = self.identity.get_user(user_id)
        if user is None:
            raise UnknownUser()
        return user

    def list_sessions(self, user_id: int, limit: int = 100) -> List[RefreshToken]:
        try:
            return self.store.get_user_tokens(user_id, limit)
        except StorageError as exc:
            raise StorageFailure() from exc

    def revoke_session(self, user_id: int, record_id: int) -> bool:
        try:
            return self.store.revoke_by_id(user_id, record_id)
        except StorageError as exc:
            raise StorageFailure() from exc

    def revoke_all_sessions(self, user_id: int) -> int:
        try:
            return self.store.revoke_all(user_id)
        except StorageError as exc:
            raise StorageFailure() from exc

    def clean_expired_tokens(self, retention: Optional[int] = None) -> int:
        if retention is None:
            retention = self.settings.retention
        return self.store.clean_expired(retention)
