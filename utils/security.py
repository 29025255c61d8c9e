"""
security helpers:
- Argon2 password hashing via argon2-cffi
- HS256 token encoding/verification via PyJWT
- opaque refresh secrets from the OS CSPRNG
- keyed hashing of refresh secrets for storage
"""
from __future__ import annotations

import hashlib
import hmac
import secrets
import time
from typing import Dict, Any, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError

from utils.exceptions import (
    MalformedToken,
    InvalidSignature,
    ExpiredToken,
    InsufficientEntropy,
)

ALGORITHM = "HS256"
REFRESH_TOKEN_LENGTH = 64
JTI_LENGTH = 32

ph = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def password_needs_rehash(password_hash: str) -> bool:
    return ph.check_needs_rehash(password_hash)


def generate_token(length: int = REFRESH_TOKEN_LENGTH) -> str:
    """
    Return `length` hex characters from the OS random source.
    Raises InsufficientEntropy instead of falling back to a weaker generator.
    """
    if not isinstance(length, int) or isinstance(length, bool) or length < 1:
        raise ValueError("length must be a positive integer")
    try:
        raw = secrets.token_hex((length + 1) // 2)
    except NotImplementedError as exc:
        raise InsufficientEntropy("no secure random source available") from exc
    return raw[:length]


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return generate_token(JTI_LENGTH)


def hash_token(raw_token: str, secret: str) -> str:
    """Keyed, one-way hash of a refresh secret (HMAC-SHA256, hex)."""
    return hmac.new(secret.encode("utf-8"), raw_token.encode("utf-8"), hashlib.sha256).hexdigest()


def encode_token(claims: Dict[str, Any], secret: str) -> str:
    """
    Sign `claims` as <header>.<payload>.<signature>.
    The header is always {"alg": "HS256", "typ": "JWT"}.
    """
    return jwt.encode(dict(claims), secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str, now: Optional[int] = None) -> Dict[str, Any]:
    """
    Verify signature and expiry and return the claims.

    The token is expired once a numeric `exp` is strictly less than `now`
    (unix seconds, defaults to the current time). A token without `exp`
    never expires; callers always set one for access tokens.
    """
    if not isinstance(token, str) or token.count(".") != 2:
        raise MalformedToken("Token must have exactly 3 segments")
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            leeway=0,
            options={
                "verify_exp": False,
                "verify_aud": False,
                "verify_iat": False,
                "verify_sub": False,
                "verify_jti": False,
            },
        )
    except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as exc:
        raise InvalidSignature("Signature verification failed") from exc
    except jwt.InvalidTokenError as exc:
        raise MalformedToken(f"Invalid token: {exc}") from exc

    exp = claims.get("exp")
    if isinstance(exp, (int, float)) and not isinstance(exp, bool):
        if now is None:
            now = int(time.time())
        if exp < now:
            raise ExpiredToken("Token expired")
    return claims
