"""
Refresh token cookie attributes per environment.

Resolved once when the app is created:

    env          secure  samesite  path
    development  False   Lax       /
    staging      True    Lax       /
    production   True    Strict    /api/v1/jwt/

Any attribute can be overridden through COOKIE_* settings.
"""
from __future__ import annotations

from dataclasses import dataclass, replace, asdict
from typing import Optional

DEFAULT_COOKIE_NAME = "jwt_refresh_token"
PRODUCTION_PATH = "/api/v1/jwt/"
SAMESITE_VALUES = ("Strict", "Lax", "None")

ENVIRONMENT_ALIASES = {
    "dev": "development",
    "development": "development",
    "local": "development",
    "testing": "development",
    "test": "development",
    "staging": "staging",
    "stage": "staging",
    "prod": "production",
    "production": "production",
}


def normalize_environment(env: Optional[str]) -> str:
    return ENVIRONMENT_ALIASES.get((env or "").strip().lower(), "base")


@dataclass(frozen=True)
class CookieSettings:
    name: str = DEFAULT_COOKIE_NAME
    path: str = "/"
    domain: str = ""
    secure: bool = True
    httponly: bool = True
    samesite: str = "Lax"

    def __post_init__(self):
        samesite = (self.samesite or "Lax").capitalize()
        if samesite not in SAMESITE_VALUES:
            raise ValueError(f"samesite must be one of {', '.join(SAMESITE_VALUES)}")
        object.__setattr__(self, "samesite", samesite)
        # browsers drop SameSite=None cookies that are not Secure
        if samesite == "None":
            object.__setattr__(self, "secure", True)


ENVIRONMENT_DEFAULTS = {
    "development": CookieSettings(secure=False, samesite="Lax", path="/"),
    "staging": CookieSettings(secure=True, samesite="Lax", path="/"),
    "production": CookieSettings(secure=True, samesite="Strict", path=PRODUCTION_PATH),
    "base": CookieSettings(),
}


@dataclass(frozen=True)
class CookieSpec:
    """A cookie the HTTP layer should set on the response."""
    name: str
    value: str
    max_age: int
    expires: int
    path: str
    domain: str
    secure: bool
    httponly: bool
    samesite: str

    def set_on(self, response):
        response.set_cookie(
            self.name,
            self.value,
            max_age=self.max_age,
            expires=self.expires,
            path=self.path,
            domain=self.domain or None,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )
        return response


class CookiePolicy:
    def __init__(self, settings: CookieSettings, environment: str = "base"):
        self.settings = settings
        self.environment = environment

    @classmethod
    def for_environment(cls, env: Optional[str], **overrides) -> "CookiePolicy":
        environment = normalize_environment(env)
        settings = ENVIRONMENT_DEFAULTS[environment]
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if overrides:
            settings = replace(settings, **overrides)
        return cls(settings, environment)

    @property
    def name(self) -> str:
        return self.settings.name

    def get_attributes(self) -> dict:
        attrs = asdict(self.settings)
        attrs.pop("name")
        return attrs

    def build(self, value: str, expires_at: int, now: int) -> CookieSpec:
        s = self.settings
        return CookieSpec(
            name=s.name,
            value=value,
            max_age=max(0, int(expires_at) - int(now)),
            expires=int(expires_at),
            path=s.path,
            domain=s.domain,
            secure=s.secure,
            httponly=s.httponly,
            samesite=s.samesite,
        )

    def clear(self) -> CookieSpec:
        s = self.settings
        return CookieSpec(
            name=s.name,
            value="",
            max_age=0,
            expires=0,
            path=s.path,
            domain=s.domain,
            secure=s.secure,
            httponly=s.httponly,
            samesite=s.samesite,
        )
