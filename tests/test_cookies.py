import pytest

from utils.cookies import CookiePolicy, CookieSettings, normalize_environment


@pytest.mark.parametrize(
    "env,secure,samesite,path",
    [
        ("development", False, "Lax", "/"),
        ("dev", False, "Lax", "/"),
        ("testing", False, "Lax", "/"),
        ("staging", True, "Lax", "/"),
        ("production", True, "Strict", "/api/v1/jwt/"),
        ("prod", True, "Strict", "/api/v1/jwt/"),
        ("something-else", True, "Lax", "/"),
        (None, True, "Lax", "/"),
    ],
)
def test_environment_defaults(env, secure, samesite, path):
    attrs = CookiePolicy.for_environment(env).get_attributes()
    assert attrs == {
        "path": path,
        "domain": "",
        "secure": secure,
        "httponly": True,
        "samesite": samesite,
    }


def test_overrides_win_and_none_is_ignored():
    policy = CookiePolicy.for_environment("production", path="/auth/", domain=None, samesite="lax")
    assert policy.settings.path == "/auth/"
    assert policy.settings.domain == ""
    assert policy.settings.samesite == "Lax"
    assert policy.settings.secure is True


def test_samesite_none_forces_secure():
    policy = CookiePolicy.for_environment("development", samesite="None")
    assert policy.settings.secure is True


def test_invalid_samesite():
    with pytest.raises(ValueError):
        CookieSettings(samesite="sometimes")


def test_build_and_clear():
    policy = CookiePolicy.for_environment("development", name="rt")
    cookie = policy.build("abc", expires_at=1_000_100, now=1_000_000)
    assert (cookie.name, cookie.value, cookie.max_age, cookie.expires) == ("rt", "abc", 100, 1_000_100)

    cleared = policy.clear()
    assert cleared.value == ""
    assert cleared.max_age == 0
    assert cleared.path == cookie.path


def test_normalize_environment():
    assert normalize_environment(" Production ") == "production"
    assert normalize_environment("qa") == "base"
