import base64
import json
import re

from services.identity import IdentityResolver, name_from_access_jwt, user_id_from_email


def _jwt(claims: dict) -> str:
    payload = base64.urlsafe_b64encode(json.dumps(claims).encode()).decode().rstrip("=")
    return f"header.{payload}.signature"


def test_user_id_is_stable_and_compact():
    assert user_id_from_email("a") == "user_2p"
    first = user_id_from_email("alice@example.com")
    assert first == user_id_from_email("alice@example.com")
    assert first != user_id_from_email("bob@example.com")
    assert re.fullmatch(r"user_[0-9a-z]+", first)


def test_user_id_stays_in_32_bits():
    user_id = user_id_from_email("a.very.long.address+" + "x" * 200 + "@example.com")
    assert int(user_id[len("user_"):], 36) <= 2 ** 31


def test_access_header_wins_over_dev_headers():
    resolver = IdentityResolver(dev_mode=True)
    identity = resolver.resolve({
        "cf-access-authenticated-user-email": "carol@example.com",
        "cf-access-jwt-assertion": _jwt({"name": "Carol"}),
        "x-user-email": "mallory@example.com",
    })
    assert identity.email == "carol@example.com"
    assert identity.name == "Carol"
    assert identity.id == user_id_from_email("carol@example.com")


def test_dev_headers_only_in_dev_mode():
    headers = {"x-user-email": "dev@example.com", "x-user-name": "Dev"}
    assert IdentityResolver(dev_mode=False).resolve(headers) is None

    identity = IdentityResolver(dev_mode=True).resolve(headers)
    assert identity.email == "dev@example.com"
    assert identity.name == "Dev"


def test_anonymous_without_headers():
    assert IdentityResolver(dev_mode=True).resolve({}) is None


def test_jwt_name_fallbacks():
    assert name_from_access_jwt(_jwt({"given_name": "Dave"})) == "Dave"
    assert name_from_access_jwt(_jwt({"sub": "123"})) is None
    assert name_from_access_jwt("not-a-jwt") is None
    assert name_from_access_jwt("a.!!!.c") is None
    assert name_from_access_jwt(None) is None


def test_jwt_non_string_name_is_ignored():
    assert name_from_access_jwt(_jwt({"name": 123})) is None
    assert name_from_access_jwt(_jwt({"name": {"first": "Eve"}})) is None
    assert name_from_access_jwt(_jwt({"name": 123, "given_name": "Eve"})) == "Eve"
