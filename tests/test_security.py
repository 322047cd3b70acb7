from datetime import timedelta

from studiobook.core import security


def test_password_hash_roundtrip():
    hashed = security.get_password_hash("reformer-2030")

    assert hashed != "reformer-2030"
    assert security.verify_password("reformer-2030", hashed)
    assert not security.verify_password("mat-2030", hashed)


def test_token_carries_user_id():
    token = security.create_access_token({"sub": "42", "role": "student"})

    assert security.decode_user_id(token) == 42


def test_expired_and_malformed_tokens_are_rejected():
    expired = security.create_access_token({"sub": "42"}, timedelta(seconds=-5))
    no_subject = security.create_access_token({"role": "admin"})

    assert security.decode_user_id(expired) is None
    assert security.decode_user_id(no_subject) is None
    assert security.decode_user_id("garbage") is None


def test_tokens_signed_with_another_secret_are_rejected(configure):
    token = security.create_access_token({"sub": "7"})
    configure(JWT_SECRET="rotated")

    assert security.decode_user_id(token) is None
