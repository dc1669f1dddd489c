from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from config import get_settings
from database import Base
from schemas import LoginIn, RegisterIn
from security import (
    ALGORITHM,
    InvalidToken,
    TokenExpired,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from services import AuthenticationError, ConflictError, UserService


@pytest.fixture(autouse=True)
def jwt_env(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_password_hash_round_trip() -> None:
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)


def test_token_carries_user_identity() -> None:
    token = create_access_token("user-1", "a@example.com")
    payload = decode_access_token(token)
    assert payload["id"] == "user-1"
    assert payload["email"] == "a@example.com"


def test_expired_and_tampered_tokens_are_rejected() -> None:
    expired = jwt.encode(
        {"id": "user-1", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        "test-secret",
        algorithm=ALGORITHM,
    )
    with pytest.raises(TokenExpired):
        decode_access_token(expired)

    forged = jwt.encode({"id": "user-1"}, "another-secret", algorithm=ALGORITHM)
    with pytest.raises(InvalidToken):
        decode_access_token(forged)


def test_register_normalises_email_and_rejects_duplicates() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        users = UserService(session)
        user = users.register(
            RegisterIn(email="  Pat@Example.COM ", password="s3cretpass", name="Pat")
        )
        assert user.email == "pat@example.com"
        assert user.password_hash != "s3cretpass"

        with pytest.raises(ConflictError, match="User with this email already exists"):
            users.register(
                RegisterIn(email="pat@example.com", password="otherpass", name="Pat 2")
            )


def test_login_checks_credentials() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        users = UserService(session)
        user = users.register(
            RegisterIn(email="pat@example.com", password="s3cretpass", name="Pat")
        )

        token, logged_in = users.login(LoginIn(email="PAT@example.com", password="s3cretpass"))
        assert logged_in.id == user.id
        assert decode_access_token(token)["id"] == user.id

        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            users.login(LoginIn(email="pat@example.com", password="nope-nope"))
        with pytest.raises(AuthenticationError):
            users.login(LoginIn(email="nobody@example.com", password="s3cretpass"))
