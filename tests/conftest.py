"""Shared fixtures."""

import pytest
from fastapi.testclient import TestClient

from tarsit.core.auth import AuthManager
from tarsit.core.config import AppConfig
from tarsit.core.crypto import CryptoUtils
from tarsit.core.storage import SessionStore, UserStore
from tarsit.main import create_app


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        base_dir=tmp_path,
        environment="test",
        bcrypt_rounds=4,
        rate_limit=1000,
        login_rate_limit=100,
    )


@pytest.fixture
def crypto():
    return CryptoUtils(bcrypt_rounds=4)


@pytest.fixture
def auth(tmp_path, crypto):
    return AuthManager(
        users=UserStore(tmp_path / "users.json"),
        sessions=SessionStore(tmp_path / "sessions.json"),
        crypto=crypto,
    )


@pytest.fixture
def app(config):
    return create_app(config)


@pytest.fixture
def client(app):
    return TestClient(app)
