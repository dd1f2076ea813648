import hashlib
import hmac
import json
from unittest.mock import patch

import pytest

from app import create_app
from config import Config
from models import db
from models.user import User


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    MAIL_SERVER = None
    MAIL_USERNAME = None
    MAIL_SUPPRESS_SEND = True
    LOG_LEVEL = "DEBUG"


GATEWAY_ENV_VARS = (
    "CHAPA_SECRET_KEY",
    "CHAPA_WEBHOOK_SECRET",
    "CHAPA_BASE_URL",
    "CHAPA_TIMEOUT_SECONDS",
    "STANDARD_PLAN_PRICE",
    "PREMIUM_PLAN_PRICE",
    "SEED_ADMIN_EMAIL",
    "SEED_ADMIN_PASSWORD",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Tests never see the developer's gateway keys"""
    for name in GATEWAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def app(clean_env):
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


def make_user(email="buyer@example.com", full_name="Abebe Kebede Tesfaye", password="secret123",
              role="user", plan="Free", verified=True):
    user = User(full_name=full_name, email=email, role=role, subscription_plan=plan, email_verified=verified)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture()
def user(app):
    return make_user()


@pytest.fixture()
def admin(app):
    return make_user(email="admin@example.com", full_name="Site Admin", role="admin")


def login(client, email, password="secret123"):
    return client.post("/api/auth/login", json={"identifier": email, "password": password})


@pytest.fixture()
def auth_client(client, user):
    resp = login(client, user.email)
    assert resp.status_code == 200
    return client


@pytest.fixture()
def admin_client(client, admin):
    resp = login(client, admin.email)
    assert resp.status_code == 200
    return client


def sign(payload, secret):
    body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class FakeResponse:
    def __init__(self, body):
        self._body = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture()
def chapa_api():
    """Patch the gateway HTTP call; set .return_value / .side_effect per test"""
    with patch("utils.payment_gateway.urllib.request.urlopen") as urlopen:
        yield urlopen


def chapa_success(reference="REF1", tx_ref="TX1"):
    return FakeResponse({
        "message": "Payment details",
        "status": "success",
        "data": {"status": "success", "reference": reference, "tx_ref": tx_ref},
    })
