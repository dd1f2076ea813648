from unittest.mock import patch

import pytest

from conftest import login, make_user
from models import db
from models.email_verification import EmailVerificationOTP
from models.user import User

REGISTRATION = {
    "full_name": "Hanna Girma",
    "email": "Hanna@Example.com",
    "phone_number": "+251 911 234 567",
    "password": "market2024",
}


@pytest.fixture()
def registered(client):
    with patch("routes.auth.generate_otp", return_value="123456"):
        resp = client.post("/api/auth/register", json=REGISTRATION)
    assert resp.status_code == 201
    return resp


def test_register_creates_unverified_user(registered):
    body = registered.get_json()
    assert body["requires_verification"] is True
    assert body["user"]["email"] == "hanna@example.com"

    user = User.query.filter_by(email="hanna@example.com").first()
    assert user.email_verified is False
    assert user.subscription_plan == "Free"
    assert user.phone_number == "+251911234567"
    assert user.check_password("market2024")
    assert EmailVerificationOTP.query.get("hanna@example.com") is not None


@pytest.mark.parametrize("change", [
    {"email": "not-an-email"},
    {"password": "short1"},
    {"password": "lettersonly"},
    {"full_name": ""},
])
def test_register_validation(client, change):
    resp = client.post("/api/auth/register", json={**REGISTRATION, **change})
    assert resp.status_code == 400
    assert User.query.count() == 0


def test_register_duplicate_email(client, registered):
    resp = client.post("/api/auth/register", json={**REGISTRATION, "phone_number": ""})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Email already registered."


def test_login_blocked_until_verified(client, registered):
    resp = login(client, "hanna@example.com", "market2024")

    assert resp.status_code == 403
    assert resp.get_json()["requires_verification"] is True


def test_verify_otp_logs_user_in(client, registered):
    resp = client.post("/api/auth/verify-email-otp", json={"email": "hanna@example.com", "otp": "123456"})

    assert resp.status_code == 200
    assert resp.get_json()["user"]["email_verified"] is True
    assert EmailVerificationOTP.query.get("hanna@example.com") is None
    assert client.get("/api/auth/me").status_code == 200


def test_wrong_otp_counts_attempts(client, registered):
    for _ in range(5):
        resp = client.post("/api/auth/verify-email-otp", json={"email": "hanna@example.com", "otp": "000000"})
        assert resp.status_code == 400

    # Locked out even with the right code
    resp = client.post("/api/auth/verify-email-otp", json={"email": "hanna@example.com", "otp": "123456"})
    assert resp.status_code == 400
    assert "Too many attempts" in resp.get_json()["message"]
    db.session.expire_all()
    assert User.query.filter_by(email="hanna@example.com").first().email_verified is False


def test_resend_is_subject_to_cooldown(client, registered):
    resp = client.post("/api/auth/send-verification-otp", json={"email": "hanna@example.com"})

    assert resp.status_code == 429
    assert resp.get_json()["retry_after_seconds"] >= 1


def test_resend_for_unknown_email_does_not_leak(client):
    resp = client.post("/api/auth/send-verification-otp", json={"email": "nobody@example.com"})
    assert resp.status_code == 200


def test_login_by_email_and_phone(client, app):
    user = make_user()
    user.phone_number = "0911000000"
    db.session.commit()

    assert login(client, "buyer@example.com").status_code == 200
    assert client.post("/api/auth/logout").status_code == 200
    assert login(client, "0911 000 000").status_code == 200


def test_login_wrong_password(client, user):
    assert login(client, user.email, "wrong-password1").status_code == 401


def test_banned_user_cannot_login(client, app):
    user = make_user()
    user.is_banned = True
    db.session.commit()

    assert login(client, user.email).status_code == 403


def test_me_requires_login(client):
    resp = client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.get_json()["success"] is False
