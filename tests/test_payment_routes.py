import io
import json
import urllib.error
from decimal import Decimal
from unittest.mock import patch

import pytest

from conftest import FakeResponse, chapa_success, login, make_user, sign
from models import db
from models.notification import Notification
from utils.payment_errors import GrantFailed, TransactionNotCompleted
from utils.payment_ledger import create_transaction, get_transaction
from utils.subscription_granter import grant_subscription

WEBHOOK_SECRET = "whsec_test"


def _initialize(client, tx_ref="TX1", plan="Premium", amount=200):
    return client.post("/api/payments/initialize", json={"plan_name": plan, "amount": amount, "tx_ref": tx_ref})


def _deliver(client, payload, secret=WEBHOOK_SECRET, header="Chapa-Signature"):
    headers = {header: sign(payload, secret)} if secret else {}
    return client.post(
        "/api/payments/webhook",
        data=json.dumps(payload, separators=(",", ":")),
        content_type="application/json",
        headers=headers,
    )


@pytest.fixture()
def webhook_secret(monkeypatch):
    monkeypatch.setenv("CHAPA_WEBHOOK_SECRET", WEBHOOK_SECRET)


@pytest.fixture()
def chapa_key(monkeypatch):
    monkeypatch.setenv("CHAPA_SECRET_KEY", "sk_test")


def _plan_of(user):
    db.session.refresh(user)
    return user.subscription_plan


def _status_of(tx_ref):
    db.session.expire_all()
    return get_transaction(tx_ref).status


# Initialize

def test_initialize_creates_pending_row_from_profile(auth_client, user):
    resp = _initialize(auth_client)

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["transaction"]["tx_ref"] == "TX1"
    assert body["transaction"]["status"] == "pending"
    tx = get_transaction("TX1")
    assert tx.user_id == user.id
    assert tx.email == user.email
    assert tx.first_name == "Abebe"
    assert tx.last_name == "Kebede Tesfaye"
    assert tx.amount == Decimal("200.00")
    assert tx.currency == "ETB"


def test_initialize_requires_login(client):
    assert _initialize(client).status_code == 401


def test_initialize_duplicate_reference(auth_client):
    assert _initialize(auth_client).status_code == 201

    resp = _initialize(auth_client, plan="Standard", amount=100)

    assert resp.status_code == 409
    assert resp.get_json()["error"] == "DuplicateReference"
    assert get_transaction("TX1").plan_name == "Premium"


@pytest.mark.parametrize("plan,amount", [
    ("Premium", 150),
    ("Gold", 200),
    ("Free", 0),
    ("Premium", -200),
    ("Premium", "abc"),
])
def test_initialize_rejects_bad_plan_or_amount(auth_client, plan, amount):
    resp = _initialize(auth_client, plan=plan, amount=amount)

    assert resp.status_code == 400
    assert get_transaction("TX1") is None


def test_initialize_rejects_bad_reference(auth_client):
    assert _initialize(auth_client, tx_ref="bad ref!").status_code == 400


def test_initialize_accepts_plan_name_case_insensitively(auth_client):
    resp = _initialize(auth_client, plan="premium", amount="200.00")

    assert resp.status_code == 201
    assert get_transaction("TX1").plan_name == "Premium"


# Webhook

def test_signed_success_webhook_grants_plan_once(auth_client, user, webhook_secret):
    _initialize(auth_client)
    payload = {"tx_ref": "TX1", "status": "success", "reference": "REF1"}

    resp = _deliver(auth_client, payload)

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "completed"
    assert body["granted"] is True
    assert body["plan_name"] == "Premium"
    tx = get_transaction("TX1")
    assert tx.status == "completed"
    assert tx.gateway_reference == "REF1"
    assert tx.completed_at is not None
    assert _plan_of(user) == "Premium"
    assert Notification.query.filter_by(user_id=user.id, title="Payment Successful").count() == 1

    again = _deliver(auth_client, payload)

    assert again.status_code == 200
    assert again.get_json()["already_settled"] is True
    assert again.get_json()["already_granted"] is True
    assert _plan_of(user) == "Premium"
    assert Notification.query.filter_by(user_id=user.id, title="Payment Successful").count() == 1


def test_alternate_signature_header(auth_client, user, webhook_secret):
    _initialize(auth_client)

    resp = _deliver(auth_client, {"tx_ref": "TX1", "status": "success"}, header="x-chapa-signature")

    assert resp.status_code == 200
    assert _plan_of(user) == "Premium"


def test_failed_webhook_marks_failed_and_blocks_grant(auth_client, user, webhook_secret):
    _initialize(auth_client)

    resp = _deliver(auth_client, {"tx_ref": "TX1", "status": "failed"})

    assert resp.status_code == 200
    assert resp.get_json()["status"] == "failed"
    tx = get_transaction("TX1")
    assert tx.status == "failed"
    assert tx.error_message
    assert tx.completed_at is None
    with pytest.raises(TransactionNotCompleted):
        grant_subscription("TX1")
    assert _plan_of(user) == "Free"
    assert Notification.query.filter_by(user_id=user.id, title="Payment Failed").count() == 1


def test_bad_signature_is_rejected_without_state_change(auth_client, user, webhook_secret):
    _initialize(auth_client)

    resp = _deliver(auth_client, {"tx_ref": "TX1", "status": "success"}, secret="not-the-secret")

    assert resp.status_code == 401
    assert resp.get_json()["error"] == "InvalidSignature"
    assert _status_of("TX1") == "pending"
    assert _plan_of(user) == "Free"


def test_unsigned_webhook_is_rejected_when_secret_configured(auth_client, user, webhook_secret):
    _initialize(auth_client)

    resp = _deliver(auth_client, {"tx_ref": "TX1", "status": "success"}, secret=None)

    assert resp.status_code == 401
    assert _status_of("TX1") == "pending"


def test_terminal_transaction_is_not_reopened(auth_client, user, webhook_secret):
    _initialize(auth_client)
    _deliver(auth_client, {"tx_ref": "TX1", "status": "failed"})

    resp = _deliver(auth_client, {"tx_ref": "TX1", "status": "success"})

    assert resp.status_code == 200
    assert resp.get_json()["already_settled"] is True
    assert _status_of("TX1") == "failed"
    assert _plan_of(user) == "Free"


def test_webhook_for_unknown_reference(client, webhook_secret):
    resp = _deliver(client, {"tx_ref": "NOPE", "status": "success"})

    assert resp.status_code == 404
    assert resp.get_json()["error"] == "TransactionNotFound"


@pytest.mark.parametrize("body", ['[1, 2]', '{"status": "success"}', 'not json'])
def test_webhook_rejects_malformed_payload(client, body):
    resp = client.post("/api/payments/webhook", data=body, content_type="application/json")
    assert resp.status_code == 400


def test_webhook_without_secret_uses_verify_api(auth_client, user, chapa_key, chapa_api):
    _initialize(auth_client)
    chapa_api.return_value = chapa_success("REF2")

    # Payload status is not trusted without a signature
    resp = _deliver(auth_client, {"tx_ref": "TX1", "status": "failed"}, secret=None)

    assert resp.status_code == 200
    assert resp.get_json()["status"] == "completed"
    assert get_transaction("TX1").gateway_reference == "REF2"
    assert _plan_of(user) == "Premium"
    chapa_api.assert_called_once()


def test_webhook_without_any_gateway_config(auth_client, user):
    _initialize(auth_client)

    resp = _deliver(auth_client, {"tx_ref": "TX1", "status": "success"}, secret=None)

    assert resp.status_code == 503
    assert _status_of("TX1") == "pending"


def test_webhook_api_outage_leaves_transaction_pending(auth_client, user, chapa_key, chapa_api):
    _initialize(auth_client)
    chapa_api.side_effect = TimeoutError("timed out")

    resp = _deliver(auth_client, {"tx_ref": "TX1", "status": "success"}, secret=None)

    assert resp.status_code == 502
    assert _status_of("TX1") == "pending"
    assert _plan_of(user) == "Free"


# Verify

def test_verify_success_grants_plan(auth_client, user, chapa_key, chapa_api):
    _initialize(auth_client)
    chapa_api.return_value = chapa_success("REF3")

    resp = auth_client.post("/api/payments/verify/TX1")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["status"] == "completed"
    assert body["plan_name"] == "Premium"
    assert _plan_of(user) == "Premium"


def test_verify_business_failure_marks_failed(auth_client, user, chapa_key, chapa_api):
    _initialize(auth_client)
    chapa_api.return_value = FakeResponse({"status": "failed", "message": "Transaction not found", "data": None})

    resp = auth_client.get("/api/payments/verify/TX1")

    assert resp.status_code == 400
    assert resp.get_json()["status"] == "failed"
    tx = get_transaction("TX1")
    assert tx.status == "failed"
    assert tx.error_message == "Payment verification failed"
    assert _plan_of(user) == "Free"


def test_verify_timeout_leaves_transaction_pending(auth_client, user, chapa_key, chapa_api):
    _initialize(auth_client)
    chapa_api.side_effect = TimeoutError("timed out")

    resp = auth_client.post("/api/payments/verify/TX1")

    assert resp.status_code == 502
    assert resp.get_json()["error"] == "VerificationFailed"
    assert _status_of("TX1") == "pending"


def test_verify_after_webhook_is_idempotent(auth_client, user, webhook_secret, chapa_key, chapa_api):
    _initialize(auth_client)
    _deliver(auth_client, {"tx_ref": "TX1", "status": "success", "reference": "REF1"})
    chapa_api.return_value = chapa_success("REF1")

    resp = auth_client.post("/api/payments/verify/TX1")

    assert resp.status_code == 200
    assert resp.get_json()["already_settled"] is True
    assert resp.get_json()["already_granted"] is True
    assert _plan_of(user) == "Premium"


def test_verify_other_users_transaction_is_hidden(auth_client, chapa_key, chapa_api):
    other = make_user(email="other@example.com")
    create_transaction(other.id, "Premium", Decimal("200.00"), "ETB", other.email, "Other", "User", "OTHER1")

    resp = auth_client.post("/api/payments/verify/OTHER1")

    assert resp.status_code == 404
    chapa_api.assert_not_called()
    assert _status_of("OTHER1") == "pending"


def test_admin_can_verify_any_transaction(client, admin, chapa_key, chapa_api):
    buyer = make_user()
    create_transaction(buyer.id, "Premium", Decimal("200.00"), "ETB", buyer.email, "Abebe", "Kebede", "TX1")
    login(client, admin.email)
    chapa_api.return_value = chapa_success()

    resp = client.post("/api/payments/verify/TX1")

    assert resp.status_code == 200
    assert _plan_of(buyer) == "Premium"


# Status and history

def test_status_and_history(auth_client, user):
    _initialize(auth_client, tx_ref="TX1")
    _initialize(auth_client, tx_ref="TX2", plan="Standard", amount=100)

    status = auth_client.get("/api/payments/status/TX2")
    assert status.status_code == 200
    assert status.get_json()["transaction"]["plan_name"] == "Standard"
    assert auth_client.get("/api/payments/status/NOPE").status_code == 404

    history = auth_client.get("/api/payments/history").get_json()["transactions"]
    assert [t["tx_ref"] for t in history] == ["TX2", "TX1"]
    assert len(auth_client.get("/api/payments/history?limit=1").get_json()["transactions"]) == 1


def test_rejected_secret_key_leaves_transaction_pending(auth_client, user, chapa_key, chapa_api):
    _initialize(auth_client)
    chapa_api.side_effect = urllib.error.HTTPError(
        "https://chapa.test", 401, "Unauthorized", None,
        io.BytesIO(b'{"status": "failed", "message": "Invalid API Key"}'))

    resp = auth_client.post("/api/payments/verify/TX1")
    assert resp.status_code == 502
    assert _status_of("TX1") == "pending"

    resp = _deliver(auth_client, {"tx_ref": "TX1", "status": "success"}, secret=None)
    assert resp.status_code == 502
    assert _status_of("TX1") == "pending"
    assert _plan_of(user) == "Free"


def test_signed_success_still_grants_after_rejected_verify(auth_client, user, chapa_key, chapa_api, webhook_secret):
    _initialize(auth_client)
    chapa_api.side_effect = urllib.error.HTTPError(
        "https://chapa.test", 401, "Unauthorized", None, io.BytesIO(b'{"message": "Invalid API Key"}'))
    auth_client.post("/api/payments/verify/TX1")

    resp = _deliver(auth_client, {"tx_ref": "TX1", "status": "success", "reference": "REF1"})

    assert resp.status_code == 200
    assert resp.get_json()["status"] == "completed"
    assert _plan_of(user) == "Premium"


def test_failed_grant_still_notifies_payment(auth_client, user, webhook_secret):
    _initialize(auth_client)

    with patch("utils.payment_status_helper.grant_subscription", side_effect=GrantFailed(tx_ref="TX1")):
        resp = _deliver(auth_client, {"tx_ref": "TX1", "status": "success", "reference": "REF1"})

    assert resp.status_code == 500
    assert resp.get_json()["error"] == "GrantFailed"
    assert _status_of("TX1") == "completed"
    assert Notification.query.filter_by(user_id=user.id, title="Payment Successful").count() == 1

    # A re-delivery completes the grant without a second notification
    again = _deliver(auth_client, {"tx_ref": "TX1", "status": "success", "reference": "REF1"})
    assert again.status_code == 200
    assert again.get_json()["granted"] is True
    assert _plan_of(user) == "Premium"
    assert Notification.query.filter_by(user_id=user.id, title="Payment Successful").count() == 1
