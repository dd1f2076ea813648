"""
Payment transaction ledger: create, update and look up rows by tx_ref.
"""
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.transaction import (
    PaymentTransaction,
    STATUS_PENDING,
    STATUS_COMPLETED,
    TERMINAL_STATUSES,
)
from utils.payment_errors import DuplicateReference, TransactionNotFound

HISTORY_MAX_LIMIT = 100


def create_transaction(user_id, plan_name, amount, currency, email, first_name, last_name, tx_ref):
    """
    Create a pending ledger row.

    Raises:
        DuplicateReference: tx_ref already exists (the first row is kept)
    """
    if PaymentTransaction.query.filter_by(tx_ref=tx_ref).first() is not None:
        raise DuplicateReference(tx_ref=tx_ref)

    transaction = PaymentTransaction(
        tx_ref=tx_ref,
        user_id=user_id,
        plan_name=plan_name,
        amount=amount,
        currency=currency,
        email=email,
        first_name=first_name,
        last_name=last_name,
        status=STATUS_PENDING,
    )
    db.session.add(transaction)
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent insert with the same tx_ref
        db.session.rollback()
        raise DuplicateReference(tx_ref=tx_ref)

    current_app.logger.info(f"Payment transaction {tx_ref} created for user {user_id} ({plan_name}, {amount} {currency})")
    return transaction


def update_transaction_status(tx_ref, status, gateway_reference=None, error_message=None):
    """
    Overwrite the status of a transaction and commit.
    completed_at is only set for completed; re-application is the caller's concern.
    """
    if status not in TERMINAL_STATUSES:
        raise ValueError(f"Invalid transaction status: {status}")

    transaction = PaymentTransaction.query.filter_by(tx_ref=tx_ref).first()
    if transaction is None:
        raise TransactionNotFound(tx_ref=tx_ref)

    now = datetime.utcnow()
    transaction.status = status
    transaction.gateway_reference = gateway_reference
    transaction.error_message = error_message
    transaction.completed_at = now if status == STATUS_COMPLETED else None
    transaction.updated_at = now
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(f"Payment transaction {tx_ref} marked {status}")
    return transaction


def get_transaction(tx_ref):
    """Get transaction by reference, or None"""
    if not tx_ref:
        return None
    return PaymentTransaction.query.filter_by(tx_ref=tx_ref).first()


def require_transaction(tx_ref):
    transaction = get_transaction(tx_ref)
    if transaction is None:
        raise TransactionNotFound(tx_ref=tx_ref)
    return transaction


def get_user_payment_history(user_id, limit=20):
    """Newest first, at most HISTORY_MAX_LIMIT rows"""
    limit = max(1, min(int(limit), HISTORY_MAX_LIMIT))
    return (
        PaymentTransaction.query.filter_by(user_id=user_id)
        .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
        .limit(limit)
        .all()
    )
