"""
Centralized payment outcome handling shared by the webhook and the verify endpoint.
Moves a pending transaction to its terminal status once, then grants the plan.
"""
from flask import current_app

from models import db
from models.transaction import PaymentTransaction, STATUS_COMPLETED, STATUS_FAILED
from utils.payment_errors import TransactionNotFound
from utils.payment_ledger import update_transaction_status
from utils.subscription_granter import grant_subscription


def settle_transaction(tx_ref, succeeded, gateway_reference=None, error_message=None):
    """
    Apply a verified gateway outcome to the ledger and, when completed, the user's plan.

    A terminal row is never moved again: duplicate webhooks and client polls
    only re-run the (idempotent) grant. Safe to call concurrently for one tx_ref.

    Returns:
        dict: tx_ref, status, already_settled, granted, already_granted, plan_name
    """
    transaction = (
        PaymentTransaction.query.filter_by(tx_ref=tx_ref)
        .with_for_update()
        .first()
    )
    if transaction is None:
        db.session.rollback()
        raise TransactionNotFound(tx_ref=tx_ref)

    newly_settled = not transaction.is_terminal
    if newly_settled:
        status = STATUS_COMPLETED if succeeded else STATUS_FAILED
        update_transaction_status(
            tx_ref,
            status,
            gateway_reference=gateway_reference,
            error_message=None if succeeded else (error_message or 'Payment was not successful'),
        )
    else:
        db.session.commit()
        current_app.logger.info(f"Transaction {tx_ref} already {transaction.status}; ignoring repeated outcome")

    result = {
        'tx_ref': tx_ref,
        'status': transaction.status,
        'already_settled': not newly_settled,
        'granted': False,
        'already_granted': False,
        'plan_name': None,
    }

    try:
        if transaction.status == STATUS_COMPLETED:
            grant = grant_subscription(tx_ref)
            result['granted'] = grant['granted']
            result['already_granted'] = grant['already_granted']
            result['plan_name'] = grant['plan_name']
    finally:
        # The terminal transition is committed even when the grant fails
        if newly_settled:
            _notify_outcome(transaction)

    return result


def _notify_outcome(transaction):
    """Notifications never block the payment flow"""
    from utils.notifications import notify_payment_completed, notify_payment_failed
    from utils.mail import send_payment_receipt_email

    try:
        if transaction.status == STATUS_COMPLETED:
            notify_payment_completed(transaction)
            send_payment_receipt_email(transaction)
        else:
            notify_payment_failed(transaction)
    except Exception as e:
        current_app.logger.error(f"Failed to notify user about {transaction.tx_ref}: {str(e)}", exc_info=True)
