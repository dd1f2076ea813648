"""
Applies a completed payment's plan to the paying user, once.
"""
from datetime import datetime

from flask import current_app

from models import db
from models.transaction import PaymentTransaction, STATUS_COMPLETED
from models.user import User
from utils.payment_errors import GrantFailed, TransactionNotCompleted, TransactionNotFound


def grant_subscription(tx_ref):
    """
    Write the transaction's plan onto its user inside one DB transaction.

    The transaction and user rows are locked (SELECT ... FOR UPDATE) for the
    read-modify-write. Calling this again for the same tx_ref is a no-op.

    Returns:
        dict: granted, already_granted, plan_name, user_id

    Raises:
        TransactionNotFound: unknown tx_ref
        TransactionNotCompleted: status is pending or failed; user untouched
        GrantFailed: anything else; everything rolled back
    """
    try:
        transaction = (
            PaymentTransaction.query.filter_by(tx_ref=tx_ref)
            .with_for_update()
            .first()
        )
        if transaction is None:
            raise TransactionNotFound(tx_ref=tx_ref)
        if transaction.status != STATUS_COMPLETED:
            raise TransactionNotCompleted(
                f"Transaction is {transaction.status}; subscription not granted.", tx_ref=tx_ref)

        user = User.query.filter_by(id=transaction.user_id).with_for_update().first()
        if user is None:
            raise GrantFailed('User for this transaction no longer exists.', tx_ref=tx_ref)

        result = {
            'granted': False,
            'already_granted': False,
            'plan_name': transaction.plan_name,
            'user_id': user.id,
        }

        if transaction.granted_at is not None or user.subscription_plan == transaction.plan_name:
            db.session.commit()
            result['already_granted'] = True
            current_app.logger.info(f"Subscription for {tx_ref} already granted; skipping")
            return result

        now = datetime.utcnow()
        user.subscription_plan = transaction.plan_name
        user.updated_at = now
        transaction.granted_at = now
        db.session.commit()
    except (TransactionNotFound, TransactionNotCompleted, GrantFailed):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Granting subscription for {tx_ref} failed: {str(e)}", exc_info=True)
        raise GrantFailed(tx_ref=tx_ref) from e

    result['granted'] = True
    current_app.logger.info(f"User {result['user_id']} upgraded to {result['plan_name']} ({tx_ref})")
    return result


def set_user_plan(user, plan_name):
    """Admin override of a user's plan, no payment involved. Commits."""
    locked = User.query.filter_by(id=user.id).with_for_update().first()
    if locked is None:
        db.session.rollback()
        raise ValueError(f"User {user.id} not found")
    locked.subscription_plan = plan_name
    locked.updated_at = datetime.utcnow()
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info(f"User {locked.id} plan set to {plan_name} by admin")
    return locked
