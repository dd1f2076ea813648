"""
User notification utility functions
"""
from models import db
from models.notification import Notification
from flask import current_app


def create_notification(user_id, title, message, notification_type='info', related_id=None):
    """
    Create a new user notification. Failures are logged, never raised.

    Args:
        user_id: Recipient user ID
        title: Notification title
        message: Notification message
        notification_type: 'info', 'success', 'warning' or 'error'
        related_id: Optional ID of related entity (transaction id)

    Returns:
        Notification object or None if creation failed
    """
    try:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=notification_type,
            related_id=related_id,
            is_read=False
        )
        db.session.add(notification)
        db.session.commit()
        return notification
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create notification for user {user_id}: {str(e)}", exc_info=True)
        return None


def notify_payment_completed(transaction):
    """Create notification for a successful payment"""
    title = "Payment Successful"
    message = (f"Your payment of {transaction.currency} {float(transaction.amount):.2f} "
               f"for the {transaction.plan_name} plan was successful.")
    return create_notification(transaction.user_id, title, message, 'success', related_id=transaction.id)


def notify_payment_failed(transaction):
    """Create notification for a failed payment"""
    title = "Payment Failed"
    message = f"Your payment for the {transaction.plan_name} plan could not be completed."
    if transaction.error_message:
        message += f" Reason: {transaction.error_message}"
    return create_notification(transaction.user_id, title, message, 'warning', related_id=transaction.id)


def notify_subscription_changed(user, plan_name):
    """Create notification when an admin changes a user's plan"""
    title = "Subscription Updated"
    message = f"Your subscription plan is now {plan_name}."
    return create_notification(user.id, title, message, 'info')
