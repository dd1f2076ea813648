"""
User notification routes
"""
from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user

from models import db
from models.notification import Notification

notifications_bp = Blueprint('notifications', __name__, url_prefix='/api/notifications')

NOTIFICATION_LIST_LIMIT = 50


@notifications_bp.route('', methods=['GET'])
@login_required
def get_notifications():
    notifications = (
        Notification.query.filter_by(user_id=current_user.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(NOTIFICATION_LIST_LIMIT)
        .all()
    )
    return jsonify([n.to_dict() for n in notifications])


@notifications_bp.route('/unread-count', methods=['GET'])
@login_required
def get_unread_count():
    count = Notification.query.filter_by(user_id=current_user.id, is_read=False).count()
    return jsonify({"unread_count": count})


@notifications_bp.route('/<int:notification_id>/read', methods=['PATCH'])
@login_required
def mark_as_read(notification_id):
    notification = Notification.query.filter_by(id=notification_id, user_id=current_user.id).first()
    if not notification:
        return jsonify({"success": False, "message": "Notification not found or permission denied."}), 404
    try:
        notification.is_read = True
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error marking notification {notification_id} as read: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": "Server error."}), 500
    return jsonify({"success": True, "message": "Notification marked as read."})


@notifications_bp.route('/mark-all-read', methods=['POST'])
@login_required
def mark_all_as_read():
    try:
        Notification.query.filter_by(user_id=current_user.id, is_read=False).update({'is_read': True})
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error marking all notifications as read: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": "Server error."}), 500
    return jsonify({"success": True, "message": "All notifications marked as read."})
