"""
Admin user management routes
"""
from flask import Blueprint, request, jsonify, current_app
from flask_login import current_user
from sqlalchemy import or_

from models import db
from models.user import User
from utils.auth_utils import admin_required
from utils.notifications import notify_subscription_changed
from utils.plans import get_plan
from utils.subscription_granter import set_user_plan

customers_bp = Blueprint('admin_customers', __name__, url_prefix='/api/admin')


@customers_bp.route('/users', methods=['GET'])
@admin_required
def list_users():
    """Users filtered by plan, banned state or search text"""
    plan_filter = request.args.get('plan', '').strip()
    status_filter = request.args.get('status', '').strip()
    search_query = request.args.get('search', '').strip()

    query = User.query
    if plan_filter:
        query = query.filter(User.subscription_plan == plan_filter)
    if status_filter == 'banned':
        query = query.filter(User.is_banned.is_(True))
    elif status_filter == 'active':
        query = query.filter(User.is_banned.is_(False))
    if search_query:
        query = query.filter(or_(
            User.full_name.ilike(f'%{search_query}%'),
            User.email.ilike(f'%{search_query}%'),
            User.phone_number.ilike(f'%{search_query}%'),
        ))

    users = query.order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify({'success': True, 'users': [u.to_dict() for u in users]})


@customers_bp.route('/users/<int:user_id>/subscription', methods=['PUT'])
@admin_required
def override_subscription(user_id):
    """Set a user's plan directly, bypassing payment"""
    user = User.query.get(user_id)
    if not user:
        return jsonify({"success": False, "message": "User not found."}), 404

    data = request.get_json(silent=True) or {}
    plan = get_plan(data.get('plan_name'))
    if plan is None:
        return jsonify({"success": False, "message": "Unknown subscription plan."}), 400

    try:
        user = set_user_plan(user, plan['name'])
    except Exception as e:
        current_app.logger.error(f"Error overriding plan for user {user_id}: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": "Failed to update subscription."}), 500

    current_app.logger.info(f"Admin {current_user.id} set user {user_id} plan to {plan['name']}")
    notify_subscription_changed(user, plan['name'])
    return jsonify({"success": True, "message": "Subscription updated.", "user": user.to_dict()})


@customers_bp.route('/users/<int:user_id>/ban', methods=['PUT'])
@admin_required
def set_banned(user_id):
    user = User.query.get(user_id)
    if not user:
        return jsonify({"success": False, "message": "User not found."}), 404
    if user.id == current_user.id:
        return jsonify({"success": False, "message": "You cannot ban your own account."}), 400

    data = request.get_json(silent=True) or {}
    try:
        user.is_banned = bool(data.get('banned', True))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating ban state for user {user_id}: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": "Server error."}), 500
    return jsonify({"success": True, "user": user.to_dict()})
