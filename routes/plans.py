"""
Subscription plan routes
"""
from decimal import Decimal

from flask import Blueprint, jsonify, request, current_app

from models import db
from utils.auth_utils import admin_required
from utils.plans import get_plan, get_plans, plan_to_dict, price_setting_key
from utils.settings_helper import set_setting

plans_bp = Blueprint('plans', __name__, url_prefix='/api/plans')


@plans_bp.route('', methods=['GET'])
def list_plans():
    """Public list of subscription plans"""
    return jsonify([plan_to_dict(plan) for plan in get_plans()])


@plans_bp.route('/<plan_name>', methods=['PUT'])
@admin_required
def update_plan(plan_name):
    """Change a paid plan's monthly price"""
    plan = get_plan(plan_name)
    if plan is None:
        return jsonify({"success": False, "message": "Plan not found."}), 404
    if not plan['is_paid']:
        return jsonify({"success": False, "message": f"The {plan['name']} plan is always free."}), 400

    data = request.get_json(silent=True) or {}
    try:
        price = Decimal(str(data.get('price'))).quantize(Decimal('0.01'))
    except Exception:
        price = None
    if price is None or not price.is_finite() or price <= 0:
        return jsonify({"success": False, "message": "Price must be a positive number."}), 400

    try:
        set_setting(price_setting_key(plan['name']), str(price), f"{plan['name']} plan monthly price")
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating plan {plan['name']}: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": "Server error while updating plan."}), 500

    return jsonify({"success": True, "message": "Plan updated.", "plan": plan_to_dict(get_plan(plan['name']))})
