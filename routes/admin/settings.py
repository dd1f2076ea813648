"""
Admin system configuration routes
"""
from flask import request, Blueprint, jsonify, current_app

from models import db
from utils.auth_utils import admin_required
from utils.mail import mail_configured
from utils.payment_gateway import GATEWAY_BLOB, get_gateway_config
from utils.settings_helper import get_config_blob, set_config_blob

settings_bp = Blueprint('admin_settings', __name__, url_prefix='/api/admin')

GATEWAY_KEYS = ('secret_key', 'webhook_secret', 'base_url', 'timeout_seconds')


def _mask(value):
    if not value:
        return None
    value = str(value)
    return ('*' * 8) + value[-4:] if len(value) > 8 else '*' * 8


def _settings_payload():
    resolved = get_gateway_config()
    stored = get_config_blob(GATEWAY_BLOB)
    return {
        'api_status': {
            'chapa_configured': bool(resolved['secret_key']),
            'webhook_secret_configured': bool(resolved['webhook_secret']),
            'email_configured': mail_configured(),
        },
        'payment_gateway': {
            'secret_key': _mask(resolved['secret_key']),
            'webhook_secret': _mask(resolved['webhook_secret']),
            'base_url': resolved['base_url'],
            'timeout_seconds': resolved['timeout_seconds'],
            'stored_keys': sorted(stored.keys()),
        },
    }


@settings_bp.route('/settings', methods=['GET'])
@admin_required
def get_settings():
    return jsonify({"success": True, **_settings_payload()})


@settings_bp.route('/settings', methods=['PUT'])
@admin_required
def update_settings():
    """Merge payment gateway keys into the stored blob; empty string or null removes a key"""
    data = request.get_json(silent=True) or {}
    gateway = data.get('payment_gateway')
    if not isinstance(gateway, dict):
        return jsonify({"success": False, "message": "payment_gateway object is required."}), 400

    unknown = sorted(set(gateway) - set(GATEWAY_KEYS))
    if unknown:
        return jsonify({"success": False, "message": f"Unknown settings: {', '.join(unknown)}"}), 400

    values = {}
    for key, value in gateway.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            values[key] = None
        elif key == 'timeout_seconds':
            try:
                values[key] = float(value)
            except (TypeError, ValueError):
                return jsonify({"success": False, "message": "timeout_seconds must be a number."}), 400
        else:
            values[key] = str(value).strip()

    try:
        set_config_blob(GATEWAY_BLOB, values, 'Payment gateway configuration')
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving settings: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": "Server error"}), 500

    current_app.logger.info(f"Payment gateway settings updated: {', '.join(sorted(values))}")
    return jsonify({"success": True, "message": "System configuration updated successfully", **_settings_payload()})
