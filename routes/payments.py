"""
Payment routes: initialize, Chapa webhook, client verification, status and history
"""
from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user

from models import db
from utils.auth_utils import split_full_name
from utils.payment_errors import PaymentError, InvalidSignature, TransactionNotFound
from utils.payment_gateway import (
    get_gateway_config,
    get_signature_header,
    verify_webhook_signature,
    verify_with_gateway,
)
from utils.payment_ledger import create_transaction, get_transaction, get_user_payment_history
from utils.payment_status_helper import settle_transaction
from utils.plans import CURRENCY, get_plan
from utils.validators import parse_amount, validate_tx_ref

payments_bp = Blueprint('payments', __name__, url_prefix='/api/payments')

GENERIC_ERROR = "Something went wrong. Please try again later."


@payments_bp.errorhandler(PaymentError)
def handle_payment_error(e):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


def _owned_transaction(tx_ref):
    """Transaction visible to the current user; admins see all"""
    transaction = get_transaction(tx_ref)
    if transaction is None or (transaction.user_id != current_user.id and not current_user.is_admin):
        raise TransactionNotFound(tx_ref=tx_ref)
    return transaction


@payments_bp.route('/initialize', methods=['POST'])
@login_required
def initialize_payment():
    """Create the pending ledger row before redirecting the user to Chapa"""
    data = request.get_json(silent=True) or {}
    plan_name = (data.get('plan_name') or data.get('planName') or '').strip()
    tx_ref = (data.get('tx_ref') or data.get('txRef') or '').strip()
    amount = parse_amount(data.get('amount'))

    if not validate_tx_ref(tx_ref):
        return jsonify({"success": False, "message": "A valid tx_ref is required."}), 400
    if amount is None:
        return jsonify({"success": False, "message": "Amount must be a positive number."}), 400

    plan = get_plan(plan_name)
    if plan is None:
        return jsonify({"success": False, "message": "Unknown subscription plan."}), 400
    if not plan['is_paid']:
        return jsonify({"success": False, "message": f"The {plan['name']} plan does not require payment."}), 400
    if amount != plan['price']:
        return jsonify({
            "success": False,
            "message": f"Amount does not match the {plan['name']} plan price ({plan['price_label']}).",
        }), 400

    first_name, last_name = split_full_name(current_user.full_name)
    try:
        transaction = create_transaction(
            user_id=current_user.id,
            plan_name=plan['name'],
            amount=amount,
            currency=CURRENCY,
            email=current_user.email,
            first_name=first_name,
            last_name=last_name,
            tx_ref=tx_ref,
        )
    except PaymentError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Initialize payment error for {tx_ref}: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": "Failed to initialize payment."}), 500

    return jsonify({
        "success": True,
        "message": "Payment transaction initialized",
        "transaction": transaction.to_dict(),
    }), 201


@payments_bp.route('/webhook', methods=['POST'])
def handle_webhook():
    """
    Chapa callback. Trusted via HMAC signature when a webhook secret is configured;
    otherwise the outcome is re-checked against the verify API.
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"success": False, "message": "Invalid webhook payload."}), 400
    tx_ref = str(payload.get('tx_ref') or '').strip()
    if not tx_ref:
        return jsonify({"success": False, "message": "tx_ref is required."}), 400

    try:
        config = get_gateway_config()
        if config['webhook_secret']:
            signature = get_signature_header(request.headers)
            if not verify_webhook_signature(payload, signature, config['webhook_secret']):
                current_app.logger.warning(f"Rejected webhook for {tx_ref}: signature mismatch")
                raise InvalidSignature(tx_ref=tx_ref)
            status = payload.get('status')
            succeeded = status == 'success'
            gateway_reference = payload.get('reference')
            error_message = None if succeeded else f"Gateway reported status '{status}'"
        else:
            current_app.logger.warning(f"No webhook secret configured; verifying {tx_ref} via the gateway API")
            verification = verify_with_gateway(tx_ref, config)
            succeeded = verification['succeeded']
            gateway_reference = verification['gateway_reference']
            error_message = None if succeeded else verification['message']

        result = settle_transaction(tx_ref, succeeded, gateway_reference, error_message)
    except PaymentError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Webhook processing error for {tx_ref}: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": "Webhook processing failed"}), 500

    return jsonify({"success": True, "message": "Webhook processed", **result}), 200


@payments_bp.route('/verify/<tx_ref>', methods=['GET', 'POST'])
@login_required
def verify_payment(tx_ref):
    """Client-side fallback: ask Chapa directly and apply the answer"""
    _owned_transaction(tx_ref)
    try:
        verification = verify_with_gateway(tx_ref)
        if verification['succeeded']:
            result = settle_transaction(tx_ref, True, verification['gateway_reference'])
        else:
            result = settle_transaction(tx_ref, False, error_message='Payment verification failed')
    except PaymentError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Verify payment error for {tx_ref}: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": "Failed to verify payment"}), 500

    if result['status'] == 'completed':
        return jsonify({
            "success": True,
            "message": "Payment verified successfully",
            **result,
        }), 200
    return jsonify({
        "success": False,
        "message": "Payment verification failed",
        **result,
    }), 400


@payments_bp.route('/status/<tx_ref>', methods=['GET'])
@login_required
def payment_status(tx_ref):
    transaction = _owned_transaction(tx_ref)
    return jsonify({"success": True, "transaction": transaction.to_dict()})


@payments_bp.route('/history', methods=['GET'])
@login_required
def payment_history():
    """Current user's payments, newest first"""
    limit = request.args.get('limit', 20, type=int)
    try:
        transactions = get_user_payment_history(current_user.id, limit)
    except Exception as e:
        current_app.logger.error(f"Error fetching payment history: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": GENERIC_ERROR}), 500
    return jsonify({"success": True, "transactions": [t.to_dict() for t in transactions]})
