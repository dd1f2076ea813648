"""
Authentication routes: register, email verification (OTP), login, logout
"""
from datetime import datetime, timedelta

from flask import request, Blueprint, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user

from models import db
from models.user import User
from models.email_verification import EmailVerificationOTP, OTPSendLog
from utils.auth_utils import hash_password, verify_password
from utils.validators import validate_email, validate_password, normalize_phone
from utils.otp_helper import generate_otp, hash_otp, verify_otp, otp_expires_at, is_valid_otp_format

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

# Rate limiting constants
OTP_RESEND_COOLDOWN_SECONDS = 30
OTP_MAX_SENDS_PER_HOUR = 5
GENERIC_ERROR = "Something went wrong. Please try again later."
OTP_SEND_FAIL_MSG = "Unable to send verification code. Please try again later."
OTP_VERIFY_FAIL_MSG = "Invalid or expired code. Please request a new one."
OTP_BLOCKED_MSG = "Too many attempts. Please request a new code."
OTP_RATE_LIMIT_MSG = "Too many requests. Please try again later."
OTP_RESEND_COOLDOWN_MSG = "Please wait before requesting another code."
OTP_SUCCESS_MSG = "Verification code sent. Check your email."
OTP_VERIFY_SUCCESS_MSG = "Account verified successfully."


def _request_data():
    return request.get_json(silent=True) or request.form


def _cleanup_expired_verification_data():
    """Remove expired OTP and old send-log records."""
    now = datetime.utcnow()
    try:
        EmailVerificationOTP.query.filter(EmailVerificationOTP.otp_expires_at <= now).delete()
        cutoff = now - timedelta(hours=24)
        OTPSendLog.query.filter(OTPSendLog.sent_at <= cutoff).delete()
        db.session.commit()
    except Exception:
        db.session.rollback()


def _issue_otp(email):
    """Store a fresh hashed OTP for email and log the send. Returns the plain OTP; caller commits."""
    otp = generate_otp()
    now = datetime.utcnow()
    row = EmailVerificationOTP.query.get(email)
    if row:
        row.otp_hash = hash_otp(otp)
        row.otp_expires_at = otp_expires_at()
        row.otp_attempts = 0
        row.otp_sent_at = now
    else:
        row = EmailVerificationOTP(
            email=email,
            otp_hash=hash_otp(otp),
            otp_expires_at=otp_expires_at(),
            otp_attempts=0,
            otp_sent_at=now,
        )
        db.session.add(row)
    db.session.add(OTPSendLog(email=email, sent_at=now))
    return otp


@auth_bp.route('/register', methods=['POST'])
def register():
    """Create an unverified account and email it a verification code"""
    data = _request_data()
    full_name = (data.get('full_name') or '').strip()
    email = (data.get('email') or '').strip().lower()
    phone_number = normalize_phone(data.get('phone_number'))
    password = data.get('password') or ''

    errors = []
    if not full_name:
        errors.append('Full name is required.')
    if not validate_email(email):
        errors.append('Please enter a valid email address.')
    if phone_number and not 9 <= len(phone_number.lstrip('+')) <= 15:
        errors.append('Phone number must be between 9 and 15 digits.')
    is_valid, pwd_error = validate_password(password)
    if not is_valid:
        errors.append(pwd_error)

    if not errors:
        if User.query.filter_by(email=email).first():
            errors.append('Email already registered.')
        if phone_number and User.query.filter_by(phone_number=phone_number).first():
            errors.append('Phone number already registered.')

    if errors:
        return jsonify({"success": False, "message": errors[0], "errors": errors}), 400

    try:
        new_user = User(
            full_name=full_name,
            email=email,
            phone_number=phone_number or None,
            password_hash=hash_password(password),
            email_verified=False,
        )
        db.session.add(new_user)
        otp = _issue_otp(email)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Registration error for {email}: {str(e)}", exc_info=True)
        return jsonify({"success": False, "message": "Registration failed. Please try again."}), 500

    try:
        from utils.mail import send_verification_otp_email
        send_verification_otp_email(email, otp, full_name)
    except Exception as e:
        # The user can request a new code
        current_app.logger.error(f"Failed to send verification OTP to {email}: {str(e)}", exc_info=True)

    return jsonify({
        "success": True,
        "message": "User registered successfully. Please verify your email.",
        "user": new_user.to_dict(),
        "requires_verification": True,
    }), 201


@auth_bp.route('/send-verification-otp', methods=['POST'])
def send_verification_otp():
    """Resend the verification code, subject to cooldown and hourly limit."""
    try:
        _cleanup_expired_verification_data()
        data = _request_data()
        email = (data.get("email") or "").strip().lower()

        if not email or not validate_email(email):
            return jsonify({"success": False, "message": "Please provide a valid email address."}), 400

        user = User.query.filter_by(email=email).first()
        if not user or user.email_verified:
            # Same answer whether or not the account exists
            return jsonify({"success": True, "message": OTP_SUCCESS_MSG})

        since = datetime.utcnow() - timedelta(hours=1)
        recent_sends = OTPSendLog.query.filter(OTPSendLog.email == email, OTPSendLog.sent_at >= since).count()
        if recent_sends >= OTP_MAX_SENDS_PER_HOUR:
            return jsonify({"success": False, "message": OTP_RATE_LIMIT_MSG}), 429

        existing = EmailVerificationOTP.query.get(email)
        if existing and existing.otp_sent_at:
            delta = (datetime.utcnow() - existing.otp_sent_at).total_seconds()
            if delta < OTP_RESEND_COOLDOWN_SECONDS:
                return jsonify({
                    "success": False,
                    "message": OTP_RESEND_COOLDOWN_MSG,
                    "retry_after_seconds": max(1, int(OTP_RESEND_COOLDOWN_SECONDS - delta)),
                }), 429

        if not current_app.config.get('MAIL_SERVER') or not current_app.config.get('MAIL_USERNAME'):
            return jsonify({
                "success": False,
                "message": "Email service is not configured. Please contact support."
            }), 500

        otp = _issue_otp(email)
        try:
            db.session.commit()
            from utils.mail import send_verification_otp_email
            send_verification_otp_email(email, otp, user.full_name)
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to send verification OTP to {email}: {str(e)}", exc_info=True)
            error_msg = OTP_SEND_FAIL_MSG
            if current_app.config.get('DEBUG'):
                error_msg = f"Failed to send email: {str(e)}"
            return jsonify({"success": False, "message": error_msg}), 500
        return jsonify({"success": True, "message": OTP_SUCCESS_MSG})
    except Exception as e:
        current_app.logger.error(f"Unexpected error in send_verification_otp: {str(e)}", exc_info=True)
        db.session.rollback()
        return jsonify({"success": False, "message": GENERIC_ERROR}), 500


@auth_bp.route('/verify-email-otp', methods=['POST'])
def verify_email_otp():
    """Verify OTP, mark the account verified and log the user in. Input: email, otp."""
    try:
        data = _request_data()
        email = (data.get("email") or "").strip().lower()
        otp = (data.get("otp") or data.get("code") or "").strip()

        if not email or not validate_email(email):
            return jsonify({"success": False, "message": "Please provide a valid email address."}), 400
        if not is_valid_otp_format(otp):
            return jsonify({"success": False, "message": OTP_VERIFY_FAIL_MSG}), 400

        row = EmailVerificationOTP.query.get(email)
        if not row or row.is_expired():
            return jsonify({"success": False, "message": OTP_VERIFY_FAIL_MSG}), 400
        if row.attempts_exceeded():
            return jsonify({"success": False, "message": OTP_BLOCKED_MSG}), 400

        if not verify_otp(otp, row.otp_hash):
            row.otp_attempts = (row.otp_attempts or 0) + 1
            try:
                db.session.commit()
            except Exception:
                db.session.rollback()
            return jsonify({"success": False, "message": OTP_VERIFY_FAIL_MSG}), 400

        user = User.query.filter_by(email=email).first()
        if not user:
            return jsonify({"success": False, "message": "User not found."}), 404
        user.email_verified = True
        db.session.delete(row)
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            return jsonify({"success": False, "message": GENERIC_ERROR}), 500

        login_user(user, remember=True)
        return jsonify({
            "success": True,
            "message": OTP_VERIFY_SUCCESS_MSG,
            "user": user.to_dict(),
        })
    except Exception as e:
        current_app.logger.error(f"Error verifying OTP: {str(e)}", exc_info=True)
        db.session.rollback()
        return jsonify({"success": False, "message": GENERIC_ERROR}), 500


@auth_bp.route('/login', methods=['POST'])
def login():
    """User login - accepts email or phone number"""
    data = _request_data()
    identifier = (data.get('identifier') or data.get('email') or data.get('phone_number') or '').strip()
    password = data.get('password') or ''

    if not identifier or not password:
        return jsonify({"success": False, "message": "Please enter both email/phone and password."}), 400

    if '@' in identifier:
        user = User.query.filter_by(email=identifier.lower()).first()
    else:
        user = User.query.filter_by(phone_number=normalize_phone(identifier)).first()

    if not user or not verify_password(user.password_hash, password):
        return jsonify({"success": False, "message": "Invalid credentials."}), 401
    if user.is_banned:
        return jsonify({"success": False, "message": "This account has been suspended."}), 403
    if not user.email_verified:
        return jsonify({
            "success": False,
            "message": "Please verify your email before logging in.",
            "requires_verification": True,
        }), 403

    login_user(user, remember=True)
    return jsonify({"success": True, "message": f"Welcome back, {user.full_name}!", "user": user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True, "message": "You have been logged out successfully."})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({"success": True, "user": current_user.to_dict()})
