"""
Email verification OTP models (PostgreSQL-compatible).
Used for OTP-based email verification after registration.
"""
from models import db
from datetime import datetime

MAX_OTP_ATTEMPTS = 5


class EmailVerificationOTP(db.Model):
    """
    Stores hashed OTP for email verification.
    One active record per email; replaced on new send.
    """
    __tablename__ = 'email_verification_otp'

    email = db.Column(db.String(120), primary_key=True)
    otp_hash = db.Column(db.String(255), nullable=False)
    otp_expires_at = db.Column(db.DateTime, nullable=False)
    otp_attempts = db.Column(db.Integer, default=0)
    otp_sent_at = db.Column(db.DateTime, nullable=True)  # resend cooldown
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def is_expired(self):
        return datetime.utcnow() >= self.otp_expires_at

    def attempts_exceeded(self):
        return (self.otp_attempts or 0) >= MAX_OTP_ATTEMPTS

    def __repr__(self):
        return f'<EmailVerificationOTP {self.email}>'


class OTPSendLog(db.Model):
    """Log of OTP sends per email for rate limiting (e.g. max 5 per hour)."""
    __tablename__ = 'otp_send_log'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), nullable=False, index=True)
    sent_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
