"""
OTP generation and hashing for email verification.
OTPs are hashed before storage; never store plain OTP in DB.
"""
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta

OTP_LENGTH = 6
OTP_EXPIRY_MINUTES = 10


def generate_otp() -> str:
    """Generate a secure 6-digit numeric OTP."""
    return ''.join(secrets.choice('0123456789') for _ in range(OTP_LENGTH))


def hash_otp(otp: str) -> str:
    return hashlib.sha256(otp.encode('utf-8')).hexdigest()


def verify_otp(plain_otp: str, otp_hash: str) -> bool:
    """Verify a plain OTP against stored hash."""
    return hmac.compare_digest(hash_otp(plain_otp), otp_hash or '')


def otp_expires_at() -> datetime:
    return datetime.utcnow() + timedelta(minutes=OTP_EXPIRY_MINUTES)


def is_valid_otp_format(otp: str) -> bool:
    return bool(otp) and otp.isdigit() and len(otp) == OTP_LENGTH
