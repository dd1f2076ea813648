"""
Models package for the marketplace application
"""
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Import all models here to ensure they're registered
from models.user import User
from models.transaction import PaymentTransaction
from models.notification import Notification
from models.settings import Settings
from models.email_verification import EmailVerificationOTP, OTPSendLog

__all__ = [
    'db',
    'User',
    'PaymentTransaction',
    'Notification',
    'Settings',
    'EmailVerificationOTP',
    'OTPSendLog',
]
