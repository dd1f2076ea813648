"""
Payment transaction model definition
"""
from models import db
from datetime import datetime

STATUS_PENDING = 'pending'
STATUS_COMPLETED = 'completed'
STATUS_FAILED = 'failed'
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED)


class PaymentTransaction(db.Model):
    """
    Ledger row for one payment attempt, keyed by the caller-supplied tx_ref.
    Created pending, moves once to completed or failed, never deleted.
    granted_at is set by the granter when the plan was written to the user.
    """
    __tablename__ = 'payment_transactions'

    id = db.Column(db.Integer, primary_key=True)
    tx_ref = db.Column(db.String(255), unique=True, nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    plan_name = db.Column(db.String(50), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(10), default='ETB')
    email = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    status = db.Column(db.String(20), default=STATUS_PENDING, nullable=False, index=True)  # pending, completed, failed
    gateway_reference = db.Column(db.String(255), nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)
    granted_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def to_dict(self):
        """Convert transaction to dictionary for JSON responses"""
        return {
            'id': self.id,
            'tx_ref': self.tx_ref,
            'user_id': self.user_id,
            'plan_name': self.plan_name,
            'amount': float(self.amount) if self.amount is not None else None,
            'currency': self.currency,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'status': self.status,
            'gateway_reference': self.gateway_reference,
            'error_message': self.error_message,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'granted': self.granted_at is not None,
        }

    def __repr__(self):
        return f'<PaymentTransaction {self.tx_ref} {self.status}>'
