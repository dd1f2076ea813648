"""
Routes package for the marketplace application
"""
# Export blueprints for registration in app.py
from routes.auth import auth_bp
from routes.payments import payments_bp
from routes.plans import plans_bp
from routes.notifications import notifications_bp
from routes.admin.settings import settings_bp
from routes.admin.transactions import transactions_bp
from routes.admin.customers import customers_bp

__all__ = [
    'auth_bp',
    'payments_bp',
    'plans_bp',
    'notifications_bp',
    'settings_bp',
    'transactions_bp',
    'customers_bp',
]
