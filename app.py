"""
Main Flask application entry point for the marketplace API
"""
import logging
import os

from flask import Flask, jsonify
from flask_login import LoginManager
from config import Config, get_config
from models import db
from models.user import User
from utils.mail import mail

logger = logging.getLogger(__name__)

# Initialize login manager (no DB access at import time)
login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    """Load user for Flask-Login (runs in request context)."""
    user = User.query.get(int(user_id))
    if user is None or user.is_banned:
        return None
    return user


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"success": False, "message": "Authentication required."}), 401


def create_app(config_class=Config):
    """Application factory pattern. DB init runs inside app_context; non-fatal on failure."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    login_manager.init_app(app)
    mail.init_app(app)

    @app.errorhandler(404)
    def handle_404_error(e):
        return jsonify({"success": False, "message": "Resource not found."}), 404

    @app.errorhandler(405)
    def handle_405_error(e):
        return jsonify({"success": False, "message": "Method not allowed."}), 405

    @app.errorhandler(500)
    def handle_500_error(e):
        db.session.rollback()
        return jsonify({"success": False, "message": "Internal server error. Please try again later."}), 500

    # Create tables and seed only inside app context; do not crash if DB temporarily unavailable
    with app.app_context():
        try:
            db.create_all()
            seed_admin()
        except Exception as e:
            logger.warning("Database init/seed skipped (non-fatal): %s", e)

    from routes import (
        auth_bp,
        payments_bp,
        plans_bp,
        notifications_bp,
        settings_bp,
        transactions_bp,
        customers_bp,
    )

    app.register_blueprint(auth_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(plans_bp)
    app.register_blueprint(notifications_bp)

    # Admin blueprints
    app.register_blueprint(settings_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(customers_bp)

    @app.route('/health')
    def health():
        return jsonify({"status": "ok"})

    return app


def seed_admin():
    """Ensure the admin from SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD exists. No-op when unset."""
    seed_email = (os.environ.get("SEED_ADMIN_EMAIL") or "").strip().lower()
    seed_password = os.environ.get("SEED_ADMIN_PASSWORD")
    if not seed_email or not seed_password:
        return

    admin = User.query.filter(User.email.ilike(seed_email)).first()
    if not admin:
        admin = User(
            full_name=os.environ.get("SEED_ADMIN_NAME", "Administrator"),
            email=seed_email,
        )
        db.session.add(admin)
    admin.role = "admin"
    admin.email_verified = True
    admin.is_banned = False
    admin.set_password(seed_password)

    try:
        db.session.commit()
        logger.info("Admin ready. Email: %s", seed_email)
    except Exception as e:
        db.session.rollback()
        logger.error("Error seeding admin: %s", e)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    create_app(get_config()).run(host="0.0.0.0", port=port, debug=os.environ.get("FLASK_DEBUG", "false").lower() in ("true", "1"))
