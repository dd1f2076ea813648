"""
Email utility functions
"""
from flask_mail import Mail, Message
from flask import current_app

mail = Mail()


def _mail_initialized():
    return 'mail' in current_app.extensions


def _ensure_mail_configured():
    if not _mail_initialized():
        raise RuntimeError("Mail extension not initialized. Check app configuration.")

    if not current_app.config.get('MAIL_SERVER'):
        raise RuntimeError("MAIL_SERVER not configured. Please set MAIL_SERVER environment variable.")

    if not current_app.config.get('MAIL_USERNAME'):
        raise RuntimeError("MAIL_USERNAME not configured. Please set MAIL_USERNAME environment variable.")


def mail_configured():
    return bool(current_app.config.get('MAIL_SERVER') and current_app.config.get('MAIL_USERNAME'))


def send_verification_otp_email(email: str, otp: str, name: str = '') -> None:
    """
    Send OTP verification email. Subject: "Verify Your Email Address".
    Uses clean HTML template; fallback plain body.
    """
    _ensure_mail_configured()

    subject = "Verify Your Email Address"
    body = f"Your verification code is: {otp}. It expires in 10 minutes. Do not share this code."
    html = _otp_email_html(otp, name)
    msg = Message(
        subject=subject,
        recipients=[email],
        body=body,
        html=html,
    )
    try:
        mail.send(msg)
    except Exception as e:
        current_app.logger.error(f"SMTP error sending email to {email}: {str(e)}", exc_info=True)
        raise


def send_payment_receipt_email(transaction):
    """
    Email the payer a receipt for a completed payment.
    Silently skipped if mail is not configured; SMTP errors are logged only.
    """
    if not _mail_initialized() or not mail_configured():
        return

    amount = f"{transaction.currency} {float(transaction.amount):.2f}"
    subject = f"Payment Receipt - {transaction.plan_name} Plan"
    body = f"""
Hello {transaction.first_name or 'Customer'},

We received your payment. Your {transaction.plan_name} plan is now active.

Amount: {amount}
Reference: {transaction.tx_ref}
Gateway Reference: {transaction.gateway_reference or 'N/A'}
Date: {transaction.completed_at.strftime('%Y-%m-%d %H:%M:%S') if transaction.completed_at else 'N/A'}

Thank you for subscribing.
"""
    msg = Message(
        subject=subject,
        recipients=[transaction.email],
        body=body,
        html=_payment_receipt_html(transaction, amount),
    )
    try:
        mail.send(msg)
    except Exception as e:
        current_app.logger.error(f"Error sending payment receipt for {transaction.tx_ref}: {str(e)}", exc_info=True)


def _otp_email_html(otp: str, name: str = '') -> str:
    """Clean HTML template for OTP email."""
    greeting = f"<p>Hello {name},</p>" if name else ""
    return f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>Verify Your Email</title></head>
    <body style="font-family: system-ui, sans-serif; max-width: 480px; margin: 0 auto; padding: 24px;">
        <h2 style="color: #1a1a2e;">Verify Your Email Address</h2>
        {greeting}
        <p>Use the code below to verify your email:</p>
        <p style="font-size: 28px; font-weight: bold; letter-spacing: 6px; color: #16213e;">{otp}</p>
        <p style="color: #666;">This code expires in 10 minutes. Do not share it with anyone.</p>
        <hr style="border: none; border-top: 1px solid #eee; margin: 24px 0;">
        <p style="font-size: 12px; color: #999;">If you did not request this, you can ignore this email.</p>
    </body>
    </html>
    """


def _payment_receipt_html(transaction, amount) -> str:
    """HTML template for payment receipt"""
    return f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>Payment Receipt</title></head>
    <body style="font-family: system-ui, sans-serif; max-width: 600px; margin: 0 auto; padding: 24px;">
        <h2 style="color: #1a1a2e;">Payment Receipt</h2>
        <p>Your {transaction.plan_name} plan is now active.</p>
        <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">
            <tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>Plan:</strong></td><td style="padding: 8px; border-bottom: 1px solid #eee;">{transaction.plan_name}</td></tr>
            <tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>Amount:</strong></td><td style="padding: 8px; border-bottom: 1px solid #eee;">{amount}</td></tr>
            <tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>Reference:</strong></td><td style="padding: 8px; border-bottom: 1px solid #eee;">{transaction.tx_ref}</td></tr>
            <tr><td style="padding: 8px;"><strong>Gateway Reference:</strong></td><td style="padding: 8px;">{transaction.gateway_reference or 'N/A'}</td></tr>
        </table>
    </body>
    </html>
    """
