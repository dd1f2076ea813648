"""
Payment error taxonomy. Every error carries the HTTP status it surfaces as.
"""


class PaymentError(Exception):
    """Base class for payment flow errors"""
    status_code = 400
    default_message = 'Payment processing failed.'

    def __init__(self, message=None, tx_ref=None):
        self.message = message or self.default_message
        self.tx_ref = tx_ref
        super().__init__(self.message)

    def to_dict(self):
        body = {'success': False, 'message': self.message, 'error': type(self).__name__}
        if self.tx_ref:
            body['tx_ref'] = self.tx_ref
        return body


class DuplicateReference(PaymentError):
    status_code = 409
    default_message = 'A transaction with this reference already exists.'


class TransactionNotFound(PaymentError):
    status_code = 404
    default_message = 'Transaction not found.'


class InvalidSignature(PaymentError):
    status_code = 401
    default_message = 'Invalid webhook signature.'


class VerificationFailed(PaymentError):
    """Gateway said no, timed out, or could not be reached"""
    status_code = 400
    default_message = 'Payment verification failed.'

    def __init__(self, message=None, tx_ref=None, transport_error=False):
        super().__init__(message, tx_ref)
        self.transport_error = transport_error
        if transport_error:
            self.status_code = 502


class GatewayNotConfigured(VerificationFailed):
    status_code = 503
    default_message = 'Payment gateway is not configured.'


class TransactionNotCompleted(PaymentError):
    status_code = 409
    default_message = 'Transaction is not completed.'


class GrantFailed(PaymentError):
    """Grant rolled back; safe to retry"""
    status_code = 500
    default_message = 'Failed to apply subscription. Please retry.'
