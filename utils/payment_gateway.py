"""
Chapa payment gateway: webhook signature checks and the verify-transaction API.
"""
import hashlib
import hmac
import json
import urllib.error
import urllib.parse
import urllib.request

from flask import current_app

from utils.payment_errors import GatewayNotConfigured, VerificationFailed
from utils.settings_helper import DEFAULT_SOURCES, resolve_config

GATEWAY_BLOB = 'payment_gateway'
SIGNATURE_HEADERS = ('Chapa-Signature', 'x-chapa-signature')
DEFAULT_BASE_URL = 'https://api.chapa.co/v1'
DEFAULT_TIMEOUT_SECONDS = 5
MAX_TIMEOUT_SECONDS = 15
CREDENTIAL_ERROR_CODES = (401, 403)


class GatewayTransportError(Exception):
    """The gateway could not give a business answer (timeout, network, 5xx, garbage body)"""


def get_gateway_config(sources=DEFAULT_SOURCES):
    """Resolve gateway keys for this call; missing secrets come back as None."""
    timeout = resolve_config('timeout_seconds', 'CHAPA_TIMEOUT_SECONDS', blob=GATEWAY_BLOB,
                             sources=sources, default=DEFAULT_TIMEOUT_SECONDS)
    try:
        timeout = float(timeout)
    except (TypeError, ValueError):
        timeout = DEFAULT_TIMEOUT_SECONDS
    if timeout <= 0 or timeout > MAX_TIMEOUT_SECONDS:
        timeout = DEFAULT_TIMEOUT_SECONDS

    return {
        'secret_key': resolve_config('secret_key', 'CHAPA_SECRET_KEY', blob=GATEWAY_BLOB, sources=sources),
        'webhook_secret': resolve_config('webhook_secret', 'CHAPA_WEBHOOK_SECRET', blob=GATEWAY_BLOB, sources=sources),
        'base_url': resolve_config('base_url', 'CHAPA_BASE_URL', blob=GATEWAY_BLOB, sources=sources,
                                   default=DEFAULT_BASE_URL),
        'timeout_seconds': timeout,
    }


def canonical_payload(payload):
    """Compact JSON with the payload's own key order, UTF-8 encoded"""
    return json.dumps(payload, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


def compute_signature(payload, secret):
    """Hex HMAC-SHA256 of the canonical payload"""
    return hmac.new(secret.encode('utf-8'), canonical_payload(payload), hashlib.sha256).hexdigest()


def verify_webhook_signature(payload, signature, secret):
    """True only when ``signature`` is exactly the expected hex digest"""
    if not secret or not signature:
        return False
    expected = compute_signature(payload, secret)
    return hmac.compare_digest(expected.encode('utf-8'), signature.encode('utf-8'))


def get_signature_header(headers):
    for name in SIGNATURE_HEADERS:
        value = headers.get(name)
        if value:
            return value.strip()
    return None


def fetch_verification(tx_ref, secret_key, base_url=DEFAULT_BASE_URL, timeout=DEFAULT_TIMEOUT_SECONDS):
    """
    Call GET {base_url}/transaction/verify/{tx_ref}.

    Returns the decoded JSON body whenever the gateway answered (2xx, or 4xx whose JSON
    body carries a gateway status).

    Raises:
        GatewayTransportError: timeout, connection error, 5xx, 401/403 (bad secret key),
            4xx without a gateway status, or an undecodable body
    """
    url = f"{base_url.rstrip('/')}/transaction/verify/{urllib.parse.quote(tx_ref, safe='')}"
    req = urllib.request.Request(url, method='GET', headers={
        'Authorization': f'Bearer {secret_key}',
        'Accept': 'application/json',
    })
    http_error = None
    try:
        with urllib.request.urlopen(req, timeout=timeout) as r:
            raw = r.read()
    except urllib.error.HTTPError as e:
        if e.code >= 500:
            raise GatewayTransportError(f"Gateway returned HTTP {e.code}") from e
        if e.code in CREDENTIAL_ERROR_CODES:
            raise GatewayTransportError(f"Gateway rejected our credentials (HTTP {e.code})") from e
        http_error = e
        raw = e.read()
    except (urllib.error.URLError, TimeoutError, OSError) as e:
        raise GatewayTransportError(f"Gateway unreachable: {e}") from e

    try:
        body = json.loads(raw.decode('utf-8'))
    except (UnicodeDecodeError, ValueError) as e:
        raise GatewayTransportError("Gateway returned a non-JSON response") from e
    if not isinstance(body, dict):
        raise GatewayTransportError("Gateway returned an unexpected response")
    if http_error is not None and 'status' not in body:
        # A 4xx without a gateway status says nothing about the payment
        raise GatewayTransportError(f"Gateway returned HTTP {http_error.code}") from http_error
    return body


def verify_with_gateway(tx_ref, config=None):
    """
    Ask the gateway whether tx_ref was paid.

    Returns:
        dict: succeeded, gateway_reference, message

    Raises:
        GatewayNotConfigured: no secret key in the settings table or environment
        VerificationFailed: transport failure (transport_error=True); the caller
            must not treat it as a payment outcome
    """
    config = config or get_gateway_config()
    if not config.get('secret_key'):
        raise GatewayNotConfigured(tx_ref=tx_ref)

    try:
        body = fetch_verification(
            tx_ref,
            config['secret_key'],
            base_url=config.get('base_url') or DEFAULT_BASE_URL,
            timeout=config.get('timeout_seconds') or DEFAULT_TIMEOUT_SECONDS,
        )
    except GatewayTransportError as e:
        current_app.logger.error(f"Chapa verification for {tx_ref} failed: {str(e)}", exc_info=True)
        raise VerificationFailed('Payment gateway could not be reached. Please try again later.',
                                 tx_ref=tx_ref, transport_error=True)

    data = body.get('data') if isinstance(body.get('data'), dict) else {}
    succeeded = body.get('status') == 'success' and data.get('status', 'success') == 'success'
    message = body.get('message') or ('Payment verified' if succeeded else 'Payment verification failed')
    if not succeeded:
        current_app.logger.warning(f"Chapa reported {tx_ref} as not paid: {message}")

    return {
        'succeeded': succeeded,
        'gateway_reference': data.get('reference'),
        'message': message,
    }
