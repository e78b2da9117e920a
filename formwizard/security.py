"""
Request hardening for the wizard screens.

The login and form screens are plain HTML posts with inline styles and no
scripts. Every POST carries a CSRF token; logins and section posts are
rate limited per client address. Credentials are the only free text that
is echoed back outside a field value, so they are stripped of markup.
"""

import re
from datetime import timedelta

from flask import request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_wtf.csrf import CSRFProtect


csrf = CSRFProtect()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per day", "200 per hour"]
)


# Cookie session only carries the opaque form session token
DEFAULT_CONFIG = {
    'SESSION_COOKIE_SECURE': False,
    'SESSION_COOKIE_HTTPONLY': True,
    'SESSION_COOKIE_SAMESITE': 'Lax',
    'PERMANENT_SESSION_LIFETIME': timedelta(hours=1),
    'WTF_CSRF_TIME_LIMIT': 3600,
}


# Per-endpoint limits; login also triggers two calls to the form service
RATE_LIMITS = {
    'login': "10 per minute",
    'form': "120 per minute",
    'api': "300 per minute",
}

CONTENT_SECURITY_POLICY = (
    "default-src 'none'; "
    "style-src 'self' 'unsafe-inline'; "
    "img-src 'self'; "
    "form-action 'self'; "
    "frame-ancestors 'none'; "
    "base-uri 'none'"
)


def add_security_headers(response):
    """after_request hook: the screens never load scripts or get framed."""
    response.headers['Content-Security-Policy'] = CONTENT_SECURITY_POLICY
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['Referrer-Policy'] = 'same-origin'
    response.headers.setdefault('Cache-Control', 'no-store')
    return response


def init_security(app):
    for key, value in DEFAULT_CONFIG.items():
        app.config.setdefault(key, value)

    csrf.init_app(app)
    limiter.init_app(app)


HTML_TAG_PATTERN = re.compile(r'<[^>]+>')
SCRIPT_PATTERN = re.compile(r'<script[^>]*>.*?</script>', re.DOTALL | re.IGNORECASE)
EVENT_HANDLER_PATTERN = re.compile(r'on\w+\s*=', re.IGNORECASE)


def sanitize_string(value: str, max_length: int = 200) -> str:
    """
    Clean a credential entered on the login screen.

    Markup is removed before truncation so a cut-off tag cannot survive,
    and surrounding whitespace is dropped so "  " counts as blank.

    Args:
        value: Raw form value, may be None
        max_length: Characters kept after markup removal

    Returns:
        The cleaned string, '' for None
    """
    if value is None:
        return ''

    if not isinstance(value, str):
        value = str(value)

    value = SCRIPT_PATTERN.sub('', value)
    value = EVENT_HANDLER_PATTERN.sub('', value)
    value = HTML_TAG_PATTERN.sub('', value)

    return value[:max_length].strip()


def get_client_ip() -> str:
    """Client address for request logs, honouring the first proxy hop."""
    forwarded_for = request.headers.get('X-Forwarded-For')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    return request.headers.get('X-Real-Ip') or request.remote_addr or 'unknown'
