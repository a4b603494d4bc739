"""Shared authentication utilities.

Tokens are issued by the account service; this backend only verifies them.
A token is an HS256 JWT whose payload carries ``user_id``.
"""

from functools import wraps
from flask import request, jsonify, current_app, g
from datetime import datetime, timedelta, timezone
import hmac
import jwt


def _decode_token(auth_header):
    # Support both "Bearer <token>" and raw token formats
    token = auth_header.split(' ')[1] if ' ' in auth_header else auth_header
    return jwt.decode(token, current_app.config['JWT_SECRET_KEY'], algorithms=['HS256'])


def create_token(user_id, expires_in=None):
    """Issue a token for ``user_id`` (used by scripts and tests)."""
    payload = {'user_id': user_id}
    if expires_in is not None:
        payload['exp'] = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm='HS256')


def token_required(f):
    """
    Decorator to require valid JWT token, setting g.current_user.

    Usage:
        @bp.route('/protected')
        @token_required
        def protected_route():
            user = g.current_user
            return jsonify({'user_id': user.id})
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        # Import here to avoid circular imports
        from bizdirectory import db
        from bizdirectory.models import User

        auth_header = request.headers.get('Authorization')

        if not auth_header:
            return jsonify({'error': 'Token is missing'}), 401

        try:
            payload = _decode_token(auth_header)
        except jwt.ExpiredSignatureError:
            return jsonify({'error': 'Token has expired'}), 401
        except (jwt.InvalidTokenError, IndexError):
            return jsonify({'error': 'Token is invalid'}), 401

        user_id = payload.get('user_id')
        if user_id is None:
            return jsonify({'error': 'Token is invalid'}), 401

        current_user = db.session.get(User, user_id)
        if not current_user or not current_user.is_active:
            return jsonify({'error': 'User not found'}), 401
        g.current_user = current_user

        return f(*args, **kwargs)
    return decorated


def admin_required(f):
    """Decorator that combines token_required + admin role check."""
    @wraps(f)
    @token_required
    def decorated(*args, **kwargs):
        if not g.current_user.is_admin:
            return jsonify({'error': 'Admin access required'}), 403
        return f(*args, **kwargs)
    return decorated


def check_cron_secret():
    """Check the X-Cron-Secret header against BOOST_CRON_SECRET.

    Uses hmac.compare_digest for timing-safe comparison. Disabled when no
    secret is configured.
    """
    expected = current_app.config.get('BOOST_CRON_SECRET')
    if not expected:
        return False
    secret = request.headers.get('X-Cron-Secret', '')
    return hmac.compare_digest(secret, expected)


def can_manage_business(user, business):
    """Owners manage their own businesses; admins manage every business."""
    return user.is_admin or business.owner_id == user.id


def cron_or_admin_required(f):
    """Allow the external scheduler (cron secret) or an admin token."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if check_cron_secret():
            return f(*args, **kwargs)
        return admin_required(f)(*args, **kwargs)
    return decorated
