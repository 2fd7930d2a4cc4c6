"""
JWT helpers built on djangorestframework-simplejwt.
"""
from datetime import timedelta

from django.conf import settings
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken, Token

from .exceptions import InvalidOperation


def tokens_for_user(user):
    """Refresh/access pair carrying the claims the socket layer reads."""
    refresh = RefreshToken.for_user(user)
    refresh['name'] = user.get_full_name()
    refresh['role'] = user.role
    return {
        'refresh': str(refresh),
        'access': str(refresh.access_token),
    }


class PasswordResetSessionToken(Token):
    """Short-lived token issued after a correct OTP, spent by reset-password."""
    token_type = 'password_reset'
    lifetime = timedelta(minutes=getattr(settings, 'PASSWORD_RESET_SESSION_MINUTES', 15))


def issue_reset_token(otp):
    """Reset session bound to the verified OTP row so it can be spent once."""
    token = PasswordResetSessionToken.for_user(otp.user)
    token['otp_id'] = otp.pk
    return str(token)


def read_reset_token(raw_token):
    """Return `(user_id, otp_id)` carried by a reset session token."""
    try:
        token = PasswordResetSessionToken(raw_token)
    except TokenError:
        raise InvalidOperation('Invalid or expired reset token')
    if token.get('otp_id') is None:
        raise InvalidOperation('Invalid or expired reset token')
    return token['user_id'], token['otp_id']
