"""
Account workflows: password recovery and the wishlist.
"""
import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from .exceptions import InvalidOperation, NotFoundError
from .models import PasswordResetToken, Product, User, WishlistItem
from .tasks import send_password_reset_email
from .tokens import issue_reset_token, read_reset_token

logger = logging.getLogger(__name__)


# ==============================================================================
# PASSWORD RECOVERY
# ==============================================================================

def request_password_reset(email):
    """
    Create an OTP and queue its email. Unknown addresses are ignored so the
    response never reveals whether an account exists.
    """
    user = User.objects.filter(email__iexact=email, is_active=True).first()
    if user is None:
        logger.info("Password reset requested for unknown email")
        return False
    _, code = PasswordResetToken.create_token(user)
    send_password_reset_email.delay(user.pk, code)
    logger.info(f"Password reset OTP issued for user {user.pk}")
    return True


def verify_otp(email, otp):
    """Spend a valid OTP and return a short-lived reset session token."""
    user = User.objects.filter(email__iexact=email).first()
    token = None
    if user is not None:
        token = PasswordResetToken.objects.filter(user=user, is_used=False).order_by('-created_at').first()
    if token is None:
        raise InvalidOperation('Invalid OTP')
    if token.is_expired():
        raise InvalidOperation('OTP has expired')
    if not token.matches(otp):
        raise InvalidOperation('Invalid OTP')

    token.is_used = True
    token.save(update_fields=['is_used'])
    logger.info(f"OTP verified for user {user.pk}")
    return issue_reset_token(token)


def reset_password(reset_token, password):
    """Change the password once per verified OTP; a replayed session is rejected."""
    user_id, otp_id = read_reset_token(reset_token)
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise NotFoundError('User not found')
    with transaction.atomic():
        spent = PasswordResetToken.objects.filter(
            pk=otp_id, user=user, reset_completed_at__isnull=True
        ).update(reset_completed_at=timezone.now())
        if not spent:
            raise InvalidOperation('Reset token has already been used')
        user.set_password(password)
        user.save(update_fields=['password'])
    logger.info(f"Password reset for user {user.pk}")
    return user


def change_password(user, old_password, new_password):
    if not user.check_password(old_password):
        raise InvalidOperation('Current password is incorrect')
    user.set_password(new_password)
    user.save(update_fields=['password'])
    logger.info(f"Password changed for user {user.pk}")
    return user


# ==============================================================================
# WISHLIST
# ==============================================================================

def wishlist_for(actor):
    return (
        WishlistItem.objects.filter(user_id=actor.user_id)
        .select_related('product__seller')
        .prefetch_related('product__images')
    )


def add_to_wishlist(actor, product_id):
    if not product_id:
        raise InvalidOperation('Product ID is required')
    if not Product.objects.filter(pk=product_id).exists():
        raise NotFoundError('Product not found')
    try:
        with transaction.atomic():
            WishlistItem.objects.create(user_id=actor.user_id, product_id=product_id)
    except IntegrityError:
        raise InvalidOperation('Product already in wishlist')
    return wishlist_for(actor)


def remove_from_wishlist(actor, product_id):
    WishlistItem.objects.filter(user_id=actor.user_id, product_id=product_id).delete()
    return wishlist_for(actor)
