"""
Celery tasks: marketplace mail plus the periodic token and discount maintenance.
"""
from celery import shared_task
from django.utils import timezone
from django.core.mail import send_mail
from django.conf import settings
from datetime import timedelta
import logging

logger = logging.getLogger(__name__)


# ==============================================================================
# EMAIL TASKS
# ==============================================================================

@shared_task(bind=True, max_retries=3)
def send_email_task(self, subject, message, recipient_list, html_message=None):
    """
    Deliver one marketplace mail; SMTP failures are retried with a doubling
    delay starting at EMAIL_RETRY_DELAY seconds.
    """
    try:
        sent = send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=recipient_list,
            html_message=html_message,
            fail_silently=False,
        )
    except Exception as exc:
        attempt = self.request.retries + 1
        logger.warning(f"Mail '{subject}' to {recipient_list} failed (attempt {attempt}): {exc}")
        delay = getattr(settings, 'EMAIL_RETRY_DELAY', 60) * (2 ** self.request.retries)
        raise self.retry(exc=exc, countdown=delay)

    logger.info(f"Mail '{subject}' delivered to {len(recipient_list)} recipient(s)")
    return sent


@shared_task
def send_password_reset_email(user_id, code):
    """
    Send the password reset OTP to a user.

    Args:
        user_id: User ID
        code: Plain 6-digit code, never stored
    """
    from .models import User
    from .utils import build_otp_email

    try:
        user = User.objects.get(id=user_id)
    except User.DoesNotExist:
        logger.error(f"User {user_id} not found for password reset email")
        return False

    subject, message, html_message = build_otp_email(code)
    send_email_task.delay(subject, message, [user.email], html_message=html_message)
    logger.info(f"Password reset email queued for {user.email}")
    return True


# ==============================================================================
# MAINTENANCE TASKS
# ==============================================================================

@shared_task
def clean_expired_password_tokens():
    """
    Delete reset OTPs older than their expiry plus the reset session
    lifetime (scheduled daily). Younger rows still back a live reset session.
    """
    from .models import PasswordResetToken

    window = settings.PASSWORD_RESET_TOKEN_EXPIRY + getattr(settings, 'PASSWORD_RESET_SESSION_MINUTES', 15)
    cutoff_time = timezone.now() - timedelta(minutes=window)
    expired_count = PasswordResetToken.objects.filter(created_at__lt=cutoff_time).delete()[0]

    logger.info(f"Cleaned up {expired_count} expired password tokens")
    return expired_count


@shared_task
def refresh_product_discounts():
    """
    Recompute prices of discounted products whose window opened or closed
    since they were last written (scheduled every 15 minutes).
    """
    from .models import Product

    now = timezone.now()
    changed = 0
    candidates = Product.objects.filter(original_price__isnull=False)

    for product in candidates.iterator():
        current_price = product.price
        new_price = product.apply_discount(now)
        if new_price != current_price:
            Product.objects.filter(pk=product.pk).update(price=new_price)
            changed += 1

    logger.info(f"Refreshed discounted prices for {changed} products")
    return changed
