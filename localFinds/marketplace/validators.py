"""
Field validators shared by the marketplace models and serializers.
"""
import os
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

MEGABYTE = 1024 * 1024


def validate_image_size(image):
    """Profile photos are capped at MAX_IMAGE_SIZE bytes (5MB by default)."""
    limit = getattr(settings, 'MAX_IMAGE_SIZE', 5 * MEGABYTE)
    if image.size > limit:
        raise ValidationError(
            _(f'Image cannot be larger than {limit / MEGABYTE:.0f}MB (got {image.size / MEGABYTE:.2f}MB)')
        )


def validate_image_extension(image):
    allowed = getattr(settings, 'ALLOWED_IMAGE_EXTENSIONS', ['.jpg', '.jpeg', '.png', '.webp'])
    ext = os.path.splitext(image.name)[1].lower()
    if ext not in allowed:
        raise ValidationError(_(f'Unsupported image type "{ext}". Use one of: {", ".join(allowed)}'))


def validate_image_count(images):
    """
    A product keeps between one and MAX_PRODUCT_IMAGES url/public_id pairs.

    Raises:
        ValidationError: when the list is empty or too long
    """
    limit = getattr(settings, 'MAX_PRODUCT_IMAGES', 5)
    if not images:
        raise ValidationError(_('A product must have at least one image.'))
    if len(images) > limit:
        raise ValidationError(_(f'A product can have at most {limit} images.'))


def validate_positive_price(value):
    if value is not None and value <= 0:
        raise ValidationError(_('Price must be greater than 0'))


def validate_rating(value):
    if not (1 <= value <= 5):
        raise ValidationError(_('Rating must be between 1 and 5'))


def validate_discount_percentage(value):
    if not (Decimal('0') <= Decimal(value) <= Decimal('100')):
        raise ValidationError(_('Discount percentage must be between 0 and 100'))
