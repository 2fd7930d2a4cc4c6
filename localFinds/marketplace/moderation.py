"""
Admin-side workflows: reports, inquiries and product statistics.
"""
import logging

from django.db.models import Avg, Count
from django.utils import timezone

from .exceptions import InvalidOperation, NotFoundError
from .models import Inquiry, Product, Report

logger = logging.getLogger(__name__)


def create_report(actor, product_id, note):
    if not product_id or not note or not str(note).strip():
        raise InvalidOperation('Product ID and note are required')
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise NotFoundError('Product not found')
    report = Report.objects.create(product=product, reporter_id=actor.user_id, note=str(note).strip())
    logger.info(f"Report {report.pk} filed on product {product.pk} by user {actor.user_id}")
    return report


def get_inquiry(inquiry_id):
    inquiry = Inquiry.objects.filter(pk=inquiry_id).first()
    if inquiry is None:
        raise NotFoundError('Inquiry not found')
    return inquiry


def update_inquiry(inquiry, validated_data):
    """Apply an admin update; a new response stamps responded_at."""
    for field in ('status', 'priority', 'assigned_to'):
        if validated_data.get(field):
            setattr(inquiry, field, validated_data[field])
    if validated_data.get('response'):
        inquiry.response = validated_data['response']
        inquiry.responded_at = timezone.now()
    inquiry.save()
    logger.info(f"Inquiry {inquiry.pk} updated to {inquiry.status}")
    return inquiry


def product_trends():
    """Catalogue statistics for the admin dashboard."""
    products = Product.objects.all()
    category_stats = list(
        products.values('category').annotate(count=Count('id')).order_by('-count', 'category')
    )
    most_viewed = products.order_by('-views', '-created_at').values('id', 'name', 'views').first()
    average_price = products.aggregate(avg=Avg('price'))['avg'] or 0
    return {
        'total_products': products.count(),
        'most_viewed': most_viewed,
        'top_category': category_stats[0] if category_stats else None,
        'average_price': round(float(average_price), 2),
        'top_products': list(products.order_by('-views', '-created_at').values('id', 'name', 'views')[:5]),
        'category_stats': category_stats,
    }
