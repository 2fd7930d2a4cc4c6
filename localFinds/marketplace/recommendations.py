"""
Category-based product recommendations.

Each user accumulates per-category counters for products viewed and
purchased. Purchases weigh more than views; the heaviest categories are
recommended first.
"""
from collections import Counter
import logging

from django.conf import settings
from django.db.models import Case, IntegerField, Value, When

from .models import CategoryInterest, Product

logger = logging.getLogger(__name__)


def track_product_view(user, product):
    """
    Count a product view against the viewer's category interests.

    Args:
        user: User instance, anonymous users are ignored
        product: Product instance being viewed
    """
    if user is None or not user.is_authenticated:
        return
    CategoryInterest.bump(user.pk, product.category, CategoryInterest.KIND_VIEWED)


def category_scores(user_id):
    """Weighted score per category for `user_id`."""
    weights = {
        CategoryInterest.KIND_VIEWED: getattr(settings, 'RECOMMENDATION_VIEW_WEIGHT', 1),
        CategoryInterest.KIND_PURCHASED: getattr(settings, 'RECOMMENDATION_PURCHASE_WEIGHT', 2),
    }
    scores = Counter()
    for interest in CategoryInterest.objects.filter(user_id=user_id, count__gt=0):
        scores[interest.category] += interest.count * weights[interest.kind]
    return scores


def recommend_products(user_id, limit=None):
    """
    Products from the user's highest-scoring categories, excluding their own
    listings. Newest products are returned when the user has no history.
    """
    limit = limit or getattr(settings, 'RECOMMENDATION_DEFAULT_LIMIT', 10)
    queryset = (
        Product.objects.exclude(seller_id=user_id)
        .select_related('seller')
        .prefetch_related('images')
    )

    scores = category_scores(user_id)
    if not scores:
        logger.debug(f"No category history for user {user_id}, returning newest products")
        return list(queryset.order_by('-created_at')[:limit])

    ranked = [category for category, _ in scores.most_common()]
    rank = Case(
        *[When(category=category, then=Value(position)) for position, category in enumerate(ranked)],
        output_field=IntegerField(),
    )
    return list(
        queryset.filter(category__in=ranked)
        .annotate(category_rank=rank)
        .order_by('category_rank', '-created_at')[:limit]
    )
