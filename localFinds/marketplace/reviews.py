"""
Product reviews and their rating summary.
"""
from decimal import Decimal
import logging

from django.db import IntegrityError, transaction

from .exceptions import Forbidden, InvalidOperation, NotFoundError
from .models import Product, Review

logger = logging.getLogger(__name__)


def rating_summary(reviews):
    """
    Distribution, one-decimal average and total for a list of reviews.
    Index 0 of the distribution counts 1-star reviews.
    """
    distribution = [0, 0, 0, 0, 0]
    for review in reviews:
        distribution[review.rating - 1] += 1
    total = len(reviews)
    average = sum(review.rating for review in reviews) / total if total else 0
    return {
        'rating_distribution': distribution,
        'average_rating': float(round(Decimal(str(average)), 1)),
        'total_reviews': total,
    }


def product_reviews(product_id):
    reviews = list(
        Review.objects.filter(product_id=product_id)
        .select_related('user')
        .prefetch_related('likes', 'dislikes')
        .order_by('-created_at', '-id')
    )
    return reviews, rating_summary(reviews)


def create_review(actor, product_id, rating, comment):
    if not product_id or not rating or not comment:
        raise InvalidOperation('Product ID, rating, and comment are required.')
    try:
        rating = int(rating)
    except (TypeError, ValueError):
        raise InvalidOperation('Rating must be between 1 and 5.')
    if not 1 <= rating <= 5:
        raise InvalidOperation('Rating must be between 1 and 5.')

    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise NotFoundError('Product not found.')
    if Review.objects.filter(product=product, user_id=actor.user_id).exists():
        raise InvalidOperation('You have already reviewed this product.')

    try:
        with transaction.atomic():
            review = Review.objects.create(
                product=product, user_id=actor.user_id, rating=rating, comment=comment
            )
    except IntegrityError:
        raise InvalidOperation('You have already reviewed this product.')

    logger.info(f"Review {review.pk} ({rating} stars) added to product {product.pk} by user {actor.user_id}")
    return review


def get_review(review_id):
    review = Review.objects.select_related('product', 'user').filter(pk=review_id).first()
    if review is None:
        raise NotFoundError('Review not found.')
    return review


def delete_review(actor, review_id):
    review = get_review(review_id)
    if review.user_id != actor.user_id:
        raise Forbidden('You can only delete your own reviews.')
    review.delete()
    logger.info(f"Review {review_id} deleted by user {actor.user_id}")
