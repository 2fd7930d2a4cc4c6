from decimal import Decimal

from django.urls import reverse

from marketplace import reviews
from marketplace.exceptions import Forbidden, InvalidOperation, NotFoundError
from marketplace.factories import AdminFactory, BuyerFactory, ProductFactory, ReviewFactory
from marketplace.models import Review

from .base import MarketplaceTestCase


class ReviewTestCase(MarketplaceTestCase):
    """
    Test cases for reviews and product ratings
    """

    def setUp(self):
        self.product = ProductFactory()
        self.buyer = BuyerFactory()
        self.other = BuyerFactory()

    def test_create_review_updates_rating(self):
        reviews.create_review(self.actor(self.buyer), self.product.pk, 5, 'Lovely')
        reviews.create_review(self.actor(self.other), self.product.pk, '4', 'Good')
        self.product.refresh_from_db()
        self.assertEqual(self.product.average_rating, Decimal('4.5'))
        self.assertEqual(self.product.review_count, 2)

    def test_delete_review_updates_rating(self):
        mine = ReviewFactory(product=self.product, user=self.buyer, rating=1)
        ReviewFactory(product=self.product, user=self.other, rating=5)
        reviews.delete_review(self.actor(self.buyer), mine.pk)
        self.product.refresh_from_db()
        self.assertEqual(self.product.average_rating, Decimal('5.0'))
        self.assertEqual(self.product.review_count, 1)

    def test_deleting_reviewer_updates_rating(self):
        ReviewFactory(product=self.product, user=self.buyer, rating=1)
        ReviewFactory(product=self.product, user=self.other, rating=5)
        self.login(AdminFactory())
        response = self.client.delete(reverse('admin-user-delete', args=[self.buyer.pk]))
        self.assertEqual(response.status_code, 200)
        self.product.refresh_from_db()
        self.assertEqual(self.product.review_count, 1)
        self.assertEqual(self.product.average_rating, Decimal('5.0'))

    def test_bulk_review_delete_updates_rating(self):
        ReviewFactory(product=self.product, user=self.buyer, rating=2)
        ReviewFactory(product=self.product, user=self.other, rating=4)
        Review.objects.filter(product=self.product).delete()
        self.product.refresh_from_db()
        self.assertEqual(self.product.review_count, 0)
        self.assertEqual(self.product.average_rating, Decimal('0'))

    def test_one_review_per_product(self):
        reviews.create_review(self.actor(self.buyer), self.product.pk, 3, 'Fine')
        with self.assertRaisesMessage(InvalidOperation, 'You have already reviewed this product.'):
            reviews.create_review(self.actor(self.buyer), self.product.pk, 4, 'Again')

    def test_validation(self):
        actor = self.actor(self.buyer)
        with self.assertRaisesMessage(InvalidOperation, 'Product ID, rating, and comment are required.'):
            reviews.create_review(actor, self.product.pk, 5, '')
        with self.assertRaisesMessage(InvalidOperation, 'Rating must be between 1 and 5.'):
            reviews.create_review(actor, self.product.pk, 6, 'Too good')
        with self.assertRaisesMessage(InvalidOperation, 'Rating must be between 1 and 5.'):
            reviews.create_review(actor, self.product.pk, 'five', 'Words')
        with self.assertRaisesMessage(NotFoundError, 'Product not found.'):
            reviews.create_review(actor, 999999, 5, 'Ghost')

    def test_only_author_deletes(self):
        review = ReviewFactory(product=self.product, user=self.buyer)
        with self.assertRaisesMessage(Forbidden, 'You can only delete your own reviews.'):
            reviews.delete_review(self.actor(self.other), review.pk)

    def test_rating_summary(self):
        ReviewFactory(product=self.product, user=self.buyer, rating=5)
        ReviewFactory(product=self.product, user=self.other, rating=2)
        ReviewFactory(product=self.product, rating=2)
        _, summary = reviews.product_reviews(self.product.pk)
        self.assertEqual(summary, {
            'rating_distribution': [0, 2, 0, 0, 1],
            'average_rating': 3.0,
            'total_reviews': 3,
        })

    def test_summary_without_reviews(self):
        self.assertEqual(reviews.rating_summary([]), {
            'rating_distribution': [0, 0, 0, 0, 0],
            'average_rating': 0.0,
            'total_reviews': 0,
        })

    def test_like_and_dislike_are_exclusive(self):
        review = ReviewFactory(product=self.product, user=self.buyer)
        self.assertTrue(review.toggle_like(self.other))
        self.assertTrue(review.toggle_dislike(self.other))
        self.assertFalse(review.likes.filter(pk=self.other.pk).exists())
        self.assertFalse(review.toggle_dislike(self.other))
        self.assertFalse(review.dislikes.exists())

    def test_endpoints(self):
        response = self.client.get(reverse('review-detail', args=[self.product.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['total_reviews'], 0)

        self.login(self.buyer)
        response = self.client.post(reverse('review-create'), {
            'product_id': self.product.pk, 'rating': 4, 'comment': 'Sturdy'
        }, format='json')
        self.assertEqual(response.status_code, 201)
        review_id = response.data['review']['id']

        self.login(self.other)
        response = self.client.put(reverse('review-like', args=[review_id]))
        self.assertTrue(response.data['liked'])
        self.assertEqual(response.data['review']['likes'], [self.other.pk])

        response = self.client.delete(reverse('review-detail', args=[review_id]))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['message'], 'You can only delete your own reviews.')
