from datetime import timedelta
from decimal import Decimal

from django.test import override_settings
from django.urls import reverse
from django.utils import timezone

from marketplace.factories import BuyerFactory, ProductFactory, SellerFactory
from marketplace.models import CategoryInterest, Product
from marketplace.recommendations import category_scores, recommend_products, track_product_view

from .base import MarketplaceTestCase


class ProductDiscountTestCase(MarketplaceTestCase):
    """
    Test cases for discounted pricing
    """

    def test_active_discount(self):
        product = ProductFactory.build(price=Decimal('80.00'), original_price=None, discount_percentage=Decimal('25'))
        self.assertEqual(product.apply_discount(), Decimal('60.00'))
        self.assertEqual(product.original_price, Decimal('80.00'))

    def test_discount_rounds_half_up(self):
        product = ProductFactory.build(price=Decimal('9.99'), original_price=Decimal('9.99'), discount_percentage=Decimal('15'))
        self.assertEqual(product.apply_discount(), Decimal('8.49'))

    def test_discount_outside_window(self):
        now = timezone.now()
        product = ProductFactory.build(
            price=Decimal('50.00'), original_price=Decimal('50.00'), discount_percentage=Decimal('10'),
            discount_start_date=now + timedelta(days=1),
        )
        self.assertEqual(product.apply_discount(now), Decimal('50.00'))

        product.discount_start_date = now - timedelta(days=3)
        product.discount_end_date = now - timedelta(days=1)
        self.assertEqual(product.apply_discount(now), Decimal('50.00'))

        product.discount_end_date = now + timedelta(days=1)
        self.assertEqual(product.apply_discount(now), Decimal('45.00'))


class ProductEndpointTestCase(MarketplaceTestCase):
    """
    Test cases for product endpoints
    """

    def setUp(self):
        self.seller = SellerFactory()
        self.other_seller = SellerFactory()
        self.buyer = BuyerFactory()
        self.payload = {
            'name': 'Walnut Bowl',
            'description': 'Hand turned walnut bowl',
            'price': '40.00',
            'discount_percentage': '10',
            'category': 'woodwork',
            'tagline': 'Turned locally',
            'images': [{'url': 'https://images.example.com/bowl.jpg', 'public_id': 'bowl'}],
        }

    def test_seller_creates_product(self):
        self.login(self.seller)
        response = self.client.post(reverse('product-list'), self.payload, format='json')
        self.assertEqual(response.status_code, 201)
        product = response.data['product']
        self.assertEqual(product['price'], '36.00')
        self.assertEqual(product['original_price'], '40.00')
        self.assertEqual(product['seller']['id'], self.seller.pk)
        self.assertEqual(len(product['images']), 1)

    def test_new_alias(self):
        self.login(self.seller)
        response = self.client.post(reverse('product-new'), self.payload, format='json')
        self.assertEqual(response.status_code, 201)

    def test_buyer_cannot_create(self):
        self.login(self.buyer)
        response = self.client.post(reverse('product-list'), self.payload, format='json')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['message'], 'Access denied. Sellers only.')

    def test_images_required(self):
        self.login(self.seller)
        response = self.client.post(reverse('product-list'), dict(self.payload, images=[]), format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('images', response.data)

    @override_settings(MAX_PRODUCT_IMAGES=2)
    def test_image_limit(self):
        self.login(self.seller)
        images = [{'url': f'https://images.example.com/{n}.jpg', 'public_id': str(n)} for n in range(3)]
        response = self.client.post(reverse('product-list'), dict(self.payload, images=images), format='json')
        self.assertEqual(response.status_code, 400)

    def test_discount_window_order(self):
        self.login(self.seller)
        now = timezone.now()
        response = self.client.post(reverse('product-list'), dict(
            self.payload,
            discount_start_date=(now + timedelta(days=2)).isoformat(),
            discount_end_date=(now + timedelta(days=1)).isoformat(),
        ), format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('discount_end_date', response.data)

    def test_update_price_reapplies_discount(self):
        product = ProductFactory(seller=self.seller, price=Decimal('20.00'), discount_percentage=Decimal('50'))
        self.login(self.seller)
        response = self.client.put(reverse('product-detail', args=[product.pk]), {'price': '30.00'}, format='json')
        self.assertEqual(response.status_code, 200)
        product.refresh_from_db()
        self.assertEqual(product.original_price, Decimal('30.00'))
        self.assertEqual(product.price, Decimal('15.00'))
        self.assertEqual(product.images.count(), 1)

    def test_only_owner_updates_or_deletes(self):
        product = ProductFactory(seller=self.seller)
        self.login(self.other_seller)
        response = self.client.put(reverse('product-detail', args=[product.pk]), {'name': 'Mine now'}, format='json')
        self.assertEqual(response.status_code, 403)
        response = self.client.delete(reverse('product-detail', args=[product.pk]))
        self.assertEqual(response.status_code, 403)

        self.login(self.seller)
        response = self.client.delete(reverse('product-detail', args=[product.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Product.objects.filter(pk=product.pk).exists())

    def test_list_is_public_and_filtered(self):
        ProductFactory(seller=self.seller, category='woodwork')
        ProductFactory(seller=self.other_seller, category='pottery')
        response = self.client.get(reverse('product-list'), {'category': 'pottery'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data['products']), 1)
        self.assertEqual(response.data['pagination']['current_page'], 1)

    def test_retrieve_counts_view(self):
        product = ProductFactory(category='candles')
        self.login(self.buyer)
        response = self.client.get(reverse('product-detail', args=[product.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['product']['views'], 1)
        interest = CategoryInterest.objects.get(user=self.buyer, category='candles')
        self.assertEqual(interest.kind, CategoryInterest.KIND_VIEWED)
        self.assertEqual(interest.count, 1)

    def test_retrieve_missing(self):
        response = self.client.get(reverse('product-detail', args=[999999]))
        self.assertEqual(response.status_code, 404)

    def test_my_and_seller_products(self):
        ProductFactory.create_batch(2, seller=self.seller)
        ProductFactory(seller=self.other_seller)
        self.login(self.seller)
        response = self.client.get(reverse('product-my-products'))
        self.assertEqual(len(response.data['products']), 2)

        self.logout()
        response = self.client.get(reverse('product-seller-products', args=[self.other_seller.pk]))
        self.assertEqual(len(response.data['products']), 1)


class RecommendationTestCase(MarketplaceTestCase):
    """
    Test cases for category based recommendations
    """

    def setUp(self):
        self.buyer = BuyerFactory()
        self.seller = SellerFactory()
        self.candle = ProductFactory(seller=self.seller, category='candles')
        self.soap = ProductFactory(seller=self.seller, category='soap')
        self.bread = ProductFactory(seller=self.seller, category='bakery')
        now = timezone.now()
        for age, product in enumerate([self.bread, self.soap, self.candle]):
            Product.objects.filter(pk=product.pk).update(created_at=now - timedelta(hours=age))

    def test_newest_products_without_history(self):
        products = recommend_products(self.buyer.pk, limit=2)
        self.assertEqual(products, [self.bread, self.soap])

    def test_purchases_outweigh_views(self):
        track_product_view(self.buyer, self.candle)
        track_product_view(self.buyer, self.candle)
        track_product_view(self.buyer, self.candle)
        CategoryInterest.bump(self.buyer.pk, 'soap', CategoryInterest.KIND_PURCHASED, 2)
        self.assertEqual(category_scores(self.buyer.pk), {'soap': 4, 'candles': 3})
        self.assertEqual(recommend_products(self.buyer.pk), [self.soap, self.candle])

    def test_own_products_excluded(self):
        track_product_view(self.seller, self.candle)
        self.assertEqual(recommend_products(self.seller.pk), [])

    def test_endpoint(self):
        track_product_view(self.buyer, self.soap)
        self.login(self.buyer)
        response = self.client.get(reverse('product-recommendations'), {'limit': 5})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([product['id'] for product in response.data['products']], [self.soap.pk])
