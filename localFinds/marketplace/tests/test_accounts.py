from datetime import timedelta
import re

from django.core import mail
from django.urls import reverse
from django.utils import timezone
from rest_framework_simplejwt.tokens import AccessToken

from marketplace import accounts
from marketplace.exceptions import InvalidOperation
from marketplace.factories import AdminFactory, BuyerFactory, ProductFactory, SellerFactory
from marketplace.models import BuyerDetails, PasswordResetToken, SellerDetails, User, WishlistItem
from marketplace.tokens import issue_reset_token

from .base import MarketplaceTestCase


class RegistrationTestCase(MarketplaceTestCase):
    """
    Test cases for registration and login
    """

    def setUp(self):
        self.user_data = {
            'email': 'Maker@Example.com',
            'password': 'testpass123',
            'full_name': 'Mia Maker',
            'phone': '5550100',
            'address': '4 Craft Row',
            'pin_code': '560001',
        }

    def test_register_seller_creates_details(self):
        data = dict(self.user_data, role='seller', business_name='Mia Makes', business_category='pottery, textiles')
        response = self.client.post(reverse('user-register'), data, format='json')
        self.assertEqual(response.status_code, 201)
        user = User.objects.get(pk=response.data['user_id'])
        self.assertEqual(user.email, 'maker@example.com')
        self.assertEqual(user.role, User.ROLE_SELLER)
        details = SellerDetails.objects.get(user=user)
        self.assertEqual(details.business_name, 'Mia Makes')
        self.assertEqual(details.business_category, ['pottery', 'textiles'])
        self.assertFalse(BuyerDetails.objects.filter(user=user).exists())

    def test_register_buyer_creates_details(self):
        data = dict(self.user_data, role='buyer', preferred_products=['honey', 'bread'])
        response = self.client.post(reverse('user-register'), data, format='json')
        self.assertEqual(response.status_code, 201)
        user = User.objects.get(pk=response.data['user_id'])
        self.assertEqual(user.details.preferred_products, ['honey', 'bread'])

    def test_register_duplicate_email(self):
        BuyerFactory(email='maker@example.com')
        response = self.client.post(reverse('user-register'), dict(self.user_data, role='buyer'), format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['email'], ['User already exists'])

    def test_register_cannot_choose_admin(self):
        response = self.client.post(reverse('user-register'), dict(self.user_data, role='admin'), format='json')
        self.assertEqual(response.status_code, 400)
        self.assertFalse(User.objects.filter(email='maker@example.com').exists())

    def test_login_returns_tokens(self):
        seller = SellerFactory(email='shop@example.com', password='sellerpass1')
        response = self.client.post(reverse('user-login'), {
            'email': 'shop@example.com', 'password': 'sellerpass1'
        }, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['token'], response.data['access'])
        token = AccessToken(response.data['access'])
        self.assertEqual(token['user_id'], seller.pk)
        self.assertEqual(token['role'], 'seller')
        self.assertEqual(response.data['user']['details']['business_name'], seller.details.business_name)

    def test_invalid_login(self):
        BuyerFactory(email='someone@example.com')
        response = self.client.post(reverse('user-login'), {
            'email': 'someone@example.com', 'password': 'wrongpass'
        }, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {'success': False, 'message': 'Invalid credentials'})

    def test_account_update_keeps_blank_fields(self):
        buyer = BuyerFactory(full_name='Old Name', phone='111')
        self.login(buyer)
        response = self.client.put(reverse('user-account'), {
            'full_name': 'New Name', 'phone': '', 'preferred_products': 'jam'
        }, format='json')
        self.assertEqual(response.status_code, 200)
        buyer.refresh_from_db()
        self.assertEqual(buyer.full_name, 'New Name')
        self.assertEqual(buyer.phone, '111')
        self.assertEqual(buyer.details.preferred_products, ['jam'])

    def test_admin_account_has_no_details(self):
        admin = AdminFactory()
        self.login(admin)
        response = self.client.get(reverse('user-account'))
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.data['details'])


class PasswordRecoveryTestCase(MarketplaceTestCase):
    """
    Test cases for OTP based password recovery
    """

    def setUp(self):
        self.user = BuyerFactory(email='forgetful@example.com', password='oldpass123')

    def test_forgot_password_emails_otp(self):
        response = self.client.post(reverse('user-forgot-password'), {'email': 'forgetful@example.com'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['forgetful@example.com'])
        self.assertEqual(mail.outbox[0].subject, 'Password Reset OTP')

        code = re.search(r'\b(\d{6})\b', mail.outbox[0].body).group(1)
        token = PasswordResetToken.objects.get(user=self.user, is_used=False)
        self.assertTrue(token.matches(code))
        self.assertNotEqual(token.token_hash, code)

    def test_forgot_password_unknown_email(self):
        response = self.client.post(reverse('user-forgot-password'), {'email': 'nobody@example.com'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(mail.outbox), 0)

    def test_new_otp_invalidates_previous(self):
        first, _ = PasswordResetToken.create_token(self.user)
        PasswordResetToken.create_token(self.user)
        first.refresh_from_db()
        self.assertTrue(first.is_used)

    def test_full_reset_flow(self):
        _, code = PasswordResetToken.create_token(self.user)
        response = self.client.post(reverse('user-verify-otp'), {
            'email': 'forgetful@example.com', 'otp': code
        }, format='json')
        self.assertEqual(response.status_code, 200)
        reset_token = response.data['reset_token']

        response = self.client.post(reverse('user-reset-password'), {
            'reset_token': reset_token, 'password': 'brandnew1'
        }, format='json')
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('brandnew1'))

    def test_otp_is_single_use(self):
        _, code = PasswordResetToken.create_token(self.user)
        accounts.verify_otp('forgetful@example.com', code)
        with self.assertRaisesMessage(InvalidOperation, 'Invalid OTP'):
            accounts.verify_otp('forgetful@example.com', code)

    def test_wrong_otp(self):
        _, code = PasswordResetToken.create_token(self.user)
        wrong = '000000' if code != '000000' else '111111'
        with self.assertRaisesMessage(InvalidOperation, 'Invalid OTP'):
            accounts.verify_otp('forgetful@example.com', wrong)

    def test_expired_otp(self):
        token, code = PasswordResetToken.create_token(self.user)
        PasswordResetToken.objects.filter(pk=token.pk).update(created_at=timezone.now() - timedelta(minutes=11))
        with self.assertRaisesMessage(InvalidOperation, 'OTP has expired'):
            accounts.verify_otp('forgetful@example.com', code)

    def test_access_token_is_not_a_reset_token(self):
        access = str(AccessToken.for_user(self.user))
        with self.assertRaisesMessage(InvalidOperation, 'Invalid or expired reset token'):
            accounts.reset_password(access, 'brandnew1')

    def test_reset_token_round_trip(self):
        otp, _ = PasswordResetToken.create_token(self.user)
        accounts.reset_password(issue_reset_token(otp), 'another1')
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('another1'))
        otp.refresh_from_db()
        self.assertIsNotNone(otp.reset_completed_at)

    def test_reset_token_is_single_use(self):
        _, code = PasswordResetToken.create_token(self.user)
        reset_token = accounts.verify_otp('forgetful@example.com', code)
        response = self.client.post(reverse('user-reset-password'), {
            'reset_token': reset_token, 'password': 'brandnew1'
        }, format='json')
        self.assertEqual(response.status_code, 200)

        response = self.client.post(reverse('user-reset-password'), {
            'reset_token': reset_token, 'password': 'hijacked1'
        }, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Reset token has already been used')
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('brandnew1'))

    def test_change_password(self):
        self.login(self.user)
        response = self.client.put(reverse('user-change-password'), {
            'old_password': 'wrong', 'new_password': 'newpass123'
        }, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Current password is incorrect')

        response = self.client.put(reverse('user-change-password'), {
            'old_password': 'oldpass123', 'new_password': 'newpass123'
        }, format='json')
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('newpass123'))


class WishlistTestCase(MarketplaceTestCase):
    """
    Test cases for the wishlist
    """

    def setUp(self):
        self.buyer = BuyerFactory()
        self.product = ProductFactory()
        self.login(self.buyer)

    def test_add_and_remove(self):
        response = self.client.post(reverse('user-wishlist'), {'product_id': self.product.pk}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['wishlist'][0]['product']['id'], self.product.pk)

        response = self.client.delete(reverse('user-wishlist-remove', args=[self.product.pk]))
        self.assertEqual(response.data['wishlist'], [])
        self.assertFalse(WishlistItem.objects.exists())

    def test_duplicate_add(self):
        accounts.add_to_wishlist(self.actor(self.buyer), self.product.pk)
        response = self.client.post(reverse('user-wishlist'), {'product_id': self.product.pk}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Product already in wishlist')

    def test_unknown_product(self):
        response = self.client.post(reverse('user-wishlist'), {'product_id': 999999}, format='json')
        self.assertEqual(response.status_code, 404)
