from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core import mail
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from django_celery_beat.models import PeriodicTask

from marketplace.factories import BuyerFactory, ProductFactory
from marketplace.models import PasswordResetToken, Product
from marketplace.tasks import (
    clean_expired_password_tokens, refresh_product_discounts, send_password_reset_email
)
from marketplace.utils import build_otp_email


class MaintenanceTaskTestCase(TestCase):
    """
    Test cases for scheduled maintenance tasks
    """

    def test_clean_expired_password_tokens(self):
        user = BuyerFactory()
        stale, _ = PasswordResetToken.create_token(user)
        PasswordResetToken.objects.filter(pk=stale.pk).update(created_at=timezone.now() - timedelta(hours=1))
        fresh, _ = PasswordResetToken.create_token(user)

        self.assertEqual(clean_expired_password_tokens(), 1)
        self.assertEqual(list(PasswordResetToken.objects.values_list('pk', flat=True)), [fresh.pk])

    def test_recently_verified_token_kept(self):
        token, _ = PasswordResetToken.create_token(BuyerFactory())
        PasswordResetToken.objects.filter(pk=token.pk).update(is_used=True)
        self.assertEqual(clean_expired_password_tokens(), 0)
        self.assertTrue(PasswordResetToken.objects.filter(pk=token.pk).exists())

    def test_refresh_product_discounts(self):
        now = timezone.now()
        ending = ProductFactory(
            price=Decimal('90.00'), original_price=Decimal('100.00'), discount_percentage=Decimal('10'),
            discount_end_date=now - timedelta(minutes=1),
        )
        starting = ProductFactory(
            price=Decimal('100.00'), original_price=Decimal('100.00'), discount_percentage=Decimal('20'),
            discount_start_date=now - timedelta(minutes=1),
        )
        unchanged = ProductFactory(price=Decimal('12.00'), original_price=Decimal('12.00'))

        self.assertEqual(refresh_product_discounts(), 2)
        self.assertEqual(Product.objects.get(pk=ending.pk).price, Decimal('100.00'))
        self.assertEqual(Product.objects.get(pk=starting.pk).price, Decimal('80.00'))
        self.assertEqual(Product.objects.get(pk=unchanged.pk).price, Decimal('12.00'))


class EmailTaskTestCase(TestCase):
    """
    Test cases for email tasks
    """

    def test_password_reset_email(self):
        user = BuyerFactory(email='otp@example.com')
        self.assertTrue(send_password_reset_email(user.pk, '482913'))
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('482913', mail.outbox[0].body)
        self.assertEqual(mail.outbox[0].alternatives[0][1], 'text/html')

    def test_password_reset_email_unknown_user(self):
        self.assertFalse(send_password_reset_email(999999, '482913'))
        self.assertEqual(len(mail.outbox), 0)

    def test_otp_email_mentions_expiry(self):
        subject, message, html_message = build_otp_email('123456', expiry_minutes=7)
        self.assertEqual(subject, 'Password Reset OTP')
        self.assertIn('7 minutes', message)
        self.assertIn('123456', html_message)


class CommandTestCase(TestCase):
    """
    Test cases for management commands
    """

    def test_setup_scheduled_tasks_is_repeatable(self):
        out = StringIO()
        call_command('setup_scheduled_tasks', stdout=out)
        self.assertIn('Created: 2 tasks', out.getvalue())

        out = StringIO()
        call_command('setup_scheduled_tasks', stdout=out)
        self.assertIn('Updated: 2 tasks', out.getvalue())
        self.assertEqual(
            set(PeriodicTask.objects.values_list('task', flat=True)),
            {'marketplace.tasks.clean_expired_password_tokens', 'marketplace.tasks.refresh_product_discounts'},
        )

    def test_test_email_command(self):
        out = StringIO()
        call_command('test_email', 'ops@example.com', stdout=out)
        self.assertIn('Email queued for ops@example.com', out.getvalue())
        self.assertEqual(mail.outbox[0].to, ['ops@example.com'])
        self.assertEqual(mail.outbox[0].subject, 'Test Email from LocalFinds')

    def test_test_email_command_otp(self):
        call_command('test_email', 'ops@example.com', '--otp', '--code', '246810', stdout=StringIO())
        self.assertEqual(mail.outbox[0].subject, 'Password Reset OTP')
        self.assertIn('246810', mail.outbox[0].body)

    def test_test_email_command_failure(self):
        out = StringIO()
        with patch('marketplace.tasks.send_email_task.delay', side_effect=OSError('broker down')):
            call_command('test_email', 'ops@example.com', stdout=out)
        self.assertIn('Failed to send email to ops@example.com', out.getvalue())
        self.assertEqual(len(mail.outbox), 0)
