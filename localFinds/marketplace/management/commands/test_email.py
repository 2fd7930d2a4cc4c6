from django.core.management.base import BaseCommand

from marketplace.tasks import send_email_task
from marketplace.utils import build_otp_email, build_test_email


class Command(BaseCommand):
    help = 'Queue a test or OTP email through the marketplace mail task'

    def add_arguments(self, parser):
        parser.add_argument('email', type=str, help='Recipient address')
        parser.add_argument('--otp', action='store_true', help='Send the password reset OTP mail')
        parser.add_argument('--code', type=str, default='123456', help='OTP code to render (default: 123456)')

    def handle(self, *args, **options):
        email = options['email']

        if options['otp']:
            subject, message, html_message = build_otp_email(options['code'])
        else:
            subject, message = build_test_email()
            html_message = None

        self.stdout.write(f"Queueing '{subject}' for {email}")
        try:
            send_email_task.delay(subject, message, [email], html_message=html_message)
        except Exception as exc:
            self.stdout.write(self.style.ERROR(f'Failed to send email to {email}: {exc}'))
            return
        self.stdout.write(self.style.SUCCESS(f'Email queued for {email}'))
