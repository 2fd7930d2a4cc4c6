"""
Management command to set up the scheduled Celery Beat tasks.
Run this command once to create the periodic tasks in the database.

Usage: python manage.py setup_scheduled_tasks
"""
from django.core.management.base import BaseCommand
from django_celery_beat.models import PeriodicTask, CrontabSchedule, IntervalSchedule


class Command(BaseCommand):
    help = 'Set up scheduled Celery Beat tasks for the marketplace'

    def handle(self, *args, **options):
        self.stdout.write(self.style.WARNING('Setting up scheduled tasks...'))

        created = 0
        updated = 0

        # ==================================================================
        # 1. CLEANUP EXPIRED PASSWORD TOKENS - Every day at 2:00 AM
        # ==================================================================
        crontab_2am, _ = CrontabSchedule.objects.get_or_create(
            minute='0',
            hour='2',
            day_of_week='*',
            day_of_month='*',
            month_of_year='*',
        )

        task, created_flag = PeriodicTask.objects.get_or_create(
            name='Cleanup Expired Password Tokens - 2:00 AM',
            defaults={
                'task': 'marketplace.tasks.clean_expired_password_tokens',
                'crontab': crontab_2am,
                'enabled': True,
                'description': 'Delete reset OTPs past their expiry and reset session window'
            }
        )
        if created_flag:
            created += 1
            self.stdout.write(self.style.SUCCESS('[OK] Created: Cleanup Expired Tokens'))
        else:
            task.task = 'marketplace.tasks.clean_expired_password_tokens'
            task.crontab = crontab_2am
            task.enabled = True
            task.save()
            updated += 1
            self.stdout.write(self.style.SUCCESS('[OK] Updated: Cleanup Expired Tokens'))

        # ==================================================================
        # 2. REFRESH PRODUCT DISCOUNTS - Every 15 minutes
        # ==================================================================
        interval_15min, _ = IntervalSchedule.objects.get_or_create(
            every=15,
            period=IntervalSchedule.MINUTES,
        )

        task, created_flag = PeriodicTask.objects.get_or_create(
            name='Refresh Product Discounts - Every 15 Minutes',
            defaults={
                'task': 'marketplace.tasks.refresh_product_discounts',
                'interval': interval_15min,
                'enabled': True,
                'description': 'Recompute listing prices for discounts that started or ended'
            }
        )
        if created_flag:
            created += 1
            self.stdout.write(self.style.SUCCESS('[OK] Created: Refresh Product Discounts'))
        else:
            task.task = 'marketplace.tasks.refresh_product_discounts'
            task.interval = interval_15min
            task.crontab = None  # Clear crontab if switching from crontab to interval
            task.enabled = True
            task.save()
            updated += 1
            self.stdout.write(self.style.SUCCESS('[OK] Updated: Refresh Product Discounts'))

        # ==================================================================
        # SUMMARY
        # ==================================================================
        self.stdout.write('')
        self.stdout.write(self.style.SUCCESS('=' * 60))
        self.stdout.write(self.style.SUCCESS('Setup Complete!'))
        self.stdout.write(self.style.SUCCESS(f'Created: {created} tasks'))
        self.stdout.write(self.style.SUCCESS(f'Updated: {updated} tasks'))
        self.stdout.write(self.style.SUCCESS('=' * 60))
        self.stdout.write('')
        self.stdout.write(self.style.WARNING('Next steps:'))
        self.stdout.write('1. Start Celery worker: celery -A localFinds worker -l info')
        self.stdout.write('2. Start Celery beat: celery -A localFinds beat -l info --scheduler django_celery_beat.schedulers:DatabaseScheduler')
        self.stdout.write('3. View tasks in admin: /admin/django_celery_beat/periodictask/')
        self.stdout.write('')
