"""
Celery configuration for localFinds project.
Handles async tasks like email sending and scheduled maintenance.
"""
import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'localFinds.settings')

app = Celery('localFinds')

# Load config from Django settings using CELERY namespace
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks from all installed apps
app.autodiscover_tasks()

# Celery Beat schedule for periodic tasks
app.conf.beat_schedule = {
    # Clean expired password reset tokens every hour
    'clean-expired-tokens': {
        'task': 'marketplace.tasks.clean_expired_password_tokens',
        'schedule': crontab(minute=0),  # Every hour
    },
    # Re-apply discount windows so stale discounts stop showing
    'refresh-product-discounts': {
        'task': 'marketplace.tasks.refresh_product_discounts',
        'schedule': crontab(minute=5),  # Every hour, offset from token cleanup
    },
}
