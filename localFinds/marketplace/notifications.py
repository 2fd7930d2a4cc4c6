"""
Notification feed: creation by other workflows plus owner-scoped reads.
"""
from django.utils import timezone
import logging

from .context import run_side_effect
from .exceptions import Forbidden, NotFoundError
from .models import Notification
from .realtime import push_to_user

logger = logging.getLogger(__name__)


def serialize_notification(notification):
    return {
        'id': notification.pk,
        'user': notification.user_id,
        'type': notification.notification_type,
        'title': notification.title,
        'message': notification.message,
        'data': notification.data,
        'is_read': notification.is_read,
        'read_at': notification.read_at.isoformat() if notification.read_at else None,
        'created_at': notification.created_at.isoformat(),
        'updated_at': notification.updated_at.isoformat(),
    }


def create_notification(user_id, notification_type, title, message, data=None):
    """Persist a notification and push `new_notification` to its owner."""
    notification = Notification.objects.create(
        user_id=user_id,
        notification_type=notification_type,
        title=title,
        message=message,
        data=data or {},
    )
    logger.info(f"Notification {notification.pk} ({notification_type}) created for user {user_id}")

    push_outcome = run_side_effect(
        'notification_push',
        push_to_user, user_id, 'new_notification',
        {'notification': serialize_notification(notification)},
    )
    if not push_outcome.ok:
        logger.error(f"Realtime push failed for notification {notification.pk}: {push_outcome.reason}")
    return notification


def notify(user_id, notification_type, title, message, data=None):
    """create_notification as a side effect; never raises."""
    outcome = run_side_effect(
        'notification', create_notification,
        user_id, notification_type, title, message, data,
    )
    if not outcome.ok:
        logger.error(f"Could not notify user {user_id}: {outcome.reason}")
    return outcome


def get_owned_notification(actor, notification_id):
    notification = Notification.objects.filter(pk=notification_id).first()
    if notification is None:
        raise NotFoundError('Notification not found')
    if notification.user_id != actor.user_id:
        raise Forbidden('Access denied')
    return notification


def unread_count(actor):
    return Notification.objects.filter(user_id=actor.user_id, is_read=False).count()


def mark_read(actor, notification_id):
    notification = get_owned_notification(actor, notification_id)
    notification.mark_as_read()
    return notification


def mark_all_read(actor):
    return Notification.objects.filter(user_id=actor.user_id, is_read=False).update(
        is_read=True, read_at=timezone.now(), updated_at=timezone.now()
    )


def delete_notification(actor, notification_id):
    notification = get_owned_notification(actor, notification_id)
    notification.delete()
