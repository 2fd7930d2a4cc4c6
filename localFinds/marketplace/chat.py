"""
Chat workflow shared by the websocket consumer and the HTTP views.

Messages are append-only and read receipts are unique per (message, reader).
Realtime fan-out and the chat notification are side effects: the message is
stored first and a failed push or notification never undoes it.
"""
from dataclasses import dataclass, field
import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from .context import run_side_effect
from .exceptions import Forbidden, InvalidOperation, NotFoundError
from .models import Chat, ChatMessage, ChatParticipant, MessageReceipt, Notification, User
from .notifications import notify
from .realtime import push_to_chat, push_to_user

logger = logging.getLogger(__name__)

MESSAGE_TYPES = [choice for choice, _ in ChatMessage.MESSAGE_TYPE_CHOICES]


@dataclass
class MessageResult:
    message: ChatMessage
    side_effects: list = field(default_factory=list)


def preview(content, length=None):
    """Shorten message content for notification bodies."""
    length = length or getattr(settings, 'CHAT_NOTIFICATION_PREVIEW_LENGTH', 50)
    if len(content) > length:
        return content[:length] + '...'
    return content


def serialize_message(message):
    return {
        'id': message.pk,
        'sender': {
            'id': message.sender_id,
            'name': message.sender.get_full_name(),
        },
        'content': message.content,
        'message_type': message.message_type,
        'created_at': message.created_at.isoformat(),
        'delivered_at': message.delivered_at.isoformat() if message.delivered_at else None,
    }


def serialize_last_message(chat):
    return {
        'sender': chat.last_message_sender_id,
        'content': chat.last_message_content,
        'timestamp': chat.last_message_at.isoformat() if chat.last_message_at else None,
    }


# ==============================================================================
# LOOKUPS
# ==============================================================================

def get_chat(chat_id):
    chat = Chat.objects.filter(pk=chat_id).first()
    if chat is None:
        raise NotFoundError('Chat not found')
    return chat


def get_participant_chat(actor, chat_id, message='Access denied'):
    """Return the chat if `actor` belongs to it; `message` is used for the 403."""
    chat = get_chat(chat_id)
    if not chat.has_participant(actor.user_id):
        raise Forbidden(message)
    return chat


def list_chats(actor):
    """Active chats of `actor`, most recent message first, with unread counts."""
    chats = (
        Chat.objects.filter(memberships__user_id=actor.user_id, is_active=True)
        .prefetch_related('participants')
        .select_related('last_message_sender')
        .order_by('-last_message_at', '-created_at')
    )
    for chat in chats:
        chat.unread_count = chat.unread_count_for(actor.user_id)
    return chats


def get_or_create_chat(actor, participant_id):
    """
    Return the active chat between `actor` and `participant_id`, creating it
    when none exists. The second element is True for a new chat.
    """
    if not participant_id:
        raise InvalidOperation('Participant ID is required')
    if str(participant_id) == str(actor.user_id):
        raise InvalidOperation('Cannot start a chat with yourself')
    participant = User.objects.filter(pk=participant_id, is_active=True).first()
    if participant is None:
        raise NotFoundError('User not found')

    # annotate before the membership filters so the count sees every member
    existing = (
        Chat.objects.annotate(member_count=Count('memberships', distinct=True))
        .filter(is_active=True, member_count=2)
        .filter(memberships__user_id=actor.user_id)
        .filter(memberships__user_id=participant.pk)
        .order_by('-created_at')
        .first()
    )
    if existing is not None:
        return existing, False

    with transaction.atomic():
        chat = Chat.objects.create()
        ChatParticipant.objects.create(chat=chat, user_id=actor.user_id)
        ChatParticipant.objects.create(chat=chat, user=participant)
    logger.info(f"Chat {chat.pk} started between {actor.user_id} and {participant.pk}")
    return chat, True


def deactivate_chat(actor, chat_id):
    chat = get_participant_chat(actor, chat_id)
    chat.is_active = False
    chat.save(update_fields=['is_active', 'updated_at'])
    logger.info(f"Chat {chat.pk} deactivated by user {actor.user_id}")
    return chat


def chat_messages(actor, chat_id):
    """Messages of a chat for a participant; reading them marks them read."""
    chat = get_participant_chat(actor, chat_id)
    _add_receipts(chat, actor.user_id)
    return chat, chat.messages.select_related('sender').order_by('created_at', 'id')


# ==============================================================================
# MUTATIONS
# ==============================================================================

def send_message(actor, chat_id, content, message_type='text'):
    """
    Append a message to the chat and fan it out.

    The message goes to the chat room as `receive_message`, every participant
    gets `chat_updated` on their personal room, and the first participant who
    is not the sender gets one `chat_message` notification.
    """
    chat = get_participant_chat(actor, chat_id, message='Not authorized')
    if not content or not str(content).strip():
        raise InvalidOperation('Message content is required')
    if message_type not in MESSAGE_TYPES:
        raise InvalidOperation('Invalid message type')

    now = timezone.now()
    with transaction.atomic():
        message = ChatMessage.objects.create(
            chat=chat,
            sender_id=actor.user_id,
            content=content,
            message_type=message_type,
            delivered_at=now,
        )
        chat.last_message_sender_id = actor.user_id
        chat.last_message_content = content
        chat.last_message_at = now
        chat.save(update_fields=[
            'last_message_sender', 'last_message_content', 'last_message_at', 'updated_at'
        ])

    logger.info(f"Message {message.pk} sent in chat {chat.pk} by user {actor.user_id}")

    result = MessageResult(message=message)
    result.side_effects.append(run_side_effect(
        'receive_message', push_to_chat, chat.pk, 'receive_message',
        {'chat_id': chat.pk, 'message': serialize_message(message)},
    ))

    participant_ids = chat.participant_ids()
    chat_update = {'chat_id': chat.pk, 'last_message': serialize_last_message(chat)}
    for participant_id in participant_ids:
        result.side_effects.append(run_side_effect(
            'chat_updated', push_to_user, participant_id, 'chat_updated', chat_update,
        ))

    recipient_id = chat.other_participant_id(actor.user_id, participant_ids)
    if recipient_id is not None:
        result.side_effects.append(notify(
            recipient_id,
            Notification.TYPE_CHAT_MESSAGE,
            f'New message from {actor.name}',
            preview(content),
            {'chat_id': chat.pk, 'sender_id': actor.user_id, 'sender_name': actor.name},
        ))

    for outcome in result.side_effects:
        if not outcome.ok:
            logger.error(f"Message {message.pk} delivered without {outcome.name}: {outcome.reason}")
    return result


def _add_receipts(chat, user_id):
    """Add the missing receipts of `user_id` on messages sent by others."""
    unread_ids = list(
        chat.messages.exclude(sender_id=user_id)
        .exclude(receipts__user_id=user_id)
        .values_list('id', flat=True)
    )
    if not unread_ids:
        return 0
    now = timezone.now()
    created = 0
    for message_id in unread_ids:
        try:
            with transaction.atomic():
                _, was_created = MessageReceipt.objects.get_or_create(
                    message_id=message_id, user_id=user_id, defaults={'read_at': now}
                )
        except IntegrityError:
            # a concurrent reader inserted the same receipt
            continue
        created += int(was_created)
    return created


def mark_chat_read(actor, chat_id):
    """
    Record that `actor` read every message sent by others, then push
    `chat_updated` with action mark_as_read to every participant.
    """
    chat = get_participant_chat(actor, chat_id, message='Not authorized')
    created = _add_receipts(chat, actor.user_id)
    logger.debug(f"User {actor.user_id} read {created} messages in chat {chat.pk}")

    outcomes = [
        run_side_effect(
            'chat_updated', push_to_user, participant_id, 'chat_updated',
            {'chat_id': chat.pk, 'action': 'mark_as_read', 'user_id': actor.user_id},
        )
        for participant_id in chat.participant_ids()
    ]
    for outcome in outcomes:
        if not outcome.ok:
            logger.error(f"Read update for chat {chat.pk} not pushed: {outcome.reason}")
    return created, outcomes
