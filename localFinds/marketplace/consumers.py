"""
Websocket consumer for chat.

Frames in both directions are JSON objects `{"event": ..., "data": {...}}`.
Client frames may carry an `ack` value; the reply to such a frame is an
`ack` event echoing it. Errors go only to the connection that caused them.
"""
from dataclasses import dataclass, field
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from . import chat as chat_service
from .context import Actor
from .exceptions import InvalidOperation, MarketplaceError
from .realtime import build_event, chat_group, user_group

logger = logging.getLogger(__name__)

UNAUTHORIZED_CLOSE_CODE = 4401


@dataclass
class SocketSession:
    """Identity and joined rooms of one websocket connection."""
    actor: Actor
    channel_name: str
    joined_chats: set = field(default_factory=set)

    @property
    def personal_group(self):
        return user_group(self.actor.user_id)

    def join(self, chat_id):
        self.joined_chats.add(chat_id)

    def leave(self, chat_id):
        self.joined_chats.discard(chat_id)

    def has_joined(self, chat_id):
        return chat_id in self.joined_chats


def parse_chat_id(data):
    chat_id = data.get('chat_id')
    try:
        return int(chat_id)
    except (TypeError, ValueError):
        raise InvalidOperation('chat_id is required')


def _send_message(actor, chat_id, content, message_type):
    result = chat_service.send_message(actor, chat_id, content, message_type)
    return {
        'message': chat_service.serialize_message(result.message),
        'side_effects': [outcome.as_dict() for outcome in result.side_effects],
    }


def _mark_read(actor, chat_id):
    created, _ = chat_service.mark_chat_read(actor, chat_id)
    return {'chat_id': chat_id, 'marked': created}


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """One instance per connection; state lives in `self.session`."""
    session = None

    client_events = ('join_chat', 'leave_chat', 'send_message', 'typing', 'mark_as_read')

    failure_messages = {
        'send_message': 'Failed to send message',
        'mark_as_read': 'Failed to mark messages as read',
    }

    async def connect(self):
        user = self.scope.get('user')
        if user is None or not user.is_authenticated:
            logger.info("Websocket rejected: authentication error")
            await self.close(code=UNAUTHORIZED_CLOSE_CODE)
            return

        self.session = SocketSession(actor=Actor.from_user(user), channel_name=self.channel_name)
        await self.channel_layer.group_add(self.session.personal_group, self.channel_name)
        await self.accept()
        logger.info(f"User {user.pk} connected")

    async def disconnect(self, code):
        if self.session is None:
            return
        for chat_id in list(self.session.joined_chats):
            await self.channel_layer.group_discard(chat_group(chat_id), self.channel_name)
        await self.channel_layer.group_discard(self.session.personal_group, self.channel_name)
        logger.info(f"User {self.session.actor.user_id} disconnected ({code})")

    async def receive_json(self, content, **kwargs):
        if not isinstance(content, dict):
            await self.send_error('Malformed frame')
            return
        event = content.get('event')
        data = content.get('data') or {}
        ack = content.get('ack')

        handler = getattr(self, f'on_{event}', None) if event in self.client_events else None
        if handler is None:
            await self.send_error(f'Unknown event: {event}', ack=ack)
            return

        try:
            result = await handler(data)
        except MarketplaceError as exc:
            await self.send_error(exc.message, ack=ack)
            return
        except Exception:
            logger.exception(f"Websocket event '{event}' failed for user {self.session.actor.user_id}")
            await self.send_error(self.failure_messages.get(event, 'Server error'), ack=ack)
            return

        if ack is not None:
            await self.send_json({'event': 'ack', 'data': {'ack': ack, 'success': True, **(result or {})}})

    # ==========================================================================
    # CLIENT EVENTS
    # ==========================================================================

    async def on_join_chat(self, data):
        chat_id = parse_chat_id(data)
        await database_sync_to_async(chat_service.get_participant_chat)(
            self.session.actor, chat_id, 'Not authorized'
        )
        await self.channel_layer.group_add(chat_group(chat_id), self.channel_name)
        self.session.join(chat_id)
        logger.debug(f"User {self.session.actor.user_id} joined chat {chat_id}")
        return {'chat_id': chat_id}

    async def on_leave_chat(self, data):
        chat_id = parse_chat_id(data)
        await self.channel_layer.group_discard(chat_group(chat_id), self.channel_name)
        self.session.leave(chat_id)
        logger.debug(f"User {self.session.actor.user_id} left chat {chat_id}")
        return {'chat_id': chat_id}

    async def on_send_message(self, data):
        chat_id = parse_chat_id(data)
        return await database_sync_to_async(_send_message)(
            self.session.actor,
            chat_id,
            data.get('content'),
            data.get('message_type') or 'text',
        )

    async def on_typing(self, data):
        chat_id = parse_chat_id(data)
        if not self.session.has_joined(chat_id):
            raise InvalidOperation('Join the chat first')
        actor = self.session.actor
        await self.channel_layer.group_send(chat_group(chat_id), build_event(
            'user_typing',
            {
                'chat_id': chat_id,
                'user_id': actor.user_id,
                'user_name': actor.name,
                'is_typing': bool(data.get('is_typing')),
            },
            exclude_channel=self.channel_name,
        ))
        return {'chat_id': chat_id}

    async def on_mark_as_read(self, data):
        chat_id = parse_chat_id(data)
        return await database_sync_to_async(_mark_read)(self.session.actor, chat_id)

    # ==========================================================================
    # CHANNEL LAYER EVENTS
    # ==========================================================================

    async def socket_event(self, message):
        """Forward a fan-out event to this client unless it originated here."""
        if message.get('exclude_channel') == self.channel_name:
            return
        await self.send_json({'event': message['event'], 'data': message['data']})

    async def send_error(self, text, ack=None):
        data = {'message': text}
        if ack is not None:
            data['ack'] = ack
        await self.send_json({'event': 'error', 'data': data})
