"""
Fan-out helpers for the websocket layer.

Every connection listens on its personal group (`user_<id>`) and on the
group of each chat it joined (`chat_<id>`). Sync code (HTTP views, services
run through database_sync_to_async) pushes through these helpers.
"""
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
import logging

logger = logging.getLogger(__name__)

SOCKET_EVENT_TYPE = 'socket.event'


def user_group(user_id):
    return f'user_{user_id}'


def chat_group(chat_id):
    return f'chat_{chat_id}'


def build_event(event, data, exclude_channel=None):
    """Channel layer message understood by ChatConsumer.socket_event."""
    message = {'type': SOCKET_EVENT_TYPE, 'event': event, 'data': data}
    if exclude_channel:
        message['exclude_channel'] = exclude_channel
    return message


def push_to_group(group, event, data):
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning(f"No channel layer configured, dropping '{event}' for {group}")
        return False
    async_to_sync(channel_layer.group_send)(group, build_event(event, data))
    return True


def push_to_user(user_id, event, data):
    return push_to_group(user_group(user_id), event, data)


def push_to_chat(chat_id, event, data):
    return push_to_group(chat_group(chat_id), event, data)
