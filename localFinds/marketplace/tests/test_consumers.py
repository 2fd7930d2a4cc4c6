"""
Websocket tests driven through the JWT middleware and URL router.
"""
from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.test import TransactionTestCase

from marketplace.factories import BuyerFactory, ChatFactory, ChatMessageFactory, SellerFactory
from marketplace.middleware import JWTAuthMiddlewareStack
from marketplace.models import ChatMessage, MessageReceipt
from marketplace.routing import websocket_urlpatterns
from marketplace.tokens import tokens_for_user

application = JWTAuthMiddlewareStack(URLRouter(websocket_urlpatterns))

TIMEOUT = 3


class ChatConsumerTestCase(TransactionTestCase):
    """
    Test cases for the chat websocket
    """

    def setUp(self):
        self.buyer = BuyerFactory(full_name='Bea Buyer')
        self.seller = SellerFactory(full_name='Sam Seller')
        self.outsider = BuyerFactory()
        self.chat = ChatFactory(members=[self.buyer, self.seller])

    def tearDown(self):
        async_to_sync(get_channel_layer().flush)()

    def communicator_for(self, user=None, token=None):
        if user is not None:
            token = tokens_for_user(user)['access']
        path = f'/ws/chat/?token={token}' if token else '/ws/chat/'
        return WebsocketCommunicator(application, path)

    async def connect(self, user):
        communicator = self.communicator_for(user)
        connected, _ = await communicator.connect()
        self.assertTrue(connected)
        return communicator

    async def emit(self, communicator, event, data, ack=None):
        frame = {'event': event, 'data': data}
        if ack is not None:
            frame['ack'] = ack
        await communicator.send_json_to(frame)

    async def receive_events(self, communicator, count):
        frames = [await communicator.receive_json_from(timeout=TIMEOUT) for _ in range(count)]
        return {frame['event']: frame['data'] for frame in frames}

    async def test_rejects_missing_token(self):
        communicator = self.communicator_for()
        connected, code = await communicator.connect()
        self.assertFalse(connected)
        self.assertEqual(code, 4401)

    async def test_rejects_invalid_token(self):
        communicator = self.communicator_for(token='not-a-jwt')
        connected, code = await communicator.connect()
        self.assertFalse(connected)
        self.assertEqual(code, 4401)

    async def test_accepts_authorization_header(self):
        token = tokens_for_user(self.buyer)['access']
        communicator = WebsocketCommunicator(
            application, '/ws/chat/', headers=[(b'authorization', f'Bearer {token}'.encode())]
        )
        connected, _ = await communicator.connect()
        self.assertTrue(connected)
        await communicator.disconnect()

    async def test_send_message_fans_out(self):
        buyer_socket = await self.connect(self.buyer)
        seller_socket = await self.connect(self.seller)

        await self.emit(buyer_socket, 'join_chat', {'chat_id': self.chat.pk}, ack=1)
        joined = await buyer_socket.receive_json_from(timeout=TIMEOUT)
        self.assertEqual(joined['event'], 'ack')
        self.assertEqual(joined['data']['ack'], 1)

        await self.emit(buyer_socket, 'send_message', {'chat_id': self.chat.pk, 'content': 'Still for sale?'}, ack=2)
        sender_events = await self.receive_events(buyer_socket, 3)
        self.assertTrue(sender_events['ack']['success'])
        self.assertEqual(sender_events['ack']['message']['content'], 'Still for sale?')
        self.assertEqual(sender_events['receive_message']['chat_id'], self.chat.pk)
        self.assertEqual(sender_events['receive_message']['message']['sender']['name'], 'Bea Buyer')
        self.assertEqual(sender_events['chat_updated']['last_message']['content'], 'Still for sale?')

        recipient_events = await self.receive_events(seller_socket, 2)
        self.assertEqual(recipient_events['chat_updated']['chat_id'], self.chat.pk)
        notification = recipient_events['new_notification']['notification']
        self.assertEqual(notification['title'], 'New message from Bea Buyer')

        count = await database_sync_to_async(ChatMessage.objects.filter(chat=self.chat).count)()
        self.assertEqual(count, 1)

        await buyer_socket.disconnect()
        await seller_socket.disconnect()

    async def test_typing_skips_the_typist(self):
        buyer_socket = await self.connect(self.buyer)
        seller_socket = await self.connect(self.seller)
        for socket in (buyer_socket, seller_socket):
            await self.emit(socket, 'join_chat', {'chat_id': self.chat.pk}, ack='join')
            await socket.receive_json_from(timeout=TIMEOUT)

        await self.emit(buyer_socket, 'typing', {'chat_id': self.chat.pk, 'is_typing': True})
        frame = await seller_socket.receive_json_from(timeout=TIMEOUT)
        self.assertEqual(frame['event'], 'user_typing')
        self.assertEqual(frame['data'], {
            'chat_id': self.chat.pk,
            'user_id': self.buyer.pk,
            'user_name': 'Bea Buyer',
            'is_typing': True,
        })
        self.assertTrue(await buyer_socket.receive_nothing(timeout=0.5))

        await buyer_socket.disconnect()
        await seller_socket.disconnect()

    async def test_typing_requires_join(self):
        socket = await self.connect(self.buyer)
        await self.emit(socket, 'typing', {'chat_id': self.chat.pk, 'is_typing': True})
        frame = await socket.receive_json_from(timeout=TIMEOUT)
        self.assertEqual(frame, {'event': 'error', 'data': {'message': 'Join the chat first'}})
        await socket.disconnect()

    async def test_outsider_cannot_join_or_send(self):
        socket = await self.connect(self.outsider)
        await self.emit(socket, 'join_chat', {'chat_id': self.chat.pk})
        frame = await socket.receive_json_from(timeout=TIMEOUT)
        self.assertEqual(frame['event'], 'error')
        self.assertEqual(frame['data']['message'], 'Not authorized')

        await self.emit(socket, 'send_message', {'chat_id': self.chat.pk, 'content': 'hi'}, ack=7)
        frame = await socket.receive_json_from(timeout=TIMEOUT)
        self.assertEqual(frame['data'], {'message': 'Not authorized', 'ack': 7})
        await socket.disconnect()

    async def test_mark_as_read(self):
        await database_sync_to_async(ChatMessageFactory)(chat=self.chat, sender=self.seller)
        buyer_socket = await self.connect(self.buyer)
        seller_socket = await self.connect(self.seller)

        await self.emit(buyer_socket, 'mark_as_read', {'chat_id': self.chat.pk}, ack=3)
        events = await self.receive_events(buyer_socket, 2)
        self.assertEqual(events['ack']['marked'], 1)
        self.assertEqual(events['chat_updated']['action'], 'mark_as_read')

        frame = await seller_socket.receive_json_from(timeout=TIMEOUT)
        self.assertEqual(frame['data'], {
            'chat_id': self.chat.pk, 'action': 'mark_as_read', 'user_id': self.buyer.pk
        })
        receipts = await database_sync_to_async(MessageReceipt.objects.filter(user=self.buyer).count)()
        self.assertEqual(receipts, 1)

        await buyer_socket.disconnect()
        await seller_socket.disconnect()

    async def test_unknown_event(self):
        socket = await self.connect(self.buyer)
        await self.emit(socket, 'dance', {})
        frame = await socket.receive_json_from(timeout=TIMEOUT)
        self.assertEqual(frame['event'], 'error')
        self.assertEqual(frame['data']['message'], 'Unknown event: dance')
        await socket.disconnect()
