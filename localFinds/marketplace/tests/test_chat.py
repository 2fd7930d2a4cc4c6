from django.urls import reverse

from marketplace import chat as chat_service
from marketplace.exceptions import Forbidden, InvalidOperation, NotFoundError
from marketplace.factories import BuyerFactory, ChatFactory, ChatMessageFactory, SellerFactory
from marketplace.models import Chat, ChatMessage, MessageReceipt, Notification

from .base import MarketplaceTestCase


class ChatServiceTestCase(MarketplaceTestCase):
    """
    Test cases for the chat workflow
    """

    def setUp(self):
        self.buyer = BuyerFactory(full_name='Bea Buyer')
        self.seller = SellerFactory(full_name='Sam Seller')
        self.outsider = BuyerFactory()
        self.chat = ChatFactory(members=[self.buyer, self.seller])

    def test_get_or_create_reuses_active_chat(self):
        chat, created = chat_service.get_or_create_chat(self.actor(self.buyer), self.seller.pk)
        self.assertFalse(created)
        self.assertEqual(chat, self.chat)

        chat, created = chat_service.get_or_create_chat(self.actor(self.seller), self.outsider.pk)
        self.assertTrue(created)
        self.assertEqual(chat.participant_ids(), [self.seller.pk, self.outsider.pk])

    def test_get_or_create_validation(self):
        actor = self.actor(self.buyer)
        with self.assertRaisesMessage(InvalidOperation, 'Participant ID is required'):
            chat_service.get_or_create_chat(actor, None)
        with self.assertRaisesMessage(InvalidOperation, 'Cannot start a chat with yourself'):
            chat_service.get_or_create_chat(actor, self.buyer.pk)
        with self.assertRaisesMessage(NotFoundError, 'User not found'):
            chat_service.get_or_create_chat(actor, 999999)

    def test_deactivated_chat_is_not_reused(self):
        chat_service.deactivate_chat(self.actor(self.buyer), self.chat.pk)
        chat, created = chat_service.get_or_create_chat(self.actor(self.buyer), self.seller.pk)
        self.assertTrue(created)
        self.assertNotEqual(chat.pk, self.chat.pk)

    def test_send_message_updates_last_message(self):
        result = chat_service.send_message(self.actor(self.buyer), self.chat.pk, 'Is the lamp available?')
        self.chat.refresh_from_db()
        self.assertEqual(self.chat.last_message_sender, self.buyer)
        self.assertEqual(self.chat.last_message_content, 'Is the lamp available?')
        self.assertEqual(self.chat.last_message_at, result.message.delivered_at)
        self.assertEqual(result.message.message_type, 'text')

    def test_send_message_side_effects(self):
        result = chat_service.send_message(self.actor(self.buyer), self.chat.pk, 'Hello')
        names = [outcome.name for outcome in result.side_effects]
        self.assertEqual(names, ['receive_message', 'chat_updated', 'chat_updated', 'notification'])
        self.assertTrue(all(outcome.ok for outcome in result.side_effects))

    def test_recipient_gets_one_notification(self):
        long_text = 'x' * 80
        chat_service.send_message(self.actor(self.buyer), self.chat.pk, long_text)
        notification = Notification.objects.get(user=self.seller)
        self.assertEqual(notification.notification_type, Notification.TYPE_CHAT_MESSAGE)
        self.assertEqual(notification.title, 'New message from Bea Buyer')
        self.assertEqual(notification.message, 'x' * 50 + '...')
        self.assertEqual(notification.data, {
            'chat_id': self.chat.pk, 'sender_id': self.buyer.pk, 'sender_name': 'Bea Buyer'
        })
        self.assertFalse(Notification.objects.filter(user=self.buyer).exists())

    def test_send_message_validation(self):
        with self.assertRaisesMessage(Forbidden, 'Not authorized'):
            chat_service.send_message(self.actor(self.outsider), self.chat.pk, 'hi')
        with self.assertRaisesMessage(InvalidOperation, 'Message content is required'):
            chat_service.send_message(self.actor(self.buyer), self.chat.pk, '   ')
        with self.assertRaisesMessage(InvalidOperation, 'Invalid message type'):
            chat_service.send_message(self.actor(self.buyer), self.chat.pk, 'hi', 'video')
        with self.assertRaisesMessage(NotFoundError, 'Chat not found'):
            chat_service.send_message(self.actor(self.buyer), 999999, 'hi')
        self.assertFalse(ChatMessage.objects.exists())

    def test_unread_count_and_mark_read(self):
        ChatMessageFactory(chat=self.chat, sender=self.seller)
        ChatMessageFactory(chat=self.chat, sender=self.seller)
        ChatMessageFactory(chat=self.chat, sender=self.buyer)
        self.assertEqual(self.chat.unread_count_for(self.buyer.pk), 2)

        created, outcomes = chat_service.mark_chat_read(self.actor(self.buyer), self.chat.pk)
        self.assertEqual(created, 2)
        self.assertEqual(len(outcomes), 2)
        self.assertEqual(self.chat.unread_count_for(self.buyer.pk), 0)

    def test_mark_read_is_idempotent(self):
        ChatMessageFactory(chat=self.chat, sender=self.seller)
        chat_service.mark_chat_read(self.actor(self.buyer), self.chat.pk)
        created, _ = chat_service.mark_chat_read(self.actor(self.buyer), self.chat.pk)
        self.assertEqual(created, 0)
        self.assertEqual(MessageReceipt.objects.filter(user=self.buyer).count(), 1)

    def test_list_chats_sets_unread_count(self):
        ChatMessageFactory(chat=self.chat, sender=self.seller)
        chats = list(chat_service.list_chats(self.actor(self.buyer)))
        self.assertEqual(chats, [self.chat])
        self.assertEqual(chats[0].unread_count, 1)
        self.assertEqual(list(chat_service.list_chats(self.actor(self.outsider))), [])


class ChatEndpointTestCase(MarketplaceTestCase):
    """
    Test cases for the chat HTTP endpoints
    """

    def setUp(self):
        self.buyer = BuyerFactory()
        self.seller = SellerFactory()
        self.login(self.buyer)

    def test_create_then_reuse(self):
        response = self.client.post(reverse('chat-list'), {'participant_id': self.seller.pk}, format='json')
        self.assertEqual(response.status_code, 201)
        chat_id = response.data['chat']['id']

        response = self.client.post(reverse('chat-list'), {'participant_id': self.seller.pk}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['chat']['id'], chat_id)

    def test_messages_marks_read(self):
        chat = ChatFactory(members=[self.buyer, self.seller])
        message = ChatMessageFactory(chat=chat, sender=self.seller)
        response = self.client.get(reverse('chat-messages', args=[chat.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data['messages']), 1)
        self.assertTrue(MessageReceipt.objects.filter(message=message, user=self.buyer).exists())

    def test_messages_forbidden_for_outsider(self):
        chat = ChatFactory(members=[self.seller, SellerFactory()])
        response = self.client.get(reverse('chat-messages', args=[chat.pk]))
        self.assertEqual(response.status_code, 403)

    def test_deactivate(self):
        chat = ChatFactory(members=[self.buyer, self.seller])
        response = self.client.delete(reverse('chat-detail', args=[chat.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Chat.objects.get(pk=chat.pk).is_active)
        response = self.client.get(reverse('chat-list'))
        self.assertEqual(response.data['chats'], [])
