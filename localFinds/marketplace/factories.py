"""
Factory classes for creating test data.
Uses factory_boy for efficient test data generation.
"""
import factory
from factory.django import DjangoModelFactory
from faker import Faker
from decimal import Decimal

from .models import (
    User, SellerDetails, BuyerDetails, Product, ProductImage, Order, OrderItem,
    Chat, ChatParticipant, ChatMessage, Notification, Review, Report, Inquiry
)

fake = Faker()


class UserFactory(DjangoModelFactory):
    """Factory for User model"""

    class Meta:
        model = User
        django_get_or_create = ('email',)

    email = factory.Sequence(lambda n: f'user{n}@example.com')
    full_name = factory.Faker('name')
    role = User.ROLE_BUYER
    phone = factory.Faker('numerify', text='##########')
    address = factory.Faker('address')
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        if not create:
            return
        if extracted:
            self.set_password(extracted)
        else:
            self.set_password('testpass123')
        self.save(update_fields=['password'])


class BuyerFactory(UserFactory):
    """Factory for buyer users"""
    role = User.ROLE_BUYER
    buyer_details = factory.RelatedFactory(
        'marketplace.factories.BuyerDetailsFactory', factory_related_name='user'
    )


class SellerFactory(UserFactory):
    """Factory for seller users"""
    role = User.ROLE_SELLER
    seller_details = factory.RelatedFactory(
        'marketplace.factories.SellerDetailsFactory', factory_related_name='user'
    )


class AdminFactory(UserFactory):
    """Factory for admin users"""
    role = User.ROLE_ADMIN
    is_staff = True


class SellerDetailsFactory(DjangoModelFactory):
    class Meta:
        model = SellerDetails

    user = factory.SubFactory(UserFactory, role=User.ROLE_SELLER)
    business_name = factory.Faker('company')
    business_category = factory.LazyFunction(lambda: ['crafts'])
    bio = factory.Faker('sentence')


class BuyerDetailsFactory(DjangoModelFactory):
    class Meta:
        model = BuyerDetails

    user = factory.SubFactory(UserFactory)
    preferred_products = factory.LazyFunction(list)


class ProductFactory(DjangoModelFactory):
    """Factory for Product model"""

    class Meta:
        model = Product

    name = factory.Faker('sentence', nb_words=3)
    description = factory.Faker('paragraph')
    price = factory.LazyFunction(lambda: Decimal(str(round(fake.random.uniform(5.00, 99.99), 2))))
    original_price = factory.SelfAttribute('price')
    category = 'crafts'
    seller = factory.SubFactory(SellerFactory)
    image = factory.RelatedFactory('marketplace.factories.ProductImageFactory', factory_related_name='product')


class ProductImageFactory(DjangoModelFactory):
    class Meta:
        model = ProductImage

    product = factory.SubFactory(ProductFactory, image=None)
    url = factory.Sequence(lambda n: f'https://images.example.com/products/{n}.jpg')
    public_id = factory.Sequence(lambda n: f'products/{n}')


class OrderFactory(DjangoModelFactory):
    """Factory for Order model"""

    class Meta:
        model = Order

    user = factory.SubFactory(BuyerFactory)
    total_amount = Decimal('0.00')
    shipping_address = factory.Faker('address')
    payment_method = 'cash_on_delivery'
    status = Order.STATUS_PENDING


class OrderItemFactory(DjangoModelFactory):
    class Meta:
        model = OrderItem

    order = factory.SubFactory(OrderFactory)
    product = factory.SubFactory(ProductFactory)
    product_name = factory.SelfAttribute('product.name')
    quantity = 1
    price = factory.SelfAttribute('product.price')


class ChatFactory(DjangoModelFactory):
    """Factory for Chat model; pass `members=[user, ...]` to add participants"""

    class Meta:
        model = Chat

    @factory.post_generation
    def members(self, create, extracted, **kwargs):
        if not create or not extracted:
            return
        for user in extracted:
            ChatParticipant.objects.create(chat=self, user=user)


class ChatMessageFactory(DjangoModelFactory):
    class Meta:
        model = ChatMessage

    chat = factory.SubFactory(ChatFactory)
    sender = factory.SubFactory(BuyerFactory)
    content = factory.Faker('sentence')
    message_type = 'text'


class NotificationFactory(DjangoModelFactory):
    """Factory for Notification model"""

    class Meta:
        model = Notification

    user = factory.SubFactory(BuyerFactory)
    notification_type = Notification.TYPE_SYSTEM
    title = factory.Faker('sentence', nb_words=5)
    message = factory.Faker('paragraph')
    is_read = False


class ReviewFactory(DjangoModelFactory):
    class Meta:
        model = Review

    product = factory.SubFactory(ProductFactory)
    user = factory.SubFactory(BuyerFactory)
    rating = factory.Faker('random_int', min=1, max=5)
    comment = factory.Faker('sentence')


class ReportFactory(DjangoModelFactory):
    class Meta:
        model = Report

    product = factory.SubFactory(ProductFactory)
    reporter = factory.SubFactory(BuyerFactory)
    note = factory.Faker('sentence')


class InquiryFactory(DjangoModelFactory):
    class Meta:
        model = Inquiry

    name = factory.Faker('name')
    email = factory.Faker('email')
    subject = factory.Faker('sentence', nb_words=4)
    message = factory.Faker('paragraph')
