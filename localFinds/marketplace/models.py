"""
Database models for the LocalFinds marketplace.

Role-specific user data lives in one-to-one detail tables keyed off the
user's role. Orders keep an append-only tracking log, invoices keep a
denormalized snapshot of the order they bill.
"""
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.db.models import Avg, Count, F
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver
from django.core.validators import MinValueValidator
from django.utils import timezone
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
import hashlib
import secrets
import logging

from .validators import (
    validate_image_size, validate_image_extension,
    validate_positive_price, validate_rating, validate_discount_percentage,
)

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')


# ==============================================================================
# USER & AUTHENTICATION MODELS
# ==============================================================================

class UserManager(BaseUserManager):
    """Manager for email-keyed users."""
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError('The email address must be set')
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        extra_fields.setdefault('role', User.ROLE_BUYER)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', User.ROLE_ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    """
    Marketplace account, identified by email.

    The role is the discriminator for the detail variant: sellers own a
    SellerDetails row, buyers a BuyerDetails row, admins carry none.
    """
    ROLE_BUYER = 'buyer'
    ROLE_SELLER = 'seller'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_BUYER, 'Buyer'),
        (ROLE_SELLER, 'Seller'),
        (ROLE_ADMIN, 'Admin'),
    ]

    username = None
    email = models.EmailField(unique=True)
    role = models.CharField(
        max_length=10,
        choices=ROLE_CHOICES,
        default=ROLE_BUYER,
        db_index=True,
        help_text="User role in the marketplace"
    )
    full_name = models.CharField(max_length=255, db_index=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    pin_code = models.CharField(max_length=12, blank=True)
    profile_image = models.ImageField(
        upload_to='profile_images/',
        blank=True,
        null=True,
        validators=[validate_image_size, validate_image_extension]
    )
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['full_name']

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        indexes = [
            models.Index(fields=['role', 'is_active'], name='mkt_user_role_active_idx'),
        ]

    def __str__(self):
        return f"{self.email} ({self.role})"

    def get_full_name(self):
        """Return full name or email as fallback"""
        return self.full_name or self.email

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN

    @property
    def is_seller(self):
        return self.role == self.ROLE_SELLER

    @property
    def is_buyer(self):
        return self.role == self.ROLE_BUYER

    @property
    def details(self):
        """Return the role-specific detail record, or None for admins."""
        if self.is_seller:
            return SellerDetails.objects.filter(user=self).first()
        if self.is_buyer:
            return BuyerDetails.objects.filter(user=self).first()
        return None


class SellerDetails(models.Model):
    """Business profile for seller accounts"""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='seller_details')
    business_name = models.CharField(max_length=255, blank=True)
    business_category = models.JSONField(default=list, blank=True)
    bio = models.TextField(blank=True)

    class Meta:
        verbose_name = "Seller Details"
        verbose_name_plural = "Seller Details"

    def __str__(self):
        return self.business_name or self.user.email


class BuyerDetails(models.Model):
    """Shopping preferences for buyer accounts"""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='buyer_details')
    preferred_products = models.JSONField(default=list, blank=True)

    class Meta:
        verbose_name = "Buyer Details"
        verbose_name_plural = "Buyer Details"

    def __str__(self):
        return f"Preferences for {self.user.email}"


class PasswordResetToken(models.Model):
    """
    One-time password for the forgot-password flow.
    Only the SHA-256 digest of the code is stored.
    Auto-invalidates old tokens when new ones are created.
    """
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='reset_tokens')
    token_hash = models.CharField(max_length=64, db_index=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    is_used = models.BooleanField(default=False)
    reset_completed_at = models.DateTimeField(
        null=True, blank=True,
        help_text="Set when the reset session issued for this OTP changed the password"
    )

    class Meta:
        verbose_name = "Password Reset Token"
        verbose_name_plural = "Password Reset Tokens"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_used', 'created_at'], name='mkt_reset_user_used_idx'),
        ]

    def __str__(self):
        return f"Token for {self.user.email}"

    def is_expired(self):
        """Check if token has expired (10 minutes by default)"""
        from django.conf import settings
        expiry_minutes = getattr(settings, 'PASSWORD_RESET_TOKEN_EXPIRY', 10)
        expiry_time = self.created_at + timedelta(minutes=expiry_minutes)
        return timezone.now() > expiry_time

    def matches(self, code):
        return secrets.compare_digest(self.token_hash, self.hash_code(code))

    @staticmethod
    def hash_code(code):
        return hashlib.sha256(str(code).encode()).hexdigest()

    @staticmethod
    def generate_code():
        """Generate a secure random 6-digit code"""
        return str(secrets.randbelow(900000) + 100000)

    @classmethod
    def create_token(cls, user):
        """
        Create new token for user and invalidate old ones.

        Returns:
            (PasswordResetToken, plain code) tuple; the plain code is only
            available here and must be sent to the user.
        """
        cls.objects.filter(user=user, is_used=False).update(is_used=True)

        code = cls.generate_code()
        token = cls.objects.create(user=user, token_hash=cls.hash_code(code))
        return token, code


class CategoryInterest(models.Model):
    """Per-user counters of viewed and purchased product categories"""
    KIND_VIEWED = 'viewed'
    KIND_PURCHASED = 'purchased'
    KIND_CHOICES = [
        (KIND_VIEWED, 'Viewed'),
        (KIND_PURCHASED, 'Purchased'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='category_interests')
    category = models.CharField(max_length=100)
    kind = models.CharField(max_length=10, choices=KIND_CHOICES)
    count = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = "Category Interest"
        verbose_name_plural = "Category Interests"
        unique_together = ('user', 'category', 'kind')

    def __str__(self):
        return f"{self.user.email} {self.kind} {self.category} x{self.count}"

    @classmethod
    def bump(cls, user_id, category, kind, amount=1):
        interest, _ = cls.objects.get_or_create(user_id=user_id, category=category, kind=kind)
        cls.objects.filter(pk=interest.pk).update(count=F('count') + amount)


# ==============================================================================
# PRODUCT MODELS
# ==============================================================================

class Product(models.Model):
    """
    A listing owned by a seller.

    `price` is what buyers pay right now. It is derived from
    `original_price` and the discount window whenever the listing is
    written, so an expired discount only disappears once the row is
    rewritten (see tasks.refresh_product_discounts).
    """
    name = models.CharField(max_length=255, db_index=True)
    description = models.TextField()
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[validate_positive_price]
    )
    original_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[validate_positive_price]
    )
    discount_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=0,
        validators=[validate_discount_percentage]
    )
    discount_start_date = models.DateTimeField(null=True, blank=True)
    discount_end_date = models.DateTimeField(null=True, blank=True)
    category = models.CharField(max_length=100, db_index=True)
    tagline = models.CharField(max_length=100, blank=True, default='')
    seller = models.ForeignKey(User, on_delete=models.CASCADE, related_name='products')
    views = models.PositiveIntegerField(default=0)
    average_rating = models.DecimalField(max_digits=3, decimal_places=1, default=0)
    review_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Product"
        verbose_name_plural = "Products"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['seller', '-created_at'], name='mkt_product_seller_idx'),
            models.Index(fields=['category', '-created_at'], name='mkt_product_category_idx'),
        ]

    def __str__(self):
        return self.name

    def discount_is_active(self, now=None):
        if not self.discount_percentage or Decimal(self.discount_percentage) <= 0:
            return False
        now = now or timezone.now()
        if self.discount_start_date and self.discount_start_date > now:
            return False
        if self.discount_end_date and self.discount_end_date < now:
            return False
        return True

    def apply_discount(self, now=None):
        """Recompute `price` from `original_price` and the discount window."""
        if self.original_price is None:
            self.original_price = self.price
        base = Decimal(self.original_price)
        if self.discount_is_active(now):
            discount = base * Decimal(self.discount_percentage) / Decimal('100')
            self.price = (base - discount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        else:
            self.price = base
        return self.price

    def refresh_rating(self):
        """Recompute average rating and review count from all reviews."""
        stats = self.reviews.aggregate(avg=Avg('rating'), count=Count('id'))
        average = stats['avg'] or 0
        self.average_rating = Decimal(str(round(average, 1)))
        self.review_count = stats['count']
        Product.objects.filter(pk=self.pk).update(
            average_rating=self.average_rating,
            review_count=self.review_count,
        )

    def increment_views(self):
        Product.objects.filter(pk=self.pk).update(views=F('views') + 1)
        self.views += 1


class ProductImage(models.Model):
    """Hosted image reference for a product"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='images')
    url = models.CharField(max_length=500)
    public_id = models.CharField(max_length=255)

    class Meta:
        verbose_name = "Product Image"
        verbose_name_plural = "Product Images"
        ordering = ['id']

    def __str__(self):
        return self.url


class WishlistItem(models.Model):
    """Product saved by a user for later"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='wishlist')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='wishlisted_by')
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Wishlist Item"
        verbose_name_plural = "Wishlist Items"
        ordering = ['-added_at']
        unique_together = ('user', 'product')

    def __str__(self):
        return f"{self.product.name} in {self.user.email}'s wishlist"


# ==============================================================================
# ORDER MODELS
# ==============================================================================

class Order(models.Model):
    """Buyer order with an append-only tracking history"""
    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_SHIPPED = 'shipped'
    STATUS_DELIVERED = 'delivered'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_SHIPPED, 'Shipped'),
        (STATUS_DELIVERED, 'Delivered'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    PAYMENT_METHOD_CHOICES = [
        ('cash_on_delivery', 'Cash on Delivery'),
        ('online_payment', 'Online Payment'),
    ]

    CARRIER_CHOICES = [
        ('fedex', 'FedEx'),
        ('ups', 'UPS'),
        ('usps', 'USPS'),
        ('dhl', 'DHL'),
        ('other', 'Other'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='orders')
    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        help_text="Sum of captured item prices, fixed at creation"
    )
    shipping_address = models.TextField()
    payment_method = models.CharField(
        max_length=20,
        choices=PAYMENT_METHOD_CHOICES,
        default='cash_on_delivery'
    )
    order_notes = models.TextField(blank=True, default='')
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
        db_index=True
    )
    tracking_number = models.CharField(max_length=100, blank=True, default='')
    carrier = models.CharField(max_length=10, choices=CARRIER_CHOICES, blank=True, default='')
    estimated_delivery = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Order"
        verbose_name_plural = "Orders"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='mkt_order_user_idx'),
            models.Index(fields=['status', '-created_at'], name='mkt_order_status_idx'),
        ]

    def __str__(self):
        return f"Order #{self.pk} by {self.user.email}"

    def is_sold_by(self, user_id):
        return self.items.filter(product__seller_id=user_id).exists()

    def add_tracking_event(self, status, note):
        return TrackingEvent.objects.create(order=self, status=status, note=note)


class OrderItem(models.Model):
    """Line item with the unit price captured at order time"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        related_name='order_items'
    )
    product_name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        help_text="Price at time of purchase"
    )

    class Meta:
        verbose_name = "Order Item"
        verbose_name_plural = "Order Items"
        ordering = ['id']

    def __str__(self):
        return f"{self.product_name} x{self.quantity} in Order #{self.order_id}"

    def get_total_price(self):
        """Calculate total price for this order item"""
        return self.price * self.quantity


class TrackingEvent(models.Model):
    """Entry in an order's append-only status history"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='tracking_history')
    status = models.CharField(max_length=20, choices=Order.STATUS_CHOICES)
    timestamp = models.DateTimeField(default=timezone.now)
    note = models.TextField(blank=True, default='')

    class Meta:
        verbose_name = "Tracking Event"
        verbose_name_plural = "Tracking Events"
        ordering = ['timestamp', 'id']

    def __str__(self):
        return f"Order #{self.order_id} {self.status} at {self.timestamp:%Y-%m-%d %H:%M}"


# ==============================================================================
# INVOICE MODELS
# ==============================================================================

class Invoice(models.Model):
    """
    Billing document for an order, at most one per order.
    Items and addresses are copied so later product edits leave it unchanged.
    """
    STATUS_ACTIVE = 'active'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    order = models.OneToOneField(Order, on_delete=models.CASCADE, related_name='invoice')
    invoice_number = models.CharField(max_length=40, unique=True)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='invoices')
    seller = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        related_name='sales_invoices'
    )
    items = models.JSONField(default=list)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    shipping_address = models.TextField()
    payment_method = models.CharField(max_length=20, choices=Order.PAYMENT_METHOD_CHOICES)
    status = models.CharField(
        max_length=10,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        db_index=True
    )
    pdf_path = models.CharField(max_length=500)
    generated_at = models.DateTimeField(default=timezone.now)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Invoice"
        verbose_name_plural = "Invoices"
        ordering = ['-generated_at']
        indexes = [
            models.Index(fields=['user', '-generated_at'], name='mkt_invoice_user_idx'),
            models.Index(fields=['seller', '-generated_at'], name='mkt_invoice_seller_idx'),
        ]

    def __str__(self):
        return self.invoice_number

    @property
    def is_active(self):
        return self.status == self.STATUS_ACTIVE


# ==============================================================================
# CHAT & NOTIFICATION MODELS
# ==============================================================================

class Chat(models.Model):
    """Conversation between participants with a last-message projection"""
    participants = models.ManyToManyField(User, through='ChatParticipant', related_name='chats')
    last_message_sender = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    last_message_content = models.TextField(blank=True, default='')
    last_message_at = models.DateTimeField(null=True, blank=True, db_index=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Chat"
        verbose_name_plural = "Chats"
        ordering = ['-last_message_at', '-created_at']

    def __str__(self):
        return f"Chat #{self.pk}"

    def participant_ids(self):
        """Participant ids in the order they were added"""
        return list(self.memberships.order_by('id').values_list('user_id', flat=True))

    def has_participant(self, user_id):
        return self.memberships.filter(user_id=user_id).exists()

    def other_participant_id(self, user_id, participant_ids=None):
        """First participant that is not `user_id`, or None."""
        for participant_id in participant_ids or self.participant_ids():
            if participant_id != user_id:
                return participant_id
        return None

    def unread_count_for(self, user_id):
        return (
            self.messages.exclude(sender_id=user_id)
            .exclude(receipts__user_id=user_id)
            .count()
        )


class ChatParticipant(models.Model):
    """Membership row; insertion order decides who 'the other participant' is"""
    chat = models.ForeignKey(Chat, on_delete=models.CASCADE, related_name='memberships')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='chat_memberships')
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Chat Participant"
        verbose_name_plural = "Chat Participants"
        ordering = ['id']
        unique_together = ('chat', 'user')

    def __str__(self):
        return f"{self.user.email} in Chat #{self.chat_id}"


class ChatMessage(models.Model):
    """Append-only message inside a chat"""
    MESSAGE_TYPE_CHOICES = [
        ('text', 'Text'),
        ('image', 'Image'),
        ('file', 'File'),
    ]

    chat = models.ForeignKey(Chat, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name='chat_messages')
    content = models.TextField()
    message_type = models.CharField(max_length=10, choices=MESSAGE_TYPE_CHOICES, default='text')
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = "Chat Message"
        verbose_name_plural = "Chat Messages"
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.sender.get_full_name()}: {self.content[:50]}"


class MessageReceipt(models.Model):
    """Read receipt, one per (message, reader)"""
    message = models.ForeignKey(ChatMessage, on_delete=models.CASCADE, related_name='receipts')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='message_receipts')
    read_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = "Message Receipt"
        verbose_name_plural = "Message Receipts"
        unique_together = ('message', 'user')

    def __str__(self):
        return f"Message #{self.message_id} read by {self.user_id}"


class Notification(models.Model):
    """User notifications created by other workflows"""
    TYPE_CHAT_MESSAGE = 'chat_message'
    TYPE_ORDER_UPDATE = 'order_update'
    TYPE_PRODUCT_UPDATE = 'product_update'
    TYPE_SYSTEM = 'system'
    NOTIFICATION_TYPES = [
        (TYPE_CHAT_MESSAGE, 'Chat Message'),
        (TYPE_ORDER_UPDATE, 'Order Update'),
        (TYPE_PRODUCT_UPDATE, 'Product Update'),
        (TYPE_SYSTEM, 'System'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    notification_type = models.CharField(
        max_length=20,
        choices=NOTIFICATION_TYPES,
        default=TYPE_SYSTEM,
        db_index=True
    )
    title = models.CharField(max_length=255)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'is_read', '-created_at'], name='mkt_notif_user_read_idx'),
        ]

    def __str__(self):
        return f"{self.user.email} - {self.title}"

    def mark_as_read(self):
        """Mark notification as read"""
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=['is_read', 'read_at', 'updated_at'])


# ==============================================================================
# REVIEWS, REPORTS & INQUIRIES
# ==============================================================================

class Review(models.Model):
    """Product review; the signal handlers below keep the product rating current"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='reviews')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='reviews')
    rating = models.PositiveSmallIntegerField(
        validators=[validate_rating],
        help_text="Rating from 1 to 5 stars"
    )
    comment = models.CharField(max_length=500)
    likes = models.ManyToManyField(User, related_name='liked_reviews', blank=True)
    dislikes = models.ManyToManyField(User, related_name='disliked_reviews', blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Review"
        verbose_name_plural = "Reviews"
        ordering = ['-created_at', '-id']
        unique_together = ('product', 'user')

    def __str__(self):
        return f"{self.user.email} - {self.rating} stars for {self.product.name}"

    def toggle_like(self, user):
        """Like, or remove an existing like. Liking clears a dislike."""
        if self.likes.filter(pk=user.pk).exists():
            self.likes.remove(user)
            return False
        self.likes.add(user)
        self.dislikes.remove(user)
        return True

    def toggle_dislike(self, user):
        """Dislike, or remove an existing dislike. Disliking clears a like."""
        if self.dislikes.filter(pk=user.pk).exists():
            self.dislikes.remove(user)
            return False
        self.dislikes.add(user)
        self.likes.remove(user)
        return True


class Report(models.Model):
    """User report flagging a product for moderation"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='reports')
    reporter = models.ForeignKey(User, on_delete=models.CASCADE, related_name='reports')
    note = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = "Report"
        verbose_name_plural = "Reports"
        ordering = ['-created_at']

    def __str__(self):
        return f"Report on {self.product.name} by {self.reporter.email}"


class Inquiry(models.Model):
    """Public contact-form submission handled by admins"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('in-progress', 'In Progress'),
        ('resolved', 'Resolved'),
        ('closed', 'Closed'),
    ]
    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    name = models.CharField(max_length=255)
    email = models.EmailField(db_index=True)
    subject = models.CharField(max_length=255)
    message = models.TextField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    assigned_to = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_inquiries'
    )
    response = models.TextField(null=True, blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Inquiry"
        verbose_name_plural = "Inquiries"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', '-created_at'], name='mkt_inquiry_status_idx'),
        ]

    def __str__(self):
        return f"{self.subject} from {self.email}"


# ==============================================================================
# SIGNAL HANDLERS
# ==============================================================================

@receiver(post_save, sender=Review)
@receiver(post_delete, sender=Review)
def refresh_product_rating(sender, instance, **kwargs):
    """
    Recompute the product aggregate after any review write or removal,
    including removals cascaded from a deleted user or a queryset delete.
    """
    product = Product.objects.filter(pk=instance.product_id).first()
    if product is None:
        return
    product.refresh_rating()
