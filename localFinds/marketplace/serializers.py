"""
Django REST Framework serializers for all models.
Provides JSON serialization/deserialization with validation.
"""
from rest_framework import serializers
from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from django.db import transaction

from .models import (
    User, SellerDetails, BuyerDetails, Product, ProductImage, WishlistItem,
    Order, OrderItem, TrackingEvent, Invoice, Chat, ChatMessage,
    Notification, Review, Report, Inquiry
)
from .validators import validate_image_count


def split_list(value):
    """Accept either a list or a comma separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(',') if part.strip()]
    return [str(part).strip() for part in value if str(part).strip()]


class CommaListField(serializers.Field):
    """List of strings, also accepted as "a, b, c"."""

    def to_internal_value(self, data):
        if not isinstance(data, (str, list, tuple)):
            raise serializers.ValidationError('Expected a list or a comma separated string.')
        return split_list(data)

    def to_representation(self, value):
        return list(value or [])


# ==============================================================================
# USER & AUTHENTICATION SERIALIZERS
# ==============================================================================

class SellerDetailsSerializer(serializers.ModelSerializer):
    business_category = CommaListField(required=False)

    class Meta:
        model = SellerDetails
        fields = ['business_name', 'business_category', 'bio']


class BuyerDetailsSerializer(serializers.ModelSerializer):
    preferred_products = CommaListField(required=False)

    class Meta:
        model = BuyerDetails
        fields = ['preferred_products']


class UserSummarySerializer(serializers.ModelSerializer):
    """Public identity of a user embedded in other payloads"""

    class Meta:
        model = User
        fields = ['id', 'full_name', 'email', 'profile_image']


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model with the role-specific details"""
    details = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'email', 'full_name', 'role', 'phone', 'address', 'pin_code',
            'profile_image', 'details', 'date_joined', 'last_login'
        ]
        read_only_fields = ['id', 'email', 'role', 'date_joined', 'last_login']

    def get_details(self, obj):
        details = obj.details
        if isinstance(details, SellerDetails):
            return SellerDetailsSerializer(details).data
        if isinstance(details, BuyerDetails):
            return BuyerDetailsSerializer(details).data
        return None


class UserRegistrationSerializer(serializers.ModelSerializer):
    """Registers a buyer or seller together with its detail record"""
    password = serializers.CharField(
        write_only=True,
        required=True,
        validators=[validate_password],
        style={'input_type': 'password'}
    )
    role = serializers.ChoiceField(choices=[User.ROLE_BUYER, User.ROLE_SELLER])
    business_name = serializers.CharField(required=False, allow_blank=True, write_only=True)
    business_category = CommaListField(required=False, write_only=True)
    bio = serializers.CharField(required=False, allow_blank=True, write_only=True)
    preferred_products = CommaListField(required=False, write_only=True)

    class Meta:
        model = User
        fields = [
            'email', 'password', 'full_name', 'role', 'phone', 'address', 'pin_code',
            'business_name', 'business_category', 'bio', 'preferred_products'
        ]
        extra_kwargs = {
            'email': {'validators': []},
            'full_name': {'required': True, 'allow_blank': False},
            'phone': {'required': True, 'allow_blank': False},
            'address': {'required': True, 'allow_blank': False},
            'pin_code': {'required': True, 'allow_blank': False},
        }

    def validate_email(self, value):
        value = value.lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('User already exists')
        return value

    def create(self, validated_data):
        """Create user with hashed password and the detail variant for its role"""
        seller_fields = {
            'business_name': validated_data.pop('business_name', ''),
            'business_category': validated_data.pop('business_category', []),
            'bio': validated_data.pop('bio', ''),
        }
        buyer_fields = {
            'preferred_products': validated_data.pop('preferred_products', []),
        }
        password = validated_data.pop('password')

        with transaction.atomic():
            user = User.objects.create_user(password=password, **validated_data)
            if user.is_seller:
                SellerDetails.objects.create(user=user, **seller_fields)
            else:
                BuyerDetails.objects.create(user=user, **buyer_fields)
        return user


class AdminRegistrationSerializer(serializers.ModelSerializer):
    """Creates another admin account"""
    password = serializers.CharField(
        write_only=True,
        required=True,
        validators=[validate_password],
        style={'input_type': 'password'}
    )

    class Meta:
        model = User
        fields = ['email', 'password', 'full_name', 'phone', 'address', 'pin_code']
        extra_kwargs = {
            'email': {'validators': []},
            'full_name': {'required': True, 'allow_blank': False},
            'phone': {'required': True, 'allow_blank': False},
            'address': {'required': True, 'allow_blank': False},
            'pin_code': {'required': True, 'allow_blank': False},
        }

    def validate_email(self, value):
        value = value.lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('User already exists')
        return value

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, role=User.ROLE_ADMIN, **validated_data)


class UserLoginSerializer(serializers.Serializer):
    """Serializer for user login"""
    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate(self, attrs):
        """Authenticate user credentials"""
        user = authenticate(
            request=self.context.get('request'),
            username=attrs['email'].lower(),
            password=attrs['password']
        )
        if not user:
            raise serializers.ValidationError('Invalid credentials', code='authorization')
        attrs['user'] = user
        return attrs


class AccountUpdateSerializer(serializers.Serializer):
    """Profile fields a user may change; blank values keep the current ones"""
    full_name = serializers.CharField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True)
    pin_code = serializers.CharField(required=False, allow_blank=True)
    business_name = serializers.CharField(required=False, allow_blank=True)
    business_category = CommaListField(required=False)
    bio = serializers.CharField(required=False, allow_blank=True)
    preferred_products = CommaListField(required=False)

    USER_FIELDS = ('full_name', 'phone', 'address', 'pin_code')
    SELLER_FIELDS = ('business_name', 'business_category', 'bio')
    BUYER_FIELDS = ('preferred_products',)

    def update(self, instance, validated_data):
        with transaction.atomic():
            for field in self.USER_FIELDS:
                if validated_data.get(field):
                    setattr(instance, field, validated_data[field])
            instance.save()

            if instance.is_seller:
                details, _ = SellerDetails.objects.get_or_create(user=instance)
                fields = self.SELLER_FIELDS
            elif instance.is_buyer:
                details, _ = BuyerDetails.objects.get_or_create(user=instance)
                fields = self.BUYER_FIELDS
            else:
                return instance

            for field in fields:
                if field in validated_data and validated_data[field] not in ('', None):
                    setattr(details, field, validated_data[field])
            details.save()
        return instance


class ChangePasswordSerializer(serializers.Serializer):
    """Serializer for password change"""
    old_password = serializers.CharField(required=True, write_only=True)
    new_password = serializers.CharField(
        required=True,
        write_only=True,
        validators=[validate_password]
    )


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField(required=True)


class VerifyOTPSerializer(serializers.Serializer):
    email = serializers.EmailField(required=True)
    otp = serializers.RegexField(r'^\d{6}$', required=True)


class ResetPasswordSerializer(serializers.Serializer):
    reset_token = serializers.CharField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        min_length=6,
        error_messages={'min_length': 'Password must be at least 6 characters long'}
    )


# ==============================================================================
# PRODUCT SERIALIZERS
# ==============================================================================

class ProductImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductImage
        fields = ['url', 'public_id']


class ProductSerializer(serializers.ModelSerializer):
    """
    Product with images and seller summary.

    Writes take `price` as the undiscounted price; the stored `price` is
    recomputed from it and the discount window.
    """
    images = ProductImageSerializer(many=True, required=False)
    seller = UserSummarySerializer(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'description', 'price', 'original_price',
            'discount_percentage', 'discount_start_date', 'discount_end_date',
            'category', 'tagline', 'images', 'seller', 'views',
            'average_rating', 'review_count', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'id', 'original_price', 'seller', 'views', 'average_rating',
            'review_count', 'created_at', 'updated_at'
        ]

    def validate_images(self, value):
        validate_image_count(value)
        return value

    def validate(self, attrs):
        if self.instance is None and not attrs.get('images'):
            raise serializers.ValidationError({'images': 'A product must have at least one image.'})
        start = attrs.get('discount_start_date', getattr(self.instance, 'discount_start_date', None))
        end = attrs.get('discount_end_date', getattr(self.instance, 'discount_end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'discount_end_date': 'Discount end must be after its start.'})
        return attrs

    def _replace_images(self, product, images):
        product.images.all().delete()
        ProductImage.objects.bulk_create([ProductImage(product=product, **image) for image in images])

    def create(self, validated_data):
        images = validated_data.pop('images')
        product = Product(**validated_data)
        product.original_price = product.price
        product.apply_discount()
        with transaction.atomic():
            product.save()
            self._replace_images(product, images)
        return product

    def update(self, instance, validated_data):
        images = validated_data.pop('images', None)
        if 'price' in validated_data:
            instance.original_price = validated_data.pop('price')
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.apply_discount()
        with transaction.atomic():
            instance.save()
            if images is not None:
                self._replace_images(instance, images)
        return instance


class WishlistItemSerializer(serializers.ModelSerializer):
    product = ProductSerializer(read_only=True)

    class Meta:
        model = WishlistItem
        fields = ['id', 'product', 'added_at']


# ==============================================================================
# ORDER & INVOICE SERIALIZERS
# ==============================================================================

class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for OrderItem model"""
    total_price = serializers.DecimalField(
        source='get_total_price',
        max_digits=12,
        decimal_places=2,
        read_only=True
    )

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'product_name', 'quantity', 'price', 'total_price']


class TrackingEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = TrackingEvent
        fields = ['status', 'timestamp', 'note']


class OrderSerializer(serializers.ModelSerializer):
    """Serializer for Order model"""
    items = OrderItemSerializer(many=True, read_only=True)
    tracking_history = TrackingEventSerializer(many=True, read_only=True)
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'user', 'items', 'total_amount', 'shipping_address',
            'payment_method', 'order_notes', 'status', 'tracking_number',
            'carrier', 'estimated_delivery', 'delivered_at', 'tracking_history',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class OrderLineSerializer(serializers.Serializer):
    product = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, default=1)


class PlaceOrderSerializer(serializers.Serializer):
    items = OrderLineSerializer(many=True, required=False, default=list)
    shipping_address = serializers.CharField(required=False, allow_blank=True, default='')
    payment_method = serializers.ChoiceField(
        choices=Order.PAYMENT_METHOD_CHOICES,
        default='cash_on_delivery'
    )
    order_notes = serializers.CharField(required=False, allow_blank=True, default='')


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.CharField()
    tracking_number = serializers.CharField(required=False, allow_blank=True)
    carrier = serializers.ChoiceField(choices=Order.CARRIER_CHOICES, required=False, allow_blank=True)
    estimated_delivery = serializers.DateTimeField(required=False, allow_null=True)
    note = serializers.CharField(required=False, allow_blank=True)


class InvoiceSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    seller = UserSummarySerializer(read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'order', 'invoice_number', 'user', 'seller', 'items',
            'subtotal', 'tax', 'total_amount', 'shipping_address',
            'payment_method', 'status', 'generated_at', 'cancelled_at'
        ]
        read_only_fields = fields


# ==============================================================================
# CHAT & NOTIFICATION SERIALIZERS
# ==============================================================================

class ChatMessageSerializer(serializers.ModelSerializer):
    """Serializer for ChatMessage model"""
    sender = UserSummarySerializer(read_only=True)
    read_by = serializers.SerializerMethodField()

    class Meta:
        model = ChatMessage
        fields = ['id', 'sender', 'content', 'message_type', 'read_by', 'delivered_at', 'created_at']
        read_only_fields = fields

    def get_read_by(self, obj):
        return [
            {'user': receipt.user_id, 'read_at': receipt.read_at}
            for receipt in obj.receipts.all()
        ]


class ChatSerializer(serializers.ModelSerializer):
    """Chat list entry with last-message projection and the caller's unread count"""
    participants = UserSummarySerializer(many=True, read_only=True)
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Chat
        fields = ['id', 'participants', 'last_message', 'unread_count', 'is_active', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_last_message(self, obj):
        if obj.last_message_at is None:
            return None
        return {
            'sender': obj.last_message_sender_id,
            'content': obj.last_message_content,
            'timestamp': obj.last_message_at,
        }

    def get_unread_count(self, obj):
        return getattr(obj, 'unread_count', 0)


class NotificationSerializer(serializers.ModelSerializer):
    """Serializer for Notification model"""
    type = serializers.CharField(source='notification_type', read_only=True)

    class Meta:
        model = Notification
        fields = [
            'id', 'user', 'type', 'title', 'message', 'data',
            'is_read', 'read_at', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


# ==============================================================================
# REVIEW, REPORT & INQUIRY SERIALIZERS
# ==============================================================================

class ReviewSerializer(serializers.ModelSerializer):
    """Serializer for Review model"""
    user = UserSummarySerializer(read_only=True)
    likes = serializers.PrimaryKeyRelatedField(many=True, read_only=True)
    dislikes = serializers.PrimaryKeyRelatedField(many=True, read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'product', 'user', 'rating', 'comment', 'likes', 'dislikes', 'created_at', 'updated_at']
        read_only_fields = fields


class ReportSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    reporter = UserSummarySerializer(read_only=True)

    class Meta:
        model = Report
        fields = ['id', 'product', 'product_name', 'reporter', 'note', 'created_at']
        read_only_fields = ['id', 'product_name', 'reporter', 'created_at']

    def validate_note(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Note is required')
        return value


class InquirySerializer(serializers.ModelSerializer):
    class Meta:
        model = Inquiry
        fields = [
            'id', 'name', 'email', 'subject', 'message', 'status', 'priority',
            'assigned_to', 'response', 'responded_at', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'id', 'status', 'priority', 'assigned_to', 'response',
            'responded_at', 'created_at', 'updated_at'
        ]


class InquiryUpdateSerializer(serializers.ModelSerializer):
    """Admin update: status, priority, assignee and response"""

    class Meta:
        model = Inquiry
        fields = ['status', 'priority', 'assigned_to', 'response']
        extra_kwargs = {
            'status': {'required': False},
            'priority': {'required': False},
            'assigned_to': {'required': False},
            'response': {'required': False},
        }
