from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from django.utils.safestring import mark_safe
from .models import (
    User, SellerDetails, BuyerDetails, PasswordResetToken, Product, ProductImage,
    Order, OrderItem, TrackingEvent, Invoice, Chat, ChatParticipant, ChatMessage,
    Notification, Review, Report, Inquiry
)


class SellerDetailsInline(admin.StackedInline):
    model = SellerDetails
    can_delete = False
    extra = 0


class BuyerDetailsInline(admin.StackedInline):
    model = BuyerDetails
    can_delete = False
    extra = 0


@admin.register(User)
class CustomUserAdmin(UserAdmin):
    list_display = ('email', 'full_name', 'phone', 'role', 'has_profile_image', 'is_staff', 'date_joined')
    list_filter = ('role', 'is_staff', 'is_superuser', 'is_active', 'date_joined')
    search_fields = ('email', 'full_name', 'phone')
    ordering = ('-date_joined',)
    readonly_fields = ('profile_image_preview', 'last_login', 'date_joined')
    inlines = [SellerDetailsInline, BuyerDetailsInline]

    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Profile', {'fields': ('full_name', 'phone', 'address', 'pin_code', 'role')}),
        ('Profile Image', {'fields': ('profile_image', 'profile_image_preview')}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Important dates', {'fields': ('last_login', 'date_joined')}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'full_name', 'role', 'password1', 'password2'),
        }),
    )

    def has_profile_image(self, obj):
        """Show if user has a profile image"""
        return bool(obj.profile_image)
    has_profile_image.boolean = True
    has_profile_image.short_description = 'Has Profile Image'

    def profile_image_preview(self, obj):
        """Show profile image preview in admin"""
        if obj.profile_image:
            return mark_safe(f'<img src="{obj.profile_image.url}" style="max-width: 100px; max-height: 100px; border-radius: 50%; object-fit: cover;" />')
        return "No image uploaded"
    profile_image_preview.short_description = 'Profile Image Preview'


@admin.register(PasswordResetToken)
class PasswordResetTokenAdmin(admin.ModelAdmin):
    list_display = ('user', 'created_at', 'is_used', 'is_expired')
    list_filter = ('is_used', 'created_at')
    search_fields = ('user__email',)
    ordering = ('-created_at',)
    readonly_fields = ('token_hash', 'created_at', 'reset_completed_at')

    def is_expired(self, obj):
        return obj.is_expired()
    is_expired.boolean = True
    is_expired.short_description = 'Expired'


class ProductImageInline(admin.TabularInline):
    model = ProductImage
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('name', 'seller', 'category', 'price', 'original_price', 'discount_percentage', 'views', 'average_rating', 'created_at')
    list_filter = ('category', 'created_at')
    search_fields = ('name', 'description', 'seller__email', 'seller__full_name')
    ordering = ('-created_at',)
    readonly_fields = ('views', 'average_rating', 'review_count', 'created_at', 'updated_at', 'image_preview')
    inlines = [ProductImageInline]

    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'description', 'tagline', 'category', 'seller')
        }),
        ('Pricing', {
            'fields': ('price', 'original_price', 'discount_percentage', 'discount_start_date', 'discount_end_date')
        }),
        ('Images', {
            'fields': ('image_preview',)
        }),
        ('Statistics', {
            'fields': ('views', 'average_rating', 'review_count')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def image_preview(self, obj):
        """Show first product image in admin"""
        image = obj.images.first()
        if image:
            return mark_safe(f'<img src="{image.url}" style="max-width: 200px; max-height: 200px; object-fit: cover;" />')
        return "No image uploaded"
    image_preview.short_description = 'Image Preview'


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('product', 'product_name', 'quantity', 'price')
    can_delete = False


class TrackingEventInline(admin.TabularInline):
    model = TrackingEvent
    extra = 0
    readonly_fields = ('status', 'timestamp', 'note')
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'status', 'total_amount', 'payment_method', 'carrier', 'created_at')
    list_filter = ('status', 'payment_method', 'carrier', 'created_at')
    search_fields = ('user__email', 'user__full_name', 'tracking_number')
    ordering = ('-created_at',)
    readonly_fields = ('total_amount', 'created_at', 'updated_at', 'delivered_at')
    inlines = [OrderItemInline, TrackingEventInline]


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'order', 'user', 'seller', 'total_amount', 'status', 'generated_at')
    list_filter = ('status', 'generated_at')
    search_fields = ('invoice_number', 'user__email', 'seller__email')
    ordering = ('-generated_at',)
    readonly_fields = ('invoice_number', 'items', 'subtotal', 'tax', 'total_amount', 'pdf_path', 'generated_at', 'cancelled_at')


class ChatParticipantInline(admin.TabularInline):
    model = ChatParticipant
    extra = 0
    readonly_fields = ('user', 'joined_at')


class ChatMessageInline(admin.TabularInline):
    """Inline display of messages within Chat admin"""
    model = ChatMessage
    extra = 0
    readonly_fields = ('sender', 'content', 'message_type', 'delivered_at', 'created_at')
    can_delete = False
    max_num = 10  # Show only last 10 messages in inline
    ordering = ('-created_at',)


@admin.register(Chat)
class ChatAdmin(admin.ModelAdmin):
    list_display = ('id', 'get_participants', 'get_last_message_preview', 'is_active', 'last_message_at', 'created_at')
    list_filter = ('is_active', 'created_at')
    search_fields = ('participants__email', 'participants__full_name')
    ordering = ('-last_message_at',)
    readonly_fields = ('last_message_sender', 'last_message_content', 'last_message_at', 'created_at', 'updated_at')
    inlines = [ChatParticipantInline, ChatMessageInline]

    def get_participants(self, obj):
        """Show chat participants"""
        return " <-> ".join(user.get_full_name() for user in obj.participants.all())
    get_participants.short_description = 'Participants'

    def get_last_message_preview(self, obj):
        """Show preview of last message"""
        if obj.last_message_sender:
            return f"{obj.last_message_sender.get_full_name()}: {obj.last_message_content[:50]}..."
        return "No messages yet"
    get_last_message_preview.short_description = 'Last Message'


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('user', 'notification_type', 'title', 'is_read', 'created_at')
    list_filter = ('notification_type', 'is_read', 'created_at')
    search_fields = ('user__email', 'title', 'message')
    ordering = ('-created_at',)


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ('product', 'user', 'rating', 'get_comment_preview', 'created_at')
    list_filter = ('rating', 'created_at')
    search_fields = ('product__name', 'user__email', 'comment')
    ordering = ('-created_at',)

    def get_comment_preview(self, obj):
        """Show comment preview"""
        return obj.comment[:100] + "..." if len(obj.comment) > 100 else obj.comment
    get_comment_preview.short_description = 'Comment'


@admin.register(Report)
class ReportAdmin(admin.ModelAdmin):
    list_display = ('product', 'reporter', 'note', 'created_at')
    search_fields = ('product__name', 'reporter__email', 'note')
    ordering = ('-created_at',)


@admin.register(Inquiry)
class InquiryAdmin(admin.ModelAdmin):
    list_display = ('subject', 'email', 'status', 'priority', 'assigned_to', 'created_at')
    list_filter = ('status', 'priority', 'created_at')
    search_fields = ('name', 'email', 'subject', 'message')
    ordering = ('-created_at',)
    readonly_fields = ('responded_at', 'created_at', 'updated_at')
