"""
Django REST Framework ViewSets for API endpoints.

Views authenticate the request, build the caller's Actor once and hand it to
the service modules; domain errors raised there are turned into responses by
exceptions.marketplace_exception_handler.
"""
from rest_framework import viewsets, status, permissions, filters
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
from django.contrib.auth.models import update_last_login
from django.http import FileResponse
import logging

from . import accounts, chat as chat_service, invoices, moderation, notifications, orders, reviews
from .context import Actor
from .exceptions import InvalidOperation, NotFoundError
from .models import Inquiry, Notification, Product, Report, User
from .permissions import IsAdminRole, IsOwner, IsSellerUser
from .recommendations import recommend_products, track_product_view
from .serializers import (
    UserSerializer, UserRegistrationSerializer, AdminRegistrationSerializer,
    UserLoginSerializer, AccountUpdateSerializer, ChangePasswordSerializer,
    ForgotPasswordSerializer, VerifyOTPSerializer, ResetPasswordSerializer,
    ProductSerializer, WishlistItemSerializer, OrderSerializer,
    PlaceOrderSerializer, OrderStatusSerializer, InvoiceSerializer,
    ChatSerializer, ChatMessageSerializer, NotificationSerializer,
    ReviewSerializer, ReportSerializer, InquirySerializer, InquiryUpdateSerializer
)
from .tokens import tokens_for_user

logger = logging.getLogger(__name__)


def side_effects_payload(result):
    return [outcome.as_dict() for outcome in result.side_effects]


class ActorViewSetMixin:
    """Sets `self.actor` for authenticated requests."""
    actor = None

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        if request.user and request.user.is_authenticated:
            self.actor = Actor.from_user(request.user)

    def paginated_response(self, queryset, key, serializer_class=None, **extra):
        serializer_class = serializer_class or self.get_serializer_class()
        context = self.get_serializer_context()
        page = self.paginate_queryset(queryset)
        if page is None:
            data = serializer_class(queryset, many=True, context=context).data
            return Response({'success': True, key: data, **extra})
        data = serializer_class(page, many=True, context=context).data
        return self.paginator.get_paginated_response(data, key=key, **extra)


class MarketplaceViewSet(ActorViewSetMixin, viewsets.GenericViewSet):
    permission_classes = [permissions.IsAuthenticated]


# ==============================================================================
# USER VIEWSETS
# ==============================================================================

class UserViewSet(MarketplaceViewSet):
    """
    Registration, login, profile, wishlist and password recovery.
    """
    serializer_class = UserSerializer

    def get_permissions(self):
        if self.action in ['register', 'login', 'forgot_password', 'verify_otp', 'reset_password']:
            return [permissions.AllowAny()]
        return [permissions.IsAuthenticated()]

    def register(self, request):
        """Register a new buyer or seller"""
        serializer = UserRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(f"User {user.pk} registered as {user.role}")
        return Response({
            'success': True,
            'message': 'User registered successfully',
            'user_id': user.pk,
        }, status=status.HTTP_201_CREATED)

    def login(self, request):
        """Login user and return JWT tokens"""
        serializer = UserLoginSerializer(data=request.data, context={'request': request})
        if not serializer.is_valid():
            return Response(
                {'success': False, 'message': 'Invalid credentials'},
                status=status.HTTP_400_BAD_REQUEST
            )
        user = serializer.validated_data['user']
        update_last_login(None, user)
        tokens = tokens_for_user(user)
        return Response({
            'success': True,
            'message': 'Login successful',
            'token': tokens['access'],
            **tokens,
            'user': UserSerializer(user).data,
        })

    def account(self, request):
        """Get the current user's profile"""
        return Response(UserSerializer(request.user).data)

    def update_account(self, request):
        """Update profile and role-specific details"""
        serializer = AccountUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return Response(UserSerializer(user).data)

    def wishlist(self, request):
        items = accounts.wishlist_for(self.actor)
        return Response({'success': True, 'wishlist': WishlistItemSerializer(items, many=True).data})

    def add_wishlist(self, request):
        items = accounts.add_to_wishlist(self.actor, request.data.get('product_id'))
        return Response({
            'success': True,
            'message': 'Product added to wishlist',
            'wishlist': WishlistItemSerializer(items, many=True).data,
        })

    def remove_wishlist(self, request, product_id=None):
        items = accounts.remove_from_wishlist(self.actor, product_id)
        return Response({
            'success': True,
            'message': 'Product removed from wishlist',
            'wishlist': WishlistItemSerializer(items, many=True).data,
        })

    def forgot_password(self, request):
        serializer = ForgotPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        accounts.request_password_reset(serializer.validated_data['email'])
        return Response({
            'success': True,
            'message': 'If an account with that email exists, an OTP has been sent.',
        })

    def verify_otp(self, request):
        serializer = VerifyOTPSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reset_token = accounts.verify_otp(
            serializer.validated_data['email'], serializer.validated_data['otp']
        )
        return Response({'success': True, 'message': 'OTP verified successfully', 'reset_token': reset_token})

    def reset_password(self, request):
        serializer = ResetPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        accounts.reset_password(
            serializer.validated_data['reset_token'], serializer.validated_data['password']
        )
        return Response({'success': True, 'message': 'Password reset successfully'})

    def change_password(self, request):
        """Change user password"""
        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        accounts.change_password(
            request.user,
            serializer.validated_data['old_password'],
            serializer.validated_data['new_password'],
        )
        return Response({'success': True, 'message': 'Password updated successfully'})


# ==============================================================================
# PRODUCT VIEWSETS
# ==============================================================================

class ProductViewSet(ActorViewSetMixin, viewsets.ModelViewSet):
    """ViewSet for Product model"""
    queryset = Product.objects.select_related('seller').prefetch_related('images')
    serializer_class = ProductSerializer
    lookup_value_regex = r'\d+'
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['category', 'seller']
    search_fields = ['name', 'description', 'tagline']
    ordering_fields = ['created_at', 'price', 'views', 'average_rating']

    def get_permissions(self):
        """Sellers create, owners update/delete, everyone reads"""
        if self.action in ['list', 'retrieve', 'seller_products']:
            return [permissions.AllowAny()]
        if self.action in ['new', 'create', 'update', 'partial_update', 'destroy', 'my_products']:
            return [permissions.IsAuthenticated(), IsSellerUser(), IsOwner()]
        return [permissions.IsAuthenticated()]

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        return self.paginated_response(queryset, 'products')

    def retrieve(self, request, *args, **kwargs):
        """Get a product; counts the view and the viewer's category interest"""
        product = self.get_object()
        product.increment_views()
        track_product_view(request.user, product)
        return Response({'success': True, 'product': self.get_serializer(product).data})

    def perform_create(self, serializer):
        """Set seller as current user"""
        serializer.save(seller=self.request.user)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        logger.info(f"Product {serializer.instance.pk} created by seller {request.user.pk}")
        return Response({'success': True, 'product': serializer.data}, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='new')
    def new(self, request):
        return self.create(request)

    def update(self, request, *args, **kwargs):
        product = self.get_object()
        serializer = self.get_serializer(product, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response({'success': True, 'product': serializer.data})

    def destroy(self, request, *args, **kwargs):
        product = self.get_object()
        product_id = product.pk
        product.delete()
        logger.info(f"Product {product_id} deleted by seller {request.user.pk}")
        return Response({'success': True, 'message': 'Product deleted successfully'})

    @action(detail=False, methods=['get'], url_path='myproducts')
    def my_products(self, request):
        queryset = self.get_queryset().filter(seller=request.user)
        return Response({'success': True, 'products': self.get_serializer(queryset, many=True).data})

    @action(detail=False, methods=['get'], url_path=r'seller/(?P<seller_id>\d+)')
    def seller_products(self, request, seller_id=None):
        queryset = self.get_queryset().filter(seller_id=seller_id)
        return Response({'success': True, 'products': self.get_serializer(queryset, many=True).data})

    @action(detail=False, methods=['get'], url_path='recommendations')
    def recommendations(self, request):
        try:
            limit = int(request.query_params.get('limit', 0)) or None
        except ValueError:
            limit = None
        products = recommend_products(self.actor.user_id, limit=limit)
        return Response({'success': True, 'products': self.get_serializer(products, many=True).data})


# ==============================================================================
# ORDER & INVOICE VIEWSETS
# ==============================================================================

class OrderViewSet(MarketplaceViewSet):
    """Order placement, listings, status updates and cancellation"""
    serializer_class = OrderSerializer
    lookup_value_regex = r'\d+'

    def create(self, request):
        serializer = PlaceOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = orders.place_order(self.actor, **serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Order placed successfully',
            'order': OrderSerializer(orders.get_order(result.order.pk)).data,
            'side_effects': side_effects_payload(result),
        }, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'], url_path='myorders')
    def my_orders(self, request):
        return self.paginated_response(orders.buyer_orders(self.actor), 'orders')

    @action(detail=False, methods=['get'], url_path='seller')
    def seller(self, request):
        sort_by = request.query_params.get('sortBy', 'dateDesc')
        return self.paginated_response(orders.seller_orders(self.actor, sort_by), 'orders')

    def retrieve(self, request, pk=None):
        order = orders.get_visible_order(self.actor, pk)
        return Response({'success': True, 'order': OrderSerializer(order).data})

    @action(detail=True, methods=['put'], url_path='status')
    def update_status(self, request, pk=None):
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = orders.get_order(pk)
        result = orders.update_order_status(self.actor, order, **serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Order status updated',
            'order': OrderSerializer(orders.get_order(order.pk)).data,
            'side_effects': side_effects_payload(result),
        })

    def destroy(self, request, pk=None):
        order = orders.get_order(pk)
        result = orders.cancel_order(self.actor, order)
        return Response({
            'success': True,
            'message': 'Order cancelled successfully',
            'order': OrderSerializer(orders.get_order(order.pk)).data,
            'side_effects': side_effects_payload(result),
        })


class InvoiceViewSet(MarketplaceViewSet):
    """Invoice lookup, download, forced generation and cancellation"""
    serializer_class = InvoiceSerializer

    def by_order(self, request, order_id=None):
        invoice = invoices.invoice_for_order(self.actor, order_id)
        return Response({'success': True, 'invoice': InvoiceSerializer(invoice).data})

    def download(self, request, invoice_number=None):
        invoice, path = invoices.downloadable_invoice(self.actor, invoice_number)
        return FileResponse(
            open(path, 'rb'),
            as_attachment=True,
            filename=f'invoice_{invoice.invoice_number}.pdf',
            content_type='application/pdf',
        )

    def generate(self, request, order_id=None):
        invoice = invoices.generate_for_order(self.actor, order_id)
        return Response({
            'success': True,
            'message': 'Invoice generated successfully',
            'invoice': InvoiceSerializer(invoice).data,
        })

    def cancel(self, request, order_id=None):
        invoice = invoices.cancel_for_order(self.actor, order_id)
        return Response({
            'success': True,
            'message': 'Invoice cancelled successfully',
            'invoice': InvoiceSerializer(invoice).data,
        })


# ==============================================================================
# CHAT & NOTIFICATION VIEWSETS
# ==============================================================================

class ChatViewSet(MarketplaceViewSet):
    """Chat list, creation, history and deactivation"""
    serializer_class = ChatSerializer
    lookup_value_regex = r'\d+'

    def list(self, request):
        chats = chat_service.list_chats(self.actor)
        return Response({'success': True, 'chats': ChatSerializer(chats, many=True).data})

    def create(self, request):
        chat, created = chat_service.get_or_create_chat(self.actor, request.data.get('participant_id'))
        return Response(
            {'success': True, 'chat': ChatSerializer(chat).data},
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )

    @action(detail=True, methods=['get'], url_path='messages')
    def messages(self, request, pk=None):
        chat, messages = chat_service.chat_messages(self.actor, pk)
        messages = messages.prefetch_related('receipts')
        return Response({
            'success': True,
            'chat': ChatSerializer(chat).data,
            'messages': ChatMessageSerializer(messages, many=True).data,
        })

    def destroy(self, request, pk=None):
        chat_service.deactivate_chat(self.actor, pk)
        return Response({'success': True, 'message': 'Chat deactivated successfully'})


class NotificationViewSet(MarketplaceViewSet):
    """ViewSet for Notification model"""
    serializer_class = NotificationSerializer
    lookup_value_regex = r'\d+'
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['is_read', 'notification_type']

    def get_queryset(self):
        """Users can only see their own notifications"""
        return Notification.objects.filter(user=self.request.user).order_by('-created_at', '-id')

    def list(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        return self.paginated_response(
            queryset, 'notifications', unread_count=notifications.unread_count(self.actor)
        )

    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        return Response({'success': True, 'unread_count': notifications.unread_count(self.actor)})

    @action(detail=True, methods=['put'], url_path='read')
    def mark_read(self, request, pk=None):
        """Mark single notification as read"""
        notification = notifications.mark_read(self.actor, pk)
        return Response({'success': True, 'notification': NotificationSerializer(notification).data})

    @action(detail=False, methods=['put'], url_path='read-all')
    def mark_all_read(self, request):
        """Mark all notifications as read"""
        updated = notifications.mark_all_read(self.actor)
        return Response({'success': True, 'message': 'All notifications marked as read', 'marked_read': updated})

    def destroy(self, request, pk=None):
        notifications.delete_notification(self.actor, pk)
        return Response({'success': True, 'message': 'Notification deleted'})


# ==============================================================================
# REVIEW, REPORT & INQUIRY VIEWSETS
# ==============================================================================

class ReviewViewSet(MarketplaceViewSet):
    """Product reviews with like/dislike toggles"""
    serializer_class = ReviewSerializer

    def get_permissions(self):
        if self.action == 'for_product':
            return [permissions.AllowAny()]
        return [permissions.IsAuthenticated()]

    def for_product(self, request, pk=None):
        product_reviews, summary = reviews.product_reviews(pk)
        return Response({
            'success': True,
            'reviews': ReviewSerializer(product_reviews, many=True).data,
            **summary,
        })

    def create(self, request):
        review = reviews.create_review(
            self.actor,
            request.data.get('product_id'),
            request.data.get('rating'),
            request.data.get('comment'),
        )
        return Response({'success': True, 'review': ReviewSerializer(review).data}, status=status.HTTP_201_CREATED)

    def like(self, request, pk=None):
        review = reviews.get_review(pk)
        liked = review.toggle_like(request.user)
        return Response({'success': True, 'liked': liked, 'review': ReviewSerializer(review).data})

    def dislike(self, request, pk=None):
        review = reviews.get_review(pk)
        disliked = review.toggle_dislike(request.user)
        return Response({'success': True, 'disliked': disliked, 'review': ReviewSerializer(review).data})

    def destroy(self, request, pk=None):
        reviews.delete_review(self.actor, pk)
        return Response({'success': True, 'message': 'Review deleted successfully'})


class ReportViewSet(MarketplaceViewSet):
    serializer_class = ReportSerializer

    def get_permissions(self):
        if self.action == 'create':
            return [permissions.IsAuthenticated()]
        return [permissions.IsAuthenticated(), IsAdminRole()]

    def create(self, request):
        report = moderation.create_report(self.actor, request.data.get('product_id'), request.data.get('note'))
        return Response({
            'success': True,
            'message': 'Report submitted successfully',
            'report': ReportSerializer(report).data,
        }, status=status.HTTP_201_CREATED)

    def list(self, request):
        queryset = Report.objects.select_related('product', 'reporter').order_by('-created_at')
        return self.paginated_response(queryset, 'reports')

    def destroy(self, request, pk=None):
        deleted, _ = Report.objects.filter(pk=pk).delete()
        if not deleted:
            raise NotFoundError('Report not found')
        return Response({'success': True, 'message': 'Report deleted successfully'})


class InquiryViewSet(MarketplaceViewSet):
    serializer_class = InquirySerializer
    permission_classes = [permissions.AllowAny]

    def create(self, request):
        serializer = InquirySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        inquiry = serializer.save()
        logger.info(f"Inquiry {inquiry.pk} received from {inquiry.email}")
        return Response({
            'success': True,
            'message': 'Inquiry submitted successfully. We will get back to you soon.',
            'inquiry_id': inquiry.pk,
        }, status=status.HTTP_201_CREATED)


# ==============================================================================
# ADMIN VIEWSETS
# ==============================================================================

class AdminViewSet(MarketplaceViewSet):
    """Moderation endpoints, admins only"""
    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]

    def register(self, request):
        serializer = AdminRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        admin = serializer.save()
        logger.info(f"Admin {admin.pk} created by {self.actor.user_id}")
        return Response(
            {'success': True, 'message': 'Admin created successfully', 'admin_id': admin.pk},
            status=status.HTTP_201_CREATED
        )

    def users(self, request):
        queryset = User.objects.order_by('-date_joined')
        return self.paginated_response(queryset, 'users', serializer_class=UserSerializer)

    def products(self, request):
        queryset = Product.objects.select_related('seller').prefetch_related('images')
        return self.paginated_response(queryset, 'products', serializer_class=ProductSerializer)

    def delete_user(self, request, pk=None):
        if str(pk) == str(self.actor.user_id):
            raise InvalidOperation('You cannot delete your own account')
        deleted, _ = User.objects.filter(pk=pk).delete()
        if not deleted:
            raise NotFoundError('User not found')
        logger.info(f"User {pk} deleted by admin {self.actor.user_id}")
        return Response({'success': True, 'message': 'User deleted successfully'})

    def delete_product(self, request, pk=None):
        deleted, _ = Product.objects.filter(pk=pk).delete()
        if not deleted:
            raise NotFoundError('Product not found')
        logger.info(f"Product {pk} deleted by admin {self.actor.user_id}")
        return Response({'success': True, 'message': 'Product deleted successfully'})

    def inquiries(self, request):
        queryset = Inquiry.objects.order_by('-created_at')
        return self.paginated_response(queryset, 'inquiries', serializer_class=InquirySerializer)

    def inquiry(self, request, pk=None):
        inquiry = moderation.get_inquiry(pk)
        return Response({'success': True, 'inquiry': InquirySerializer(inquiry).data})

    def update_inquiry(self, request, pk=None):
        inquiry = moderation.get_inquiry(pk)
        serializer = InquiryUpdateSerializer(inquiry, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        inquiry = moderation.update_inquiry(inquiry, serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Inquiry updated successfully',
            'inquiry': InquirySerializer(inquiry).data,
        })

    def delete_inquiry(self, request, pk=None):
        moderation.get_inquiry(pk).delete()
        return Response({'success': True, 'message': 'Inquiry deleted successfully'})

    def reports(self, request):
        queryset = Report.objects.select_related('product', 'reporter').order_by('-created_at')
        return self.paginated_response(queryset, 'reports', serializer_class=ReportSerializer)

    def product_trends(self, request):
        return Response({'success': True, 'data': moderation.product_trends()})
