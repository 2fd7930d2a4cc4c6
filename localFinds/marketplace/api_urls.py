"""
API URL configuration for REST API endpoints.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView
from drf_yasg.views import get_schema_view
from drf_yasg import openapi
from rest_framework import permissions

from .api_views import (
    UserViewSet, ProductViewSet, OrderViewSet, InvoiceViewSet, ChatViewSet,
    NotificationViewSet, ReviewViewSet, ReportViewSet, InquiryViewSet, AdminViewSet
)

# API documentation schema
schema_view = get_schema_view(
    openapi.Info(
        title="LocalFinds Marketplace API",
        default_version='v1',
        description="""
        REST API for the LocalFinds local marketplace

        ## Features
        - JWT Authentication
        - Buyer, seller and admin accounts
        - Product listings with discounts and recommendations
        - Orders with tracking history and PDF invoices
        - Real-time chat and notifications (websocket at `/ws/chat/`)
        - Reviews, reports and inquiries

        ## Authentication
        Obtain tokens via `/api/user/login/`.
        Include token in header: `Authorization: Bearer <token>`
        """,
        contact=openapi.Contact(email="support@localfinds.example"),
        license=openapi.License(name="MIT License"),
    ),
    public=True,
    permission_classes=[permissions.AllowAny],
)

# Create router and register viewsets
router = DefaultRouter()
router.register(r'products', ProductViewSet, basename='product')
router.register(r'orders', OrderViewSet, basename='order')
router.register(r'chats', ChatViewSet, basename='chat')
router.register(r'notifications', NotificationViewSet, basename='notification')
router.register(r'reports', ReportViewSet, basename='report')
router.register(r'inquiries', InquiryViewSet, basename='inquiry')

# URL patterns
urlpatterns = [
    # API Documentation
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
    path('swagger.json', schema_view.without_ui(cache_timeout=0), name='schema-json'),

    # Accounts
    path('user/', include([
        path('register/', UserViewSet.as_view({'post': 'register'}), name='user-register'),
        path('login/', UserViewSet.as_view({'post': 'login'}), name='user-login'),
        path('token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
        path('account/', UserViewSet.as_view({'get': 'account', 'put': 'update_account'}), name='user-account'),
        path('wishlist/', UserViewSet.as_view({'get': 'wishlist', 'post': 'add_wishlist'}), name='user-wishlist'),
        path('wishlist/<int:product_id>/', UserViewSet.as_view({'delete': 'remove_wishlist'}),
             name='user-wishlist-remove'),
        path('forgot-password/', UserViewSet.as_view({'post': 'forgot_password'}), name='user-forgot-password'),
        path('verify-otp/', UserViewSet.as_view({'post': 'verify_otp'}), name='user-verify-otp'),
        path('reset-password/', UserViewSet.as_view({'post': 'reset_password'}), name='user-reset-password'),
        path('change-password/', UserViewSet.as_view({'put': 'change_password'}), name='user-change-password'),
    ])),

    # Invoices
    path('invoices/', include([
        path('order/<int:order_id>/', InvoiceViewSet.as_view({'get': 'by_order'}), name='invoice-by-order'),
        path('download/<str:invoice_number>/', InvoiceViewSet.as_view({'get': 'download'}),
             name='invoice-download'),
        path('generate/<int:order_id>/', InvoiceViewSet.as_view({'post': 'generate'}), name='invoice-generate'),
        path('cancel/<int:order_id>/', InvoiceViewSet.as_view({'put': 'cancel'}), name='invoice-cancel'),
    ])),

    # Reviews
    path('reviews/', include([
        path('', ReviewViewSet.as_view({'post': 'create'}), name='review-create'),
        path('<int:pk>/', ReviewViewSet.as_view({'get': 'for_product', 'delete': 'destroy'}), name='review-detail'),
        path('<int:pk>/like/', ReviewViewSet.as_view({'put': 'like'}), name='review-like'),
        path('<int:pk>/dislike/', ReviewViewSet.as_view({'put': 'dislike'}), name='review-dislike'),
    ])),

    # Admin
    path('admin/', include([
        path('register/', AdminViewSet.as_view({'post': 'register'}), name='admin-register'),
        path('users/', AdminViewSet.as_view({'get': 'users'}), name='admin-users'),
        path('products/', AdminViewSet.as_view({'get': 'products'}), name='admin-products'),
        path('user/<int:pk>/', AdminViewSet.as_view({'delete': 'delete_user'}), name='admin-user-delete'),
        path('product/<int:pk>/', AdminViewSet.as_view({'delete': 'delete_product'}), name='admin-product-delete'),
        path('inquiries/', AdminViewSet.as_view({'get': 'inquiries'}), name='admin-inquiries'),
        path('inquiry/<int:pk>/', AdminViewSet.as_view({
            'get': 'inquiry', 'put': 'update_inquiry', 'delete': 'delete_inquiry'
        }), name='admin-inquiry'),
        path('reports/', AdminViewSet.as_view({'get': 'reports'}), name='admin-reports'),
        path('product-trends/', AdminViewSet.as_view({'get': 'product_trends'}), name='admin-product-trends'),
    ])),

    # Router URLs
    path('', include(router.urls)),
]
