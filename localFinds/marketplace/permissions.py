"""
Custom DRF permissions for role-gated routes.
"""
from rest_framework import permissions


class HasRole(permissions.BasePermission):
    """
    Allow authenticated users whose role is in `roles`.
    Subclasses set `roles` and `message`.
    """
    roles = ()
    message = 'Access denied'

    def has_permission(self, request, view):
        return (
            request.user.is_authenticated and
            request.user.role in self.roles
        )


class IsSellerUser(HasRole):
    """
    Permission to only allow sellers.
    """
    roles = ('seller',)
    message = 'Access denied. Sellers only.'


class IsAdminRole(HasRole):
    """
    Permission to only allow marketplace admins.
    """
    roles = ('admin',)
    message = 'Access denied. Admins only.'


class IsOwner(permissions.BasePermission):
    """
    Object-level permission to only allow owners of an object.
    Assumes the model instance has a `seller` or `user` attribute.
    """
    message = 'User not authorized'

    def has_object_permission(self, request, view, obj):
        if hasattr(obj, 'seller_id'):
            return obj.seller_id == request.user.pk
        if hasattr(obj, 'user_id'):
            return obj.user_id == request.user.pk
        return False
