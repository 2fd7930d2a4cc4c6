"""
Order workflow: placement, status changes and buyer cancellation.

The order row, its items and its tracking entry are written together.
Invoice generation, invoice cancellation and buyer notifications run
afterwards as side effects; their outcomes are returned, never raised.
"""
from dataclasses import dataclass, field
from decimal import Decimal
import logging

from django.db import transaction
from django.utils import timezone

from .context import run_side_effect
from .exceptions import Forbidden, InvalidOperation, NotFoundError
from .invoices import cancel_active_invoice, generate_invoice
from .models import CategoryInterest, Notification, Order, OrderItem, Product
from .notifications import notify

logger = logging.getLogger(__name__)

ORDER_STATUSES = [choice for choice, _ in Order.STATUS_CHOICES]
INVOICE_STATUSES = {Order.STATUS_CONFIRMED, Order.STATUS_SHIPPED, Order.STATUS_DELIVERED}

SELLER_SORT_OPTIONS = {
    'dateDesc': ['-created_at'],
    'dateAsc': ['created_at'],
    'statusAsc': ['status', '-created_at'],
    'statusDesc': ['-status', '-created_at'],
    'totalAsc': ['total_amount', '-created_at'],
    'totalDesc': ['-total_amount', '-created_at'],
}


@dataclass
class OrderResult:
    order: Order
    side_effects: list = field(default_factory=list)

    @property
    def failed_side_effects(self):
        return [outcome for outcome in self.side_effects if not outcome.ok]


def _parse_quantity(raw):
    try:
        quantity = int(raw)
    except (TypeError, ValueError):
        raise InvalidOperation('Quantity must be a whole number')
    if quantity < 1:
        raise InvalidOperation('Quantity must be at least 1')
    return quantity


def place_order(actor, items, shipping_address, payment_method='cash_on_delivery', order_notes=''):
    """
    Create a pending order for `actor` from `items`.

    `items` is a list of {'product': id, 'quantity': n}. Prices are taken
    from the products as they are now and summed once into total_amount.
    """
    if actor.is_seller:
        raise Forbidden("Sellers cannot place orders. Please sign in as a buyer to purchase products.")
    if not items:
        raise InvalidOperation('No items in the order')
    if not shipping_address or not str(shipping_address).strip():
        raise InvalidOperation('Shipping address is required')

    lines = []
    for item in items:
        product_id = item.get('product')
        product = Product.objects.filter(pk=product_id).first() if product_id else None
        if product is None:
            raise NotFoundError(f'Product {product_id} not found')
        if product.seller_id == actor.user_id:
            raise InvalidOperation('Cannot order your own product')
        lines.append((product, _parse_quantity(item.get('quantity', 1))))

    total = sum((product.price * quantity for product, quantity in lines), Decimal('0'))

    with transaction.atomic():
        order = Order.objects.create(
            user_id=actor.user_id,
            total_amount=total,
            shipping_address=shipping_address,
            payment_method=payment_method or 'cash_on_delivery',
            order_notes=order_notes or '',
        )
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product=product,
                product_name=product.name,
                quantity=quantity,
                price=product.price,
            )
            for product, quantity in lines
        ])
        order.add_tracking_event(Order.STATUS_PENDING, 'Order placed successfully')

    logger.info(f"Order {order.pk} placed by user {actor.user_id} for {total}")

    for product, quantity in lines:
        CategoryInterest.bump(actor.user_id, product.category, CategoryInterest.KIND_PURCHASED, quantity)

    result = OrderResult(order=order)
    result.side_effects.append(run_side_effect('invoice', generate_invoice, order))
    for outcome in result.failed_side_effects:
        logger.error(f"Order {order.pk} placed without {outcome.name}: {outcome.reason}")
    return result


def update_order_status(actor, order, status, tracking_number=None, carrier=None,
                        estimated_delivery=None, note=None):
    """
    Move `order` to `status` on behalf of an admin or a seller of one of its items.

    Any of the five statuses is accepted from any other; there is no
    transition table. Entering confirmed/shipped/delivered creates the
    invoice if missing, entering cancelled cancels the active invoice.
    """
    if status not in ORDER_STATUSES:
        raise InvalidOperation('Invalid status')
    if not actor.is_admin and not order.is_sold_by(actor.user_id):
        raise Forbidden('Access denied')

    previous_status = order.status
    if tracking_number:
        order.tracking_number = tracking_number
    if carrier:
        order.carrier = carrier
    if estimated_delivery:
        order.estimated_delivery = estimated_delivery

    order.status = status
    if status == Order.STATUS_DELIVERED:
        order.delivered_at = timezone.now()

    with transaction.atomic():
        order.add_tracking_event(status, note or f'Order status updated to {status}')
        order.save()

    logger.info(f"Order {order.pk} moved {previous_status} -> {status} by user {actor.user_id}")

    result = OrderResult(order=order)
    if status != previous_status:
        if status in INVOICE_STATUSES:
            result.side_effects.append(run_side_effect('invoice', generate_invoice, order))
        elif status == Order.STATUS_CANCELLED:
            result.side_effects.append(run_side_effect('invoice_cancellation', cancel_active_invoice, order))

    result.side_effects.append(notify(
        order.user_id,
        Notification.TYPE_ORDER_UPDATE,
        f'Order #{order.pk} {status}',
        note or f'Your order status was updated to {status}',
        {'order_id': order.pk, 'status': status},
    ))

    for outcome in result.failed_side_effects:
        logger.error(f"Order {order.pk} status update without {outcome.name}: {outcome.reason}")
    return result


def cancel_order(actor, order):
    """Buyer cancels their own order while it is still pending."""
    if order.user_id != actor.user_id:
        raise Forbidden('Access denied')
    if order.status != Order.STATUS_PENDING:
        raise InvalidOperation('Cannot cancel order that is not pending')

    result = OrderResult(order=order)
    result.side_effects.append(run_side_effect('invoice_cancellation', cancel_active_invoice, order))

    order.status = Order.STATUS_CANCELLED
    with transaction.atomic():
        order.add_tracking_event(Order.STATUS_CANCELLED, 'Order cancelled by buyer')
        order.save(update_fields=['status', 'updated_at'])

    logger.info(f"Order {order.pk} cancelled by buyer {actor.user_id}")
    for outcome in result.failed_side_effects:
        logger.error(f"Order {order.pk} cancelled without {outcome.name}: {outcome.reason}")
    return result


# ==============================================================================
# QUERIES
# ==============================================================================

def order_queryset():
    return Order.objects.select_related('user').prefetch_related('items__product__images', 'tracking_history')


def get_order(order_id):
    order = order_queryset().filter(pk=order_id).first()
    if order is None:
        raise NotFoundError('Order not found')
    return order


def get_visible_order(actor, order_id):
    """The buyer, a seller of an item or an admin may read an order."""
    order = get_order(order_id)
    if order.user_id == actor.user_id or actor.is_admin or order.is_sold_by(actor.user_id):
        return order
    raise Forbidden('Access denied')


def buyer_orders(actor):
    return order_queryset().filter(user_id=actor.user_id).order_by('-created_at')


def seller_orders(actor, sort_by='dateDesc'):
    if not actor.is_seller:
        raise Forbidden('Access denied. Sellers only.')
    ordering = SELLER_SORT_OPTIONS.get(sort_by, SELLER_SORT_OPTIONS['dateDesc'])
    return (
        order_queryset()
        .filter(items__product__seller_id=actor.user_id)
        .distinct()
        .order_by(*ordering)
    )
