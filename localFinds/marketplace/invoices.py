"""
Invoice workflow: idempotent generation, cancellation and access checks.

An invoice is derived from its order once. The PDF is written before the
row is saved and the two writes are not coupled: a crash in between leaves
a file without a row, and a later call simply generates a new number.
"""
from decimal import Decimal
import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from .exceptions import Forbidden, InvalidOperation, NotFoundError
from .models import Invoice, Order
from .pdf import delete_invoice_pdf, invoice_pdf_path, render_invoice_pdf

logger = logging.getLogger(__name__)


def build_invoice_number(order, now=None):
    """`INV-<epoch millis>-<last 6 hex digits of the order id>`"""
    now = now or timezone.now()
    millis = int(now.timestamp() * 1000)
    suffix = f'{order.pk:06x}'[-6:]
    return f'INV-{millis}-{suffix}'


def snapshot_items(order_items):
    return [
        {
            'product': item.product_id,
            'name': item.product_name,
            'quantity': item.quantity,
            'price': str(item.price),
            'total': str(item.get_total_price()),
        }
        for item in order_items
    ]


def generate_invoice(order):
    """
    Return the invoice for `order`, creating it on first call.

    The seller printed on the invoice is the seller of the first line item;
    orders that mix sellers still get a single invoice credited to that one.
    """
    existing = Invoice.objects.filter(order=order).first()
    if existing is not None:
        return existing

    order_items = list(order.items.select_related('product__seller').order_by('id'))
    if not order_items:
        raise InvalidOperation('Order has no items')
    first_product = order_items[0].product
    if first_product is None:
        raise InvalidOperation('Cannot determine seller: first product no longer exists')
    seller = first_product.seller

    subtotal = sum((item.get_total_price() for item in order_items), Decimal('0'))
    tax = Decimal('0')
    invoice = Invoice(
        order=order,
        invoice_number=build_invoice_number(order),
        user_id=order.user_id,
        seller=seller,
        items=snapshot_items(order_items),
        subtotal=subtotal,
        tax=tax,
        total_amount=subtotal + tax,
        shipping_address=order.shipping_address,
        payment_method=order.payment_method,
        generated_at=timezone.now(),
    )

    logger.info(f"Generating PDF for invoice {invoice.invoice_number}")
    invoice.pdf_path = str(render_invoice_pdf(invoice, order, order.user, seller))

    try:
        with transaction.atomic():
            invoice.save()
    except IntegrityError:
        # Another request created the invoice for this order first
        winner = Invoice.objects.get(order=order)
        if winner.invoice_number != invoice.invoice_number:
            delete_invoice_pdf(invoice.pdf_path)
        logger.warning(f"Invoice for order {order.pk} already existed, reusing {winner.invoice_number}")
        return winner

    logger.info(f"Invoice {invoice.invoice_number} saved for order {order.pk}")
    return invoice


def cancel_invoice(invoice):
    """Soft-cancel: flag the row, stamp it, remove the PDF file."""
    if invoice.status == Invoice.STATUS_CANCELLED:
        raise InvalidOperation('Invoice is already cancelled')
    invoice.status = Invoice.STATUS_CANCELLED
    invoice.cancelled_at = timezone.now()
    invoice.save(update_fields=['status', 'cancelled_at', 'updated_at'])
    delete_invoice_pdf(invoice.pdf_path)
    logger.info(f"Invoice {invoice.invoice_number} cancelled")
    return invoice


def cancel_active_invoice(order):
    """Cancel the order's invoice if it has an active one; returns it or None."""
    invoice = Invoice.objects.filter(order=order, status=Invoice.STATUS_ACTIVE).first()
    if invoice is None:
        return None
    return cancel_invoice(invoice)


# ==============================================================================
# ACCESS
# ==============================================================================

def get_order_or_404(order_id):
    order = Order.objects.select_related('user').filter(pk=order_id).first()
    if order is None:
        raise NotFoundError('Order not found')
    return order


def invoice_for_order(actor, order_id):
    """Buyer or item seller fetches the invoice, generating it when missing."""
    order = get_order_or_404(order_id)
    if order.user_id != actor.user_id and not order.is_sold_by(actor.user_id):
        raise Forbidden('Access denied')
    return generate_invoice(order)


def generate_for_order(actor, order_id):
    """Admin or item seller forces generation (idempotent)."""
    order = get_order_or_404(order_id)
    if not actor.is_admin and not order.is_sold_by(actor.user_id):
        raise Forbidden('Access denied')
    return generate_invoice(order)


def cancel_for_order(actor, order_id):
    invoice = Invoice.objects.filter(order_id=order_id).first()
    if invoice is None:
        raise NotFoundError('Invoice not found')
    if not actor.is_admin and invoice.seller_id != actor.user_id:
        raise Forbidden('Access denied')
    return cancel_invoice(invoice)


def downloadable_invoice(actor, invoice_number):
    """Return (invoice, file path) for the invoice's buyer or seller."""
    invoice = Invoice.objects.filter(invoice_number=invoice_number).first()
    if invoice is None:
        raise NotFoundError('Invoice not found')
    if actor.user_id not in (invoice.user_id, invoice.seller_id):
        raise Forbidden('Access denied')
    path = invoice_pdf_path(invoice.invoice_number)
    if not path.exists():
        raise NotFoundError('Invoice PDF not found')
    return invoice, path
