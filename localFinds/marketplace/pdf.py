"""
Invoice PDF rendering with reportlab.

Files live in settings.INVOICES_DIR as `invoice_<number>.pdf`.
"""
from decimal import Decimal
from pathlib import Path
import logging

from django.conf import settings
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

MARGIN = 50
LINE_HEIGHT = 16
ITEM_X, QTY_X, PRICE_X, TOTAL_X = 50, 300, 400, 500


def invoices_dir():
    path = Path(settings.INVOICES_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def invoice_pdf_path(invoice_number):
    return invoices_dir() / f'invoice_{invoice_number}.pdf'


def format_money(value):
    return f"${Decimal(str(value)):.2f}"


def format_payment_method(method):
    return (method or '').replace('_', ' ').upper()


class InvoiceCanvas:
    """Top-down text cursor over a reportlab canvas."""

    def __init__(self, path):
        self.pdf = canvas.Canvas(str(path), pagesize=A4)
        self.width, self.height = A4
        self.y = self.height - MARGIN

    def line(self, text, size=12, bold=False, align='left', x=MARGIN):
        self.pdf.setFont('Helvetica-Bold' if bold else 'Helvetica', size)
        if align == 'center':
            self.pdf.drawCentredString(self.width / 2, self.y, text)
        elif align == 'right':
            self.pdf.drawRightString(self.width - MARGIN, self.y, text)
        else:
            self.pdf.drawString(x, self.y, text)
        self.y -= size + 4

    def heading(self, text):
        self.line(text, size=14, bold=True)
        self.pdf.line(MARGIN, self.y + 14, MARGIN + self.pdf.stringWidth(text, 'Helvetica-Bold', 14), self.y + 14)

    def gap(self, amount=LINE_HEIGHT):
        self.y -= amount

    def row(self, cells, size=10, bold=False):
        self.pdf.setFont('Helvetica-Bold' if bold else 'Helvetica', size)
        for x, text in cells:
            self.pdf.drawString(x, self.y, text)
        self.y -= LINE_HEIGHT + 4

    def rule(self):
        self.pdf.line(MARGIN, self.y + 10, self.width - MARGIN, self.y + 10)

    def ensure_room(self, needed=LINE_HEIGHT * 3):
        if self.y < MARGIN + needed:
            self.pdf.showPage()
            self.y = self.height - MARGIN

    def save(self):
        self.pdf.showPage()
        self.pdf.save()


def render_invoice_pdf(invoice, order, customer, seller):
    """
    Render `invoice` to its PDF file and return the path.

    `customer` and `seller` are the users printed in the Bill To and From
    blocks; `order` supplies the order reference.
    """
    path = invoice_pdf_path(invoice.invoice_number)
    doc = InvoiceCanvas(path)

    doc.line('INVOICE', size=24, bold=True, align='center')
    doc.gap()
    doc.line(f'Invoice Number: {invoice.invoice_number}', align='right')
    doc.line(f'Date: {invoice.generated_at:%Y-%m-%d}', align='right')
    doc.gap()

    doc.heading('From:')
    doc.line(f'Seller: {seller.get_full_name() if seller else "Unknown seller"}')
    doc.line(f'Email: {seller.email if seller else "-"}')
    doc.gap()

    doc.heading('Bill To:')
    doc.line(f'Customer: {customer.get_full_name()}')
    doc.line(f'Email: {customer.email}')
    doc.line(f'Shipping Address: {invoice.shipping_address}')
    doc.gap()

    doc.heading('Order Details:')
    doc.line(f'Order ID: {order.pk}')
    doc.line(f'Payment Method: {format_payment_method(invoice.payment_method)}')
    doc.gap()

    doc.row([(ITEM_X, 'Item'), (QTY_X, 'Qty'), (PRICE_X, 'Price'), (TOTAL_X, 'Total')], size=12, bold=True)
    doc.rule()
    for item in invoice.items:
        doc.ensure_room()
        doc.row([
            (ITEM_X, str(item['name'])[:45]),
            (QTY_X, str(item['quantity'])),
            (PRICE_X, format_money(item['price'])),
            (TOTAL_X, format_money(item['total'])),
        ])

    doc.gap(10)
    doc.ensure_room(LINE_HEIGHT * 6)
    doc.line(f'Subtotal: {format_money(invoice.subtotal)}', bold=True, x=PRICE_X)
    if Decimal(str(invoice.tax)) > 0:
        doc.line(f'Tax: {format_money(invoice.tax)}', bold=True, x=PRICE_X)
    doc.line(f'Total: {format_money(invoice.total_amount)}', bold=True, x=PRICE_X)

    doc.y = MARGIN + 40
    doc.line('Thank you for your business!', size=10, align='center')
    doc.line('LocalFinds - Connecting Local Buyers and Sellers', size=10, align='center')
    doc.save()

    logger.info(f"Invoice PDF written to {path}")
    return path


def delete_invoice_pdf(path):
    """Remove an invoice PDF; returns True if a file was deleted."""
    if not path:
        return False
    file_path = Path(path)
    if not file_path.exists():
        return False
    file_path.unlink()
    logger.info(f"Invoice PDF deleted: {file_path}")
    return True
