from decimal import Decimal
from pathlib import Path
import re

from django.urls import reverse

from marketplace import invoices
from marketplace.exceptions import Forbidden, InvalidOperation, NotFoundError
from marketplace.factories import (
    AdminFactory, BuyerFactory, OrderFactory, OrderItemFactory, ProductFactory, SellerFactory
)
from marketplace.models import Invoice

from .base import MarketplaceTestCase


class InvoiceGenerationTestCase(MarketplaceTestCase):
    """
    Test cases for invoice generation and cancellation
    """

    def setUp(self):
        self.seller = SellerFactory()
        self.second_seller = SellerFactory()
        self.buyer = BuyerFactory()
        self.order = OrderFactory(user=self.buyer, total_amount=Decimal('35.00'))
        OrderItemFactory(
            order=self.order,
            product=ProductFactory(seller=self.seller, price=Decimal('10.00')),
            quantity=2,
        )
        OrderItemFactory(
            order=self.order,
            product=ProductFactory(seller=self.second_seller, price=Decimal('15.00')),
        )

    def test_invoice_snapshot(self):
        invoice = invoices.generate_invoice(self.order)
        self.assertRegex(invoice.invoice_number, r'^INV-\d+-[0-9a-f]{6}$')
        self.assertEqual(invoice.subtotal, Decimal('35.00'))
        self.assertEqual(invoice.tax, Decimal('0'))
        self.assertEqual(invoice.total_amount, Decimal('35.00'))
        self.assertEqual(invoice.user, self.buyer)
        self.assertEqual(len(invoice.items), 2)
        self.assertEqual(invoice.items[0]['quantity'], 2)
        self.assertEqual(invoice.items[0]['total'], '20.00')
        self.assertEqual(invoice.status, Invoice.STATUS_ACTIVE)

    def test_first_item_seller_is_credited(self):
        invoice = invoices.generate_invoice(self.order)
        self.assertEqual(invoice.seller, self.seller)

    def test_pdf_written(self):
        invoice = invoices.generate_invoice(self.order)
        path = Path(invoice.pdf_path)
        self.assertTrue(path.exists())
        self.assertEqual(path.parent, Path(self.invoices_dir))
        self.assertTrue(path.read_bytes().startswith(b'%PDF'))

    def test_generation_is_idempotent(self):
        first = invoices.generate_invoice(self.order)
        second = invoices.generate_invoice(self.order)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Invoice.objects.filter(order=self.order).count(), 1)

    def test_number_suffix_is_order_id_hex(self):
        number = invoices.build_invoice_number(self.order)
        self.assertTrue(number.endswith(f'{self.order.pk:06x}'[-6:]))
        self.assertTrue(re.match(r'^INV-\d{13}-', number))

    def test_order_without_items(self):
        empty = OrderFactory(user=self.buyer)
        with self.assertRaisesMessage(InvalidOperation, 'Order has no items'):
            invoices.generate_invoice(empty)

    def test_first_product_deleted(self):
        self.order.items.order_by('id').first().product.delete()
        with self.assertRaises(InvalidOperation):
            invoices.generate_invoice(self.order)

    def test_cancel_removes_pdf(self):
        invoice = invoices.generate_invoice(self.order)
        invoices.cancel_invoice(invoice)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_CANCELLED)
        self.assertIsNotNone(invoice.cancelled_at)
        self.assertFalse(Path(invoice.pdf_path).exists())

    def test_cancel_twice(self):
        invoice = invoices.generate_invoice(self.order)
        invoices.cancel_invoice(invoice)
        with self.assertRaisesMessage(InvalidOperation, 'Invoice is already cancelled'):
            invoices.cancel_invoice(invoice)

    def test_cancel_active_invoice_without_invoice(self):
        self.assertIsNone(invoices.cancel_active_invoice(self.order))


class InvoiceAccessTestCase(MarketplaceTestCase):
    """
    Test cases for invoice endpoints and access rules
    """

    def setUp(self):
        self.seller = SellerFactory()
        self.buyer = BuyerFactory()
        self.stranger = BuyerFactory()
        self.admin = AdminFactory()
        self.order = OrderFactory(user=self.buyer, total_amount=Decimal('12.00'))
        OrderItemFactory(order=self.order, product=ProductFactory(seller=self.seller, price=Decimal('12.00')))

    def test_buyer_fetch_generates_missing_invoice(self):
        self.login(self.buyer)
        response = self.client.get(reverse('invoice-by-order', args=[self.order.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertTrue(Invoice.objects.filter(order=self.order).exists())
        self.assertEqual(response.data['invoice']['invoice_number'], self.order.invoice.invoice_number)

    def test_stranger_cannot_fetch(self):
        with self.assertRaises(Forbidden):
            invoices.invoice_for_order(self.actor(self.stranger), self.order.pk)

    def test_generate_requires_admin_or_seller(self):
        with self.assertRaises(Forbidden):
            invoices.generate_for_order(self.actor(self.buyer), self.order.pk)
        invoice = invoices.generate_for_order(self.actor(self.admin), self.order.pk)
        self.assertEqual(invoice.order, self.order)

    def test_generate_endpoint_unknown_order(self):
        self.login(self.admin)
        response = self.client.post(reverse('invoice-generate', args=[999999]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['message'], 'Order not found')

    def test_download(self):
        invoice = invoices.generate_invoice(self.order)
        self.login(self.buyer)
        response = self.client.get(reverse('invoice-download', args=[invoice.invoice_number]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertIn(f'invoice_{invoice.invoice_number}.pdf', response['Content-Disposition'])
        self.assertTrue(b''.join(response.streaming_content).startswith(b'%PDF'))

    def test_download_forbidden_for_stranger(self):
        invoice = invoices.generate_invoice(self.order)
        self.login(self.stranger)
        response = self.client.get(reverse('invoice-download', args=[invoice.invoice_number]))
        self.assertEqual(response.status_code, 403)

    def test_download_missing_file(self):
        invoice = invoices.generate_invoice(self.order)
        Path(invoice.pdf_path).unlink()
        with self.assertRaisesMessage(NotFoundError, 'Invoice PDF not found'):
            invoices.downloadable_invoice(self.actor(self.buyer), invoice.invoice_number)

    def test_cancel_endpoint(self):
        invoices.generate_invoice(self.order)
        self.login(self.seller)
        response = self.client.put(reverse('invoice-cancel', args=[self.order.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['invoice']['status'], 'cancelled')

    def test_cancel_by_buyer_forbidden(self):
        invoices.generate_invoice(self.order)
        with self.assertRaises(Forbidden):
            invoices.cancel_for_order(self.actor(self.buyer), self.order.pk)
