"""
Shared test scaffolding: API client helpers and a throwaway invoice directory.
"""
import shutil
import tempfile

from django.test import override_settings
from rest_framework.test import APITestCase

from marketplace.context import Actor


class MarketplaceTestCase(APITestCase):
    """APITestCase whose invoice PDFs are written to a temporary directory"""

    @classmethod
    def setUpClass(cls):
        cls.invoices_dir = tempfile.mkdtemp(prefix='invoices-')
        cls._invoice_settings = override_settings(INVOICES_DIR=cls.invoices_dir)
        cls._invoice_settings.enable()
        super().setUpClass()

    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        cls._invoice_settings.disable()
        shutil.rmtree(cls.invoices_dir, ignore_errors=True)

    def login(self, user):
        self.client.force_authenticate(user=user)

    def logout(self):
        self.client.force_authenticate(user=None)

    @staticmethod
    def actor(user):
        return Actor.from_user(user)
