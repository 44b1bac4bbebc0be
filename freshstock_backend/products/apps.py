# products/apps.py

"""
PRODUCTS APP CONFIG

Perishable inventory module:
- Product catalog (lifecycle status, never deleted)
- StockBatch (lot + expiry, FEFO-ordered)
- StockMovement (append-only withdrawal ledger)
- FEFO allocation + audit recommendation engines (products.services)
"""

from django.apps import AppConfig


class ProductsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "products"
    verbose_name = "Products & Perishable Stock"
