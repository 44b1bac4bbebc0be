"""
PATH: products/models/__init__.py

Products models export surface.
"""

from .product import Product
from .stock_batch import StockBatch
from .stock_movement import StockMovement

__all__ = [
    "Product",
    "StockBatch",
    "StockMovement",
]
