"""
Products services.

Engines:
- stock_fefo: allocate / withdraw_stock / consume_for_sale
- stock_audit: recommend_audits / mark_checked
- stock_intake: receive_batch
- inventory: expiry report, disposal, summaries

Only the error family is re-exported here; importing the engines from the
package root would drag the stores in before products.domain finishes
loading.
"""

from .exceptions import (
    BatchQuantityError,
    InsufficientStockError,
    InvalidArgumentError,
    InventoryServiceError,
    NotFoundError,
)

__all__ = [
    "BatchQuantityError",
    "InsufficientStockError",
    "InvalidArgumentError",
    "InventoryServiceError",
    "NotFoundError",
]
