# products/services/exceptions.py

"""
INVENTORY SERVICE ERRORS

Every error raised by the stock engines derives from InventoryServiceError,
so callers can catch the whole family at one seam.

RULES:
- InvalidArgumentError / NotFoundError are raised BEFORE any mutation
- InsufficientStockError is raised AFTER the batch scan and AFTER rollback
"""

from __future__ import annotations


class InventoryServiceError(Exception):
    pass


class InvalidArgumentError(InventoryServiceError, ValueError):
    pass


class NotFoundError(InventoryServiceError, LookupError):
    def __init__(self, kind: str, identity):
        self.kind = kind
        self.identity = identity
        super().__init__(f"{kind} not found: {identity}")


class InsufficientStockError(InventoryServiceError):
    """
    Raised when eligible batches cannot cover a request.

    requested: quantity the caller asked for
    shortfall: quantity still missing after every eligible batch was drained
    """

    def __init__(self, requested: int, shortfall: int, *, product_name: str | None = None):
        self.requested = int(requested)
        self.shortfall = int(shortfall)
        self.product_name = product_name
        label = product_name or "product"
        super().__init__(
            f"Insufficient stock for {label}. "
            f"Requested: {self.requested}, Available: {self.available}"
        )

    @property
    def available(self) -> int:
        return self.requested - self.shortfall


class BatchQuantityError(InventoryServiceError):
    """An increase/decrease that would push a batch outside 0..quantity_received."""
    pass
