"""
Inventory stores.

Engines talk to a UnitOfWork (see base.py); two implementations ship:
- orm.DjangoUnitOfWork: Django ORM, transaction.atomic + select_for_update
- memory.InMemoryUnitOfWork: process-local dicts, per-product locks,
  compensating rollback
"""

from .base import BatchStore, MovementLog, ProductCatalog, UnitOfWork


def get_default_unit_of_work() -> UnitOfWork:
    from .orm import DjangoUnitOfWork

    return DjangoUnitOfWork()


__all__ = [
    "BatchStore",
    "MovementLog",
    "ProductCatalog",
    "UnitOfWork",
    "get_default_unit_of_work",
]
