"""
Exception hierarchy for the record catalog.

Item-level problems inside a batch never surface as exceptions to callers;
the orchestrator turns them into structured failures. These types cover the
storage faults that do escape.
"""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for catalog errors."""


class StoreError(CatalogError):
    """The persistence store rejected or could not complete an operation."""


class TransactionClosedError(StoreError):
    """An operation was attempted on a committed or rolled-back transaction."""


__all__ = ["CatalogError", "StoreError", "TransactionClosedError"]
