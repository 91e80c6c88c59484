"""
Natural-key lookup used by the upsert orchestrator.
"""

from __future__ import annotations

from typing import Any, Optional

from catalog.domain.models import Record
from catalog.infrastructure.store import StoreTransaction


class NaturalKeyResolver:
    """
    Find the single persisted record carrying a caller-supplied key.

    Matching is exact and case-sensitive: no trimming, no case folding, no
    fuzzy matching. Lookups go through the caller's transaction so records
    created earlier in the same batch are visible.
    """

    def resolve(self, tx: StoreTransaction, key: Any) -> Optional[Record]:
        if not isinstance(key, str) or not key.strip():
            return None
        return tx.find_by_key(key)


__all__ = ["NaturalKeyResolver"]
