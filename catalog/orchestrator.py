"""
Batch upsert orchestrator: reconcile record patches against persisted state.

A batch is processed strictly in input order inside one store transaction.
Each item is resolved by natural key, merged (or built from defaults),
validated and staged. The first failing item stops the batch and rolls back
every mutation staged before it; otherwise everything commits together.

Usage:
    from catalog.orchestrator import UpsertOrchestrator

    result = UpsertOrchestrator(store).run([{"key": "A", "priority": 3}])
    payload = result.to_payload()
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional

from catalog.domain.models import RECORD_DEFAULTS, RecordPatch
from catalog.domain.results import (
    ItemCreated,
    ItemFailed,
    ItemOutcome,
    ItemUpdated,
    RecordRef,
    UpsertFailure,
    UpsertResult,
    UpsertSuccess,
)
from catalog.domain.validation import ValidationEngine
from catalog.infrastructure.resolver import NaturalKeyResolver
from catalog.infrastructure.store import RecordStore, StoreTransaction
from catalog.utils.logging import get_logger

log = get_logger(__name__)


def _display_key(raw_item: Any) -> str:
    if isinstance(raw_item, dict):
        raw = raw_item.get("key")
        return "" if raw is None else str(raw)
    return ""


class UpsertOrchestrator:
    """
    Drive a batch of record patches through resolution, validation and an
    all-or-nothing commit.
    """

    def __init__(
        self,
        store: RecordStore,
        resolver: Optional[NaturalKeyResolver] = None,
        validator: Optional[ValidationEngine] = None,
    ) -> None:
        self._store = store
        self._resolver = resolver or NaturalKeyResolver()
        self._validator = validator or ValidationEngine()

    def run(self, batch: Iterable[Any]) -> UpsertResult:
        """
        Upsert every patch in `batch` atomically.

        Returns
        -------
        UpsertSuccess
            When every item validated and the transaction committed.
        UpsertFailure
            Holding the first failing item; the store is left unchanged.
        """
        items = list(batch)
        log.info("[BATCH START]", extra={"items": len(items)})

        created: List[RecordRef] = []
        updated: List[RecordRef] = []

        with self._store.transaction() as tx:
            for index, raw_item in enumerate(items):
                outcome = self._process_item(tx, index, raw_item)
                if isinstance(outcome, ItemFailed):
                    tx.rollback()
                    log.warning(
                        "[BATCH ROLLED BACK]",
                        extra={
                            "index": outcome.index,
                            "key": outcome.key,
                            "errors": outcome.messages,
                            "staged": len(created) + len(updated),
                        },
                    )
                    return UpsertFailure(errors=[outcome])
                if isinstance(outcome, ItemCreated):
                    created.append(outcome.ref)
                else:
                    updated.append(outcome.ref)

            commit_failure = self._commit(tx, items)
            if commit_failure is not None:
                return UpsertFailure(errors=[commit_failure])

        log.info(
            "[BATCH COMMITTED]",
            extra={"created_count": len(created), "updated_count": len(updated)},
        )
        return UpsertSuccess(created=created, updated=updated)

    def _commit(self, tx: StoreTransaction, items: List[Any]) -> Optional[ItemFailed]:
        try:
            tx.commit()
        except Exception as exc:  # noqa: BLE001 - commit faults become a batch failure
            log.exception("[BATCH COMMIT FAILED]", extra={"items": len(items)})
            last_index = max(len(items) - 1, 0)
            last_key = _display_key(items[-1]) if items else ""
            return ItemFailed(index=last_index, key=last_key, messages=[f"Commit failed: {exc}"])
        return None

    def _process_item(self, tx: StoreTransaction, index: int, raw_item: Any) -> ItemOutcome:
        try:
            patch = RecordPatch.from_payload(raw_item)
            existing = self._resolver.resolve(tx, patch.key)
            base = existing.attribute_values() if existing is not None else RECORD_DEFAULTS
            validation = self._validator.validate(patch.merged_onto(base))
            if not validation.ok:
                return ItemFailed(index=index, key=patch.display_key(), messages=validation.messages)

            if existing is not None:
                changes = {name: validation.values[name] for name in patch.values}
                record = tx.update(existing.id, changes)
                return ItemUpdated(index=index, ref=RecordRef(id=record.id, key=record.key))

            record = tx.insert(validation.values)
            return ItemCreated(index=index, ref=RecordRef(id=record.id, key=record.key))
        except Exception as exc:  # noqa: BLE001 - any item fault becomes a structured failure
            log.exception("[ITEM FAILED]", extra={"index": index})
            return ItemFailed(index=index, key=_display_key(raw_item), messages=[str(exc)])


def upsert_records(store: RecordStore, batch: Iterable[Any]) -> UpsertResult:
    """Convenience wrapper running one batch with default collaborators."""
    return UpsertOrchestrator(store).run(batch)


__all__ = ["UpsertOrchestrator", "upsert_records"]
