"""
Domain package for the record catalog.

Exports the record model, the closed attribute table, the validation engine
and the upsert result contracts. Keep this package free of I/O.
"""

from catalog.domain.models import (
    FIELD_SPECS,
    PATCH_ATTRIBUTES,
    RECORD_DEFAULTS,
    Attribute,
    Category,
    FieldSpec,
    Record,
    RecordPatch,
    Status,
)
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
from catalog.domain.validation import ValidationEngine, ValidationResult

__all__ = [
    "Attribute",
    "Category",
    "FIELD_SPECS",
    "FieldSpec",
    "ItemCreated",
    "ItemFailed",
    "ItemOutcome",
    "ItemUpdated",
    "PATCH_ATTRIBUTES",
    "RECORD_DEFAULTS",
    "Record",
    "RecordPatch",
    "RecordRef",
    "Status",
    "UpsertFailure",
    "UpsertResult",
    "UpsertSuccess",
    "ValidationEngine",
    "ValidationResult",
]
