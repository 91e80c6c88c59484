"""
Result contracts for batch upserts.

Per-item processing yields one of `ItemCreated`, `ItemUpdated` or
`ItemFailed`; a whole batch ends as `UpsertSuccess` or `UpsertFailure`. The
TypedDicts describe the machine-parseable bodies returned to API callers so
the HTTP layer, the CLI and the tests share one shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, TypedDict, Union


class RecordRefPayload(TypedDict):
    id: int
    key: str


class ItemErrorPayload(TypedDict):
    index: int
    key: str
    errors: List[str]


class UpsertSuccessPayload(TypedDict):
    success: Literal[True]
    created_count: int
    updated_count: int
    created: List[RecordRefPayload]
    updated: List[RecordRefPayload]


class UpsertFailurePayload(TypedDict):
    success: Literal[False]
    errors: List[ItemErrorPayload]


@dataclass(frozen=True)
class RecordRef:
    id: int
    key: str

    def to_payload(self) -> RecordRefPayload:
        return {"id": self.id, "key": self.key}


@dataclass(frozen=True)
class ItemCreated:
    index: int
    ref: RecordRef


@dataclass(frozen=True)
class ItemUpdated:
    index: int
    ref: RecordRef


@dataclass(frozen=True)
class ItemFailed:
    index: int
    key: str
    messages: List[str]

    def to_payload(self) -> ItemErrorPayload:
        return {"index": self.index, "key": self.key, "errors": list(self.messages)}


ItemOutcome = Union[ItemCreated, ItemUpdated, ItemFailed]


@dataclass
class UpsertSuccess:
    created: List[RecordRef] = field(default_factory=list)
    updated: List[RecordRef] = field(default_factory=list)

    success: bool = field(default=True, init=False)

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def updated_count(self) -> int:
        return len(self.updated)

    def to_payload(self) -> UpsertSuccessPayload:
        return {
            "success": True,
            "created_count": self.created_count,
            "updated_count": self.updated_count,
            "created": [ref.to_payload() for ref in self.created],
            "updated": [ref.to_payload() for ref in self.updated],
        }


@dataclass
class UpsertFailure:
    errors: List[ItemFailed] = field(default_factory=list)

    success: bool = field(default=False, init=False)

    def to_payload(self) -> UpsertFailurePayload:
        return {"success": False, "errors": [error.to_payload() for error in self.errors]}


UpsertResult = Union[UpsertSuccess, UpsertFailure]


__all__ = [
    "ItemCreated",
    "ItemErrorPayload",
    "ItemFailed",
    "ItemOutcome",
    "ItemUpdated",
    "RecordRef",
    "RecordRefPayload",
    "UpsertFailure",
    "UpsertFailurePayload",
    "UpsertResult",
    "UpsertSuccess",
    "UpsertSuccessPayload",
]
