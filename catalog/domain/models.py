"""
Domain models for the record catalog.

Defines the record schema aligned with the `records` table, the closed set of
attributes a patch may carry, and the typed specification of each attribute
(kind, bounds, allowed values). Validation, persistence and the percentile
engine all read from this single table instead of looking attributes up by
name at runtime.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, computed_field


class Category(str, Enum):
    UI_PATTERN = "ui_pattern"
    BACKEND_PATTERN = "backend_pattern"
    DATA_PATTERN = "data_pattern"
    DEPLOYMENT_PATTERN = "deployment_pattern"


class Status(str, Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Attribute(str, Enum):
    """Every attribute a record patch is allowed to carry, in display order."""

    KEY = "key"
    CATEGORY = "category"
    STATUS = "status"
    DESCRIPTION = "description"
    PRIORITY = "priority"
    SCORE = "score"
    COMPLEXITY = "complexity"
    SPEED = "speed"
    QUALITY = "quality"


@dataclass(frozen=True)
class FieldSpec:
    """
    Typed description of one patchable attribute.

    `kind` is one of "key", "text", "choice", "int" or "float". Bounds are
    inclusive and only meaningful for numeric kinds.
    """

    attribute: Attribute
    kind: str
    label: str
    choices: Tuple[str, ...] = ()
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    @property
    def name(self) -> str:
        return self.attribute.value

    @property
    def is_numeric(self) -> bool:
        return self.kind in ("int", "float")


FIELD_SPECS: Dict[Attribute, FieldSpec] = {
    Attribute.KEY: FieldSpec(Attribute.KEY, "key", "Key"),
    Attribute.CATEGORY: FieldSpec(
        Attribute.CATEGORY, "choice", "Category", choices=tuple(c.value for c in Category)
    ),
    Attribute.STATUS: FieldSpec(
        Attribute.STATUS, "choice", "Status", choices=tuple(s.value for s in Status)
    ),
    Attribute.DESCRIPTION: FieldSpec(Attribute.DESCRIPTION, "text", "Description"),
    Attribute.PRIORITY: FieldSpec(Attribute.PRIORITY, "int", "Priority", minimum=1, maximum=5),
    Attribute.SCORE: FieldSpec(Attribute.SCORE, "float", "Score", minimum=0, maximum=100),
    Attribute.COMPLEXITY: FieldSpec(
        Attribute.COMPLEXITY, "int", "Complexity", minimum=1, maximum=5
    ),
    Attribute.SPEED: FieldSpec(Attribute.SPEED, "int", "Speed", minimum=1, maximum=5),
    Attribute.QUALITY: FieldSpec(Attribute.QUALITY, "int", "Quality", minimum=1, maximum=5),
}

PATCH_ATTRIBUTES: Tuple[str, ...] = tuple(attribute.value for attribute in Attribute)

# Values a freshly created record starts from before its patch is applied.
RECORD_DEFAULTS: Dict[str, Any] = {
    "category": None,
    "status": Status.NEW.value,
    "description": None,
    "priority": None,
    "score": None,
    "complexity": None,
    "speed": None,
    "quality": None,
}

METRIC_ATTRIBUTES: Tuple[str, ...] = ("complexity", "speed", "quality")


class Record(BaseModel):
    """
    Representation of a single row in the `records` table.
    """

    id: int = Field(..., description="Store-assigned primary key.")
    key: str = Field(..., description="Unique natural key used for upsert matching.")
    category: Optional[str] = Field(None, description="One of the Category values.")
    status: Optional[str] = Field(None, description="One of the Status values.")
    description: Optional[str] = Field(None, description="Free-form text.")
    priority: Optional[int] = Field(None, description="Priority, 1-5.")
    score: Optional[float] = Field(None, description="Score, 0-100.")
    complexity: Optional[int] = Field(None, description="Complexity, 1-5.")
    speed: Optional[int] = Field(None, description="Speed, 1-5.")
    quality: Optional[int] = Field(None, description="Quality, 1-5.")
    created_at: Optional[datetime] = Field(None, description="Row creation timestamp.")
    updated_at: Optional[datetime] = Field(None, description="Row update timestamp.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }

    @computed_field  # type: ignore[prop-decorator]
    @property
    def average_metrics(self) -> Optional[float]:
        """Mean of the present complexity/speed/quality values."""
        values = [getattr(self, name) for name in METRIC_ATTRIBUTES]
        present = [value for value in values if value is not None]
        if not present:
            return None
        return round(sum(present) / len(present), 2)

    def attribute_values(self) -> Dict[str, Any]:
        """Current values of every patchable attribute."""
        return {name: getattr(self, name) for name in PATCH_ATTRIBUTES}


@dataclass
class RecordPatch:
    """
    Caller-supplied partial record: a key plus zero or more attribute values.

    Only names from the closed attribute enumeration survive; `None` values
    are treated as omitted so a patch never clears a stored value.
    """

    values: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RecordPatch":
        if not isinstance(payload, Mapping):
            raise TypeError(f"record patch must be an object, got {type(payload).__name__}")
        values = {
            name: payload[name]
            for name in PATCH_ATTRIBUTES
            if name in payload and payload[name] is not None
        }
        return cls(values=values)

    @property
    def raw_key(self) -> Any:
        return self.values.get(Attribute.KEY.value)

    @property
    def key(self) -> Optional[str]:
        """The key when it is a usable string, else None."""
        raw = self.raw_key
        if isinstance(raw, str) and raw.strip():
            return raw
        return None

    def display_key(self) -> str:
        raw = self.raw_key
        return "" if raw is None else str(raw)

    def merged_onto(self, base: Mapping[str, Any]) -> Dict[str, Any]:
        """Apply the patch over `base`; attributes the patch omits keep their value."""
        merged = dict(base)
        merged.update(self.values)
        return merged


__all__ = [
    "Attribute",
    "Category",
    "FIELD_SPECS",
    "FieldSpec",
    "METRIC_ATTRIBUTES",
    "PATCH_ATTRIBUTES",
    "RECORD_DEFAULTS",
    "Record",
    "RecordPatch",
    "Status",
]
