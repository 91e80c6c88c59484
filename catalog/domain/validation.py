"""
Field-level validation for effective records.

The engine works on the *effective* record (stored values merged with a
patch, or defaults merged with a patch) and returns the coerced values
together with every violation it found. It never raises for bad input; the
orchestrator decides what a non-empty message list means.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

from catalog.domain.models import FIELD_SPECS, FieldSpec


class CoercionError(ValueError):
    """Raised by a typed accessor when a raw value cannot take the field's type."""


def _format_bound(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _coerce_number(spec: FieldSpec, raw: Any) -> float:
    # bool is an int subclass; true/false are never valid numbers here
    if isinstance(raw, bool):
        raise CoercionError(f"{spec.label} is not a number")
    if not isinstance(raw, (int, float, str)):
        raise CoercionError(f"{spec.label} is not a number")
    try:
        number = float(raw.strip() if isinstance(raw, str) else raw)
    except (ValueError, OverflowError):
        raise CoercionError(f"{spec.label} is not a number") from None
    if not math.isfinite(number):
        raise CoercionError(f"{spec.label} is not a number")
    return number


def _coerce_int(spec: FieldSpec, raw: Any) -> int:
    number = _coerce_number(spec, raw)
    if not number.is_integer():
        raise CoercionError(f"{spec.label} must be an integer")
    return int(number)


def _coerce_float(spec: FieldSpec, raw: Any) -> float:
    return _coerce_number(spec, raw)


def _coerce_text(spec: FieldSpec, raw: Any) -> str:
    if not isinstance(raw, str):
        raise CoercionError(f"{spec.label} must be a string")
    return raw


def _coerce_choice(spec: FieldSpec, raw: Any) -> str:
    if not isinstance(raw, str) or raw not in spec.choices:
        raise CoercionError(f"{spec.label} '{raw}' is not a valid {spec.name}")
    return raw


def _coerce_key(spec: FieldSpec, raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise CoercionError(f"{spec.label} can't be blank")
    return raw


_ACCESSORS = {
    "key": _coerce_key,
    "text": _coerce_text,
    "choice": _coerce_choice,
    "int": _coerce_int,
    "float": _coerce_float,
}


@dataclass
class ValidationResult:
    values: Dict[str, Any] = field(default_factory=dict)
    messages: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.messages


class ValidationEngine:
    """
    Enforce per-attribute rules on an effective record.

    Rules:
    - `key` must be present and non-blank.
    - Enumerated attributes, when present, must belong to their fixed set.
    - Numeric attributes, when present, must take their type and fall within
      the declared inclusive bounds.
    """

    def __init__(self, specs: Mapping[Any, FieldSpec] = FIELD_SPECS) -> None:
        self._specs: Tuple[FieldSpec, ...] = tuple(specs.values())

    def validate(self, values: Mapping[str, Any]) -> ValidationResult:
        result = ValidationResult()
        for spec in self._specs:
            raw = values.get(spec.name)
            if raw is None:
                if spec.kind == "key":
                    result.messages.append(f"{spec.label} can't be blank")
                else:
                    result.values[spec.name] = None
                continue
            try:
                value = _ACCESSORS[spec.kind](spec, raw)
            except CoercionError as exc:
                result.messages.append(str(exc))
                continue
            bound_error = self._check_bounds(spec, value)
            if bound_error:
                result.messages.append(bound_error)
                continue
            result.values[spec.name] = value
        return result

    @staticmethod
    def _check_bounds(spec: FieldSpec, value: Any) -> str | None:
        if not spec.is_numeric:
            return None
        too_low = spec.minimum is not None and value < spec.minimum
        too_high = spec.maximum is not None and value > spec.maximum
        if too_low or too_high:
            return (
                f"{spec.label} must be between {_format_bound(spec.minimum)} "
                f"and {_format_bound(spec.maximum)}"
            )
        return None


__all__ = ["CoercionError", "ValidationEngine", "ValidationResult"]
