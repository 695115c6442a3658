"""JSON extraction from free-form model output and a reduced JSON-Schema check.

Extraction tries, in order: the whole output, the first fenced code block, then
the first ``{...}`` / ``[...]`` span. Each step either yields a value or passes;
``MISSING`` marks "nothing parsed" since ``null`` is a valid JSON value.

Validation supports ``type``, ``required``, ``properties``, ``enum``,
``minimum`` and ``maximum``, scoring by deduction from 1.0.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

MISSING: Any = object()

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")

# Deductions
TYPE_MISMATCH_COST = 0.5
FLOAT_FOR_INTEGER_COST = 0.25
MISSING_REQUIRED_COST = 0.2
FAILING_PROPERTY_COST = 0.1
ENUM_MISS_COST = 0.3
RANGE_VIOLATION_COST = 0.2
PASS_THRESHOLD = 0.5


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, TypeError):
        return MISSING


def _parse_whole(output: str) -> Any:
    return _loads(output)


def _parse_fenced(output: str) -> Any:
    m = _FENCE_RE.search(output)
    if not m:
        return MISSING
    return _loads(m.group(1).strip())


def _parse_span(output: str) -> Any:
    candidates = [m for m in (_OBJECT_RE.search(output), _ARRAY_RE.search(output)) if m]
    if not candidates:
        return MISSING
    first = min(candidates, key=lambda m: m.start())
    return _loads(first.group(0))


EXTRACTORS: Tuple[Callable[[str], Any], ...] = (_parse_whole, _parse_fenced, _parse_span)


def extract_json(output: str) -> Any:
    """Return the first JSON value any extractor finds, or ``MISSING``."""
    for extractor in EXTRACTORS:
        value = extractor(output)
        if value is not MISSING:
            return value
    return MISSING


def json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class SchemaCheck:
    score: float = 1.0
    violations: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.score >= PASS_THRESHOLD

    @property
    def reason(self) -> str:
        return "; ".join(self.violations) if self.violations else "Schema validation passed"

    def deduct(self, cost: float, violation: str) -> None:
        self.score -= cost
        self.violations.append(violation)


def validate(value: Any, schema: Dict[str, Any]) -> SchemaCheck:
    """Score ``value`` against ``schema``; the result is floored at 0.

    A nested property counts as failing when it records any violation.
    """
    check = SchemaCheck()
    expected_type: Optional[str] = schema.get("type")

    if expected_type:
        actual = json_type(value)
        if expected_type == "integer" and _is_number(value):
            if isinstance(value, float) and not value.is_integer():
                check.deduct(FLOAT_FOR_INTEGER_COST, "Expected integer, got float")
        elif expected_type != actual:
            check.deduct(TYPE_MISMATCH_COST, f'Expected type "{expected_type}", got "{actual}"')

    if expected_type == "object" and isinstance(value, dict):
        for prop in schema.get("required") or []:
            if prop not in value:
                check.deduct(MISSING_REQUIRED_COST, f'Missing required property: "{prop}"')
        for key, prop_schema in (schema.get("properties") or {}).items():
            if key in value and isinstance(prop_schema, dict):
                child = validate(value[key], prop_schema)
                if child.violations:
                    check.deduct(FAILING_PROPERTY_COST, f'Property "{key}": {child.reason}')

    enum = schema.get("enum")
    if isinstance(enum, list) and value not in enum:
        check.deduct(ENUM_MISS_COST, f"Value not in enum: expected one of {json.dumps(enum)}")

    if _is_number(value):
        minimum = schema.get("minimum")
        maximum = schema.get("maximum")
        if _is_number(minimum) and value < minimum:
            check.deduct(RANGE_VIOLATION_COST, f"Value {value} below minimum {minimum}")
        if _is_number(maximum) and value > maximum:
            check.deduct(RANGE_VIOLATION_COST, f"Value {value} above maximum {maximum}")

    check.score = max(0.0, check.score)
    return check
