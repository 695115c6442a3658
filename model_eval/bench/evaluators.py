"""Scoring functions that turn (test case, model output) into a score in [0, 1].

Evaluators are pure and never raise for bad input: missing expectations,
malformed patterns and unparsable JSON all become a failing result. The
registry is an explicit value handed to the runner; ``build_default_registry``
returns one with the built-ins installed.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from model_eval.bench import schema as schema_check
from model_eval.bench.types import FunctionCall, TestCase
from model_eval.log import get_logger, log_event

logger = get_logger(__name__)

CONTAINS_PASS_THRESHOLD = 0.5
NOT_CONTAINS_PENALTY = 0.25
FUNCTION_CALL_PASS_THRESHOLD = 0.75


@dataclass(frozen=True)
class EvaluatorContext:
    test_case: TestCase
    output: str
    function_call: Optional[FunctionCall] = None


@dataclass(frozen=True)
class EvaluatorResult:
    passed: bool
    score: float
    reason: str = ""


Evaluator = Callable[[EvaluatorContext], EvaluatorResult]


def _fail(reason: str) -> EvaluatorResult:
    return EvaluatorResult(passed=False, score=0.0, reason=reason)


# ---------------------------------------------------------------------------
# Built-ins
# ---------------------------------------------------------------------------


def exact_evaluator(ctx: EvaluatorContext) -> EvaluatorResult:
    expected = ctx.test_case.expected.content
    if not expected:
        return _fail("No expected content defined")
    passed = ctx.output.strip().lower() == expected.strip().lower()
    if passed:
        return EvaluatorResult(passed=True, score=1.0, reason="Exact match")
    return EvaluatorResult(passed=False, score=0.0, reason=f'Expected "{expected}", got "{ctx.output[:100]}..."')


def contains_evaluator(ctx: EvaluatorContext) -> EvaluatorResult:
    expected = ctx.test_case.expected
    output_lower = ctx.output.lower()
    score = 1.0
    reasons: List[str] = []

    if expected.contains:
        found = 0
        for substring in expected.contains:
            if substring.lower() in output_lower:
                found += 1
            else:
                reasons.append(f'Missing: "{substring}"')
        score = found / len(expected.contains)

    for substring in expected.not_contains or ():
        if substring.lower() in output_lower:
            score = max(0.0, score - NOT_CONTAINS_PENALTY)
            reasons.append(f'Should not contain: "{substring}"')

    return EvaluatorResult(
        passed=score >= CONTAINS_PASS_THRESHOLD,
        score=score,
        reason="; ".join(reasons) if reasons else "All expected content found",
    )


def regex_evaluator(ctx: EvaluatorContext) -> EvaluatorResult:
    pattern = ctx.test_case.expected.pattern
    if not pattern:
        return _fail("No pattern defined")
    try:
        compiled = re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        return _fail(f"Invalid regex pattern: {e}")
    if compiled.search(ctx.output):
        return EvaluatorResult(passed=True, score=1.0, reason="Pattern matched")
    return EvaluatorResult(passed=False, score=0.0, reason=f'Pattern "{pattern}" not found')


def json_schema_evaluator(ctx: EvaluatorContext) -> EvaluatorResult:
    schema = ctx.test_case.expected.schema
    if not schema:
        return _fail("No schema defined")
    value = schema_check.extract_json(ctx.output)
    if value is schema_check.MISSING:
        return _fail("Could not parse JSON from output")
    check = schema_check.validate(value, schema)
    return EvaluatorResult(passed=check.passed, score=check.score, reason=check.reason)


def _is_object_like(value: Any) -> bool:
    # Mirrors JSON "object" semantics: maps, arrays and null compare structurally
    return value is None or isinstance(value, (dict, list))


def _primitive_equal(a: Any, b: Any) -> bool:
    # True must not equal 1
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    return a == b


def _canonical(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def compare_arguments(expected: Dict[str, Any], actual: Dict[str, Any]) -> float:
    """Mean per-key match over the expected argument keys.

    1 for equal primitives or identically-serialized objects, 0.5 for two
    objects that differ, 0.75 when the actual string contains the expected one
    case-insensitively, 0 otherwise.
    """
    if not expected:
        return 1.0
    matched = 0.0
    for key, expected_val in expected.items():
        if key not in actual:
            continue
        actual_val = actual[key]
        if _is_object_like(expected_val) and _is_object_like(actual_val):
            matched += 1.0 if _canonical(expected_val) == _canonical(actual_val) else 0.5
        elif _primitive_equal(expected_val, actual_val):
            matched += 1.0
        elif isinstance(expected_val, str) and isinstance(actual_val, str) and expected_val.lower() in actual_val.lower():
            matched += 0.75
    return matched / len(expected)


def function_call_evaluator(ctx: EvaluatorContext) -> EvaluatorResult:
    expected = ctx.test_case.expected.function_call
    if expected is None:
        return _fail("No expected function call defined")
    actual = ctx.function_call
    if actual is None:
        return _fail("No function call in output")

    score = 0.0
    reasons: List[str] = []
    if actual.name == expected.name:
        score += 0.5
    else:
        reasons.append(f'Wrong function: expected "{expected.name}", got "{actual.name}"')

    if expected.arguments is not None:
        arg_score = compare_arguments(expected.arguments, actual.arguments or {})
        score += arg_score * 0.5
        if arg_score < 1:
            reasons.append(f"Argument mismatch ({round(arg_score * 100)}% match)")
    else:
        score += 0.5

    return EvaluatorResult(
        passed=score >= FUNCTION_CALL_PASS_THRESHOLD,
        score=score,
        reason="; ".join(reasons) if reasons else "Function call matches",
    )


def semantic_evaluator(ctx: EvaluatorContext) -> EvaluatorResult:
    """Stand-in for embedding similarity.

    Scores with the contains evaluator and adds a small length bonus (at most
    0.1, reached at 1000 characters). Pass/fail is the contains verdict.
    """
    base = contains_evaluator(ctx)
    length_bonus = min(0.1, len(ctx.output) / 1000 * 0.1)
    return EvaluatorResult(
        passed=base.passed,
        score=min(1.0, base.score + length_bonus),
        reason=f"Semantic evaluation (using contains fallback): {base.reason}",
    )


BUILTIN_EVALUATORS: Dict[str, Evaluator] = {
    "exact": exact_evaluator,
    "contains": contains_evaluator,
    "regex": regex_evaluator,
    "json_schema": json_schema_evaluator,
    "function_call": function_call_evaluator,
    "semantic": semantic_evaluator,
    # Custom evaluator configuration is not supported; fall back to contains
    "custom": contains_evaluator,
}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class EvaluatorRegistry:
    """Named collection of evaluators."""

    def __init__(self, evaluators: Optional[Dict[str, Evaluator]] = None):
        self._evaluators: Dict[str, Evaluator] = dict(evaluators or {})

    def register(self, name: str, evaluator: Evaluator) -> None:
        self._evaluators[name] = evaluator

    def get(self, name: str) -> Optional[Evaluator]:
        return self._evaluators.get(name)

    def names(self) -> List[str]:
        return sorted(self._evaluators)

    def __contains__(self, name: object) -> bool:
        return name in self._evaluators

    def evaluate(self, ctx: EvaluatorContext) -> EvaluatorResult:
        name = ctx.test_case.evaluator
        evaluator = self.get(name)
        if evaluator is None:
            return _fail(f"Unknown evaluator type: {name}")
        try:
            result = evaluator(ctx)
        except Exception as e:
            # Registered third-party evaluators may raise; keep the batch alive
            log_event(
                logger,
                "evaluator_error",
                logging.WARNING,
                evaluator=name,
                testCaseId=ctx.test_case.id,
                error=f"{type(e).__name__}: {e}",
            )
            return _fail(f"Evaluator error: {e}")
        score = min(1.0, max(0.0, float(result.score)))
        if score != result.score:
            result = EvaluatorResult(passed=result.passed, score=score, reason=result.reason)
        return result


def build_default_registry() -> EvaluatorRegistry:
    return EvaluatorRegistry(BUILTIN_EVALUATORS)
