"""Mock-mode results: plausible TestCaseResults without calling a provider.

Outcomes are biased by the test case's expectations to look like a decent
model. With a seed, each test case draws from its own ``random.Random`` keyed
on (seed, test case id), so results do not depend on scheduling order.
"""
from __future__ import annotations

import random
from typing import Optional

from model_eval.bench.types import FunctionCall, TestCase, TestCaseOutput, TestCaseResult

EXACT_HIT_RATE = 0.8
CONTAINS_HIT_RATE = 0.85
FUNCTION_CALL_HIT_RATE = 0.75
GENERIC_PASS_RATE = 0.7


def rng_for(test_case: TestCase, seed: Optional[int]) -> random.Random:
    if seed is None:
        return random.Random()
    return random.Random(f"{seed}:{test_case.id}")


def simulate_test_case(test_case: TestCase, rng: random.Random) -> TestCaseResult:
    expected = test_case.expected
    function_call: Optional[FunctionCall] = None

    if expected.content:
        if rng.random() < EXACT_HIT_RATE:
            content, passed, score = expected.content, True, 1.0
        else:
            content, passed, score = "Mock response that does not match expected", False, 0.3
    elif expected.contains:
        included = [s for s in expected.contains if rng.random() < CONTAINS_HIT_RATE]
        content = " and ".join(included)
        score = len(included) / len(expected.contains)
        passed = score >= 0.5
    elif expected.function_call is not None:
        fc = expected.function_call
        content = f"Calling {fc.name}"
        if rng.random() < FUNCTION_CALL_HIT_RATE:
            function_call = FunctionCall(name=fc.name, arguments=dict(fc.arguments or {}))
            passed, score = True, 1.0
        else:
            # Right tool, arguments dropped
            function_call = FunctionCall(name=fc.name, arguments={})
            passed, score = False, 0.4
    else:
        content = "Mock response for testing purposes"
        passed = rng.random() < GENERIC_PASS_RATE
        score = 0.8 + rng.random() * 0.2 if passed else 0.2 + rng.random() * 0.3

    return TestCaseResult(
        test_case_id=test_case.id,
        output=TestCaseOutput(content=content, function_call=function_call),
        passed=passed,
        score=min(1.0, score),
        reason="Mock test passed" if passed else "Mock test did not fully match expected",
        latency_ms=rng.randint(50, 499),
        input_tokens=rng.randint(50, 249),
        output_tokens=rng.randint(20, 119),
    )
