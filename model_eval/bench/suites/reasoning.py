from model_eval.bench.suites.common import chat

FACT_CHECK_SYSTEM = (
    "You are a fact-checker. Analyze the claim and respond with JSON: "
    '{ "verdict": "true" | "false" | "partially_true" | "unverifiable", "confidence": 0-1, "explanation": string }'
)
LOGIC_SYSTEM = (
    "You are a logic expert. Analyze the argument and determine if the conclusion follows. "
    'Respond with JSON: { "valid": boolean, "explanation": string }'
)

VERDICT_SCHEMA = {
    "type": "object",
    "properties": {
        "verdict": {"type": "string", "enum": ["true", "false", "partially_true", "unverifiable"]},
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
        "explanation": {"type": "string"},
    },
    "required": ["verdict", "confidence"],
}

FACT_CASES = [
    {
        "id": "reasoning.fact.earth-sun",
        "name": "Basic astronomical fact",
        "input": chat("Claim: The Earth orbits the Sun.", system=FACT_CHECK_SYSTEM),
        "expected": {"contains": ["true"]},
        "evaluator": "contains",
        "tags": ["fact-check", "easy"],
    },
    {
        "id": "reasoning.fact.great-wall-space",
        "name": "Common misconception",
        "input": chat("Claim: The Great Wall of China is visible from space with the naked eye.", system=FACT_CHECK_SYSTEM),
        "expected": {"contains": ["false"]},
        "evaluator": "contains",
        "tags": ["fact-check", "misconception"],
    },
    {
        "id": "reasoning.fact.goldfish-memory",
        "name": "Partially true claim",
        "input": chat("Claim: Goldfish have a three-second memory.", system=FACT_CHECK_SYSTEM),
        "expected": {"contains": ["false"]},
        "evaluator": "contains",
        "tags": ["fact-check", "misconception"],
    },
    {
        "id": "reasoning.fact.verdict-format",
        "name": "Structured verdict",
        "input": chat("Claim: HTTPS guarantees a website is trustworthy.", system=FACT_CHECK_SYSTEM),
        "expected": {"schema": VERDICT_SCHEMA},
        "evaluator": "json_schema",
        "weight": 2,
        "tags": ["fact-check", "structured-output"],
    },
]

LOGIC_CASES = [
    {
        "id": "reasoning.logic.syllogism",
        "name": "Basic syllogism",
        "input": chat(
            "Premises: All dogs are mammals. All mammals are animals. Conclusion: All dogs are animals.",
            system=LOGIC_SYSTEM,
        ),
        "expected": {"pattern": r'"valid"\s*:\s*true'},
        "evaluator": "regex",
        "tags": ["logic", "easy"],
    },
    {
        "id": "reasoning.logic.affirming-consequent",
        "name": "Affirming the consequent fallacy",
        "input": chat(
            "Premises: If it rains, the ground is wet. The ground is wet. Conclusion: It rained.",
            system=LOGIC_SYSTEM,
        ),
        "expected": {"pattern": r'"valid"\s*:\s*false'},
        "evaluator": "regex",
        "weight": 2,
        "tags": ["logic", "fallacy"],
    },
    {
        "id": "reasoning.logic.one-word",
        "name": "Single-word validity answer",
        "input": chat(
            "All squares are rectangles. This shape is a square. Is it a rectangle? Answer with one word: yes or no."
        ),
        "expected": {"content": "yes"},
        "evaluator": "exact",
        "tags": ["logic", "easy"],
    },
]

MULTI_STEP_CASES = [
    {
        "id": "reasoning.multi.age-problem",
        "name": "Age-based word problem",
        "input": chat(
            "Alice is twice as old as Bob. In 10 years, Alice will be 1.5 times as old as Bob. How old is Alice now?",
            system="Solve this problem step by step and provide the final answer.",
        ),
        "expected": {"pattern": r"\b20\b"},
        "evaluator": "regex",
        "weight": 2,
        "tags": ["reasoning", "math", "multi-step"],
    },
    {
        "id": "reasoning.multi.meeting-schedule",
        "name": "Meeting scheduling logic",
        "input": chat(
            "Alice is free 9-11am and 2-4pm. Bob is free 10am-1pm. Charlie is free 11am-3pm. "
            "Can they all meet for 1 hour? If so, when?",
            system="Analyze the scheduling constraints and determine if the meeting can happen.",
        ),
        "expected": {"contains": ["11", "12", "no"]},
        "evaluator": "contains",
        "weight": 2,
        "tags": ["reasoning", "scheduling", "constraints"],
    },
    {
        "id": "reasoning.multi.causal-chain",
        "name": "Causal chain analysis",
        "input": chat(
            "The website went down. The server ran out of memory. The memory was consumed by the database. "
            "The database had a runaway query. The query was triggered by a bug in the user search feature. "
            "The bug was introduced in last week's deployment. What is the root cause?",
            system="Analyze the causal chain and identify the root cause.",
        ),
        "expected": {"contains": ["bug", "deployment", "search"]},
        "evaluator": "contains",
        "tags": ["reasoning", "causal", "debugging"],
    },
]

BENCHMARKS = [
    {
        "id": "reasoning.fact-checking",
        "name": "Fact Checking",
        "description": "Judge the truth of factual claims and common misconceptions",
        "version": "1.0.0",
        "taskType": "reasoning",
        "category": "fact-checking",
        "testCases": FACT_CASES,
        "config": {"maxTokens": 300, "temperature": 0},
    },
    {
        "id": "reasoning.logical-analysis",
        "name": "Logical Analysis",
        "description": "Decide whether conclusions follow from premises",
        "version": "1.0.0",
        "taskType": "reasoning",
        "category": "logic",
        "testCases": LOGIC_CASES,
        "config": {"maxTokens": 400, "temperature": 0},
    },
    {
        "id": "reasoning.multi-step",
        "name": "Multi-Step Reasoning",
        "description": "Word problems and causal chains that need several inference steps",
        "version": "1.0.0",
        "taskType": "reasoning",
        "category": "multi-step",
        "testCases": MULTI_STEP_CASES,
        "config": {"maxTokens": 500, "temperature": 0},
    },
]
