from model_eval.bench.suites.common import chat

ROUTER_SYSTEM = (
    "You are a routing classifier. Given the user query, decide the routing method.\n"
    'Output JSON: { "method": "embedding" | "llm", "confidence": 0-1, "reason": string }'
)


def _intent(case_id, name, prompt, contains, tags, weight=1):
    return {
        "id": f"routing.intent.{case_id}",
        "name": name,
        "input": chat(prompt),
        "expected": {"contains": contains},
        "evaluator": "contains",
        "weight": weight,
        "tags": tags,
    }


INTENT_CASES = [
    _intent("code-review", "Code review request", "Can you review this Python function for bugs?", ["code"], ["code", "high-frequency"]),
    _intent("code-generation", "Code generation request", "Write a function that calculates fibonacci numbers", ["code"], ["code", "high-frequency"]),
    _intent("debug", "Debug request", "I'm getting a NullPointerException in my Java app", ["code", "debug"], ["code", "debugging"]),
    _intent("web-search", "Web search request", "What are the latest developments in quantum computing?", ["research", "search"], ["research", "high-frequency"]),
    _intent("fact-check", "Fact checking request", "Is it true that the Great Wall of China is visible from space?", ["research", "fact"], ["research", "reasoning"]),
    _intent("greeting", "Simple greeting", "Hello, how are you doing today?", ["conversational", "general"], ["conversational", "high-frequency"]),
    _intent("clarification", "Clarification question", "Can you explain what you meant by that?", ["conversational", "clarify"], ["conversational"]),
    _intent("summarize", "Summarization request", "Summarize this article about climate change for me", ["task", "summarize"], ["task", "high-frequency"]),
    _intent("translate", "Translation request", "Translate this text to Spanish", ["task", "translate"], ["task"]),
    _intent("ambiguous-code-question", "Ambiguous code vs. research", "Tell me about Python", ["clarify"], ["ambiguous", "edge-case"], weight=2),
    _intent(
        "multi-intent",
        "Multiple intents in one request",
        "Search for React best practices and then write me a component",
        ["research", "code"],
        ["multi-intent", "edge-case"],
        weight=2,
    ),
]

HYBRID_CASES = [
    {
        "id": "routing.hybrid.embedding-vs-llm",
        "name": "Embedding fallback decision",
        "description": "When to use embeddings vs. LLM for routing",
        "input": chat("Write a Python function to sort a list", system=ROUTER_SYSTEM),
        "expected": {
            "schema": {
                "type": "object",
                "properties": {
                    "method": {"type": "string", "enum": ["embedding", "llm"]},
                    "confidence": {"type": "number", "minimum": 0, "maximum": 1},
                    "reason": {"type": "string"},
                },
                "required": ["method", "confidence"],
            }
        },
        "evaluator": "json_schema",
        "tags": ["hybrid", "routing-decision"],
    },
    {
        "id": "routing.hybrid.complex-query",
        "name": "Complex query requires LLM routing",
        "input": chat(
            "I need help with my React app - it crashes when I search for users, but I also want "
            "to understand if this is a common problem with async state updates",
            system=ROUTER_SYSTEM,
        ),
        "expected": {"contains": ["llm"]},
        "evaluator": "contains",
        "weight": 2,
        "tags": ["hybrid", "complex"],
    },
]

BENCHMARKS = [
    {
        "id": "routing.intent-classification",
        "name": "Intent Classification",
        "description": "Classify user intents for routing to the appropriate handler",
        "version": "1.0.0",
        "taskType": "routing",
        "category": "intent-classification",
        "testCases": INTENT_CASES,
        "config": {"maxTokens": 100, "temperature": 0, "timeoutMs": 10000},
    },
    {
        "id": "routing.hybrid-decision",
        "name": "Hybrid Routing Decisions",
        "description": "Choose between embedding-based and LLM-based routing",
        "version": "1.0.0",
        "taskType": "routing",
        "category": "hybrid-routing",
        "testCases": HYBRID_CASES,
        "config": {"maxTokens": 200, "temperature": 0, "timeoutMs": 15000},
    },
]
