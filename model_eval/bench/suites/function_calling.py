from model_eval.bench.suites.common import chat


def _tool(name, description, properties, required=()):
    params = {"type": "object", "properties": properties}
    if required:
        params["required"] = list(required)
    return {"name": name, "description": description, "parameters": params}


def _with_tools(user, system, tools):
    out = chat(user, system=system)
    out["tools"] = tools
    return out


GET_WEATHER = _tool(
    "get_weather",
    "Get current weather for a location",
    {"location": {"type": "string"}, "units": {"type": "string", "enum": ["celsius", "fahrenheit"]}},
    required=("location",),
)
SEARCH_WEB = _tool("search_web", "Search the public web", {"query": {"type": "string"}}, required=("query",))
SEARCH_USERS = _tool(
    "search_users",
    "Search for users in the internal database",
    {"name": {"type": "string"}, "email": {"type": "string"}},
)
CALCULATOR = _tool("calculator", "Perform mathematical calculations", {"expression": {"type": "string"}}, required=("expression",))

SELECTION_CASES = [
    {
        "id": "function.selection.weather",
        "name": "Weather tool selection",
        "input": _with_tools(
            "What's the weather like in San Francisco?",
            "You have access to tools. Select the appropriate tool for the user's request.",
            [GET_WEATHER, SEARCH_WEB],
        ),
        "expected": {"functionCall": {"name": "get_weather", "arguments": {"location": "San Francisco"}}},
        "evaluator": "function_call",
        "tags": ["tool-selection", "basic"],
    },
    {
        "id": "function.selection.search-vs-web",
        "name": "Database vs web search selection",
        "input": _with_tools(
            "Find all users named John in our system",
            "You have access to tools. Select the most appropriate tool.",
            [SEARCH_USERS, SEARCH_WEB],
        ),
        "expected": {"functionCall": {"name": "search_users"}},
        "evaluator": "function_call",
        "tags": ["tool-selection", "disambiguation"],
    },
    {
        "id": "function.selection.calculator",
        "name": "Calculator tool selection",
        "input": _with_tools(
            "What is 15% of 847?",
            "You have access to tools. Use them when appropriate.",
            [CALCULATOR, SEARCH_WEB],
        ),
        "expected": {"functionCall": {"name": "calculator"}},
        "evaluator": "function_call",
        "tags": ["tool-selection", "math"],
    },
    {
        "id": "function.selection.no-tool",
        "name": "Recognize when no tool is needed",
        "input": _with_tools(
            "What is the capital of France?",
            "You have access to tools. Only use them when necessary. For general knowledge questions, respond directly.",
            [GET_WEATHER, SEARCH_WEB],
        ),
        "expected": {"contains": ["Paris"]},
        "evaluator": "contains",
        "weight": 2,
        "tags": ["tool-selection", "no-tool"],
    },
]

EXTRACTION_CASES = [
    {
        "id": "function.params.multi-param",
        "name": "Multiple parameter extraction",
        "input": _with_tools(
            "Book a flight from New York to London on March 15th for 2 adults",
            "Extract the required parameters from the user request and call the appropriate function.",
            [
                _tool(
                    "book_flight",
                    "Book a flight",
                    {
                        "origin": {"type": "string"},
                        "destination": {"type": "string"},
                        "date": {"type": "string", "description": "Travel date (YYYY-MM-DD)"},
                        "passengers": {"type": "integer"},
                    },
                    required=("origin", "destination", "date", "passengers"),
                )
            ],
        ),
        "expected": {
            "functionCall": {
                "name": "book_flight",
                "arguments": {"origin": "New York", "destination": "London", "passengers": 2},
            }
        },
        "evaluator": "function_call",
        "weight": 2,
        "tags": ["parameters", "extraction"],
    },
    {
        "id": "function.params.implicit",
        "name": "Implicit parameter inference",
        "input": _with_tools(
            "Set a reminder to call mom tomorrow",
            "Extract parameters, inferring reasonable defaults when not explicitly stated.",
            [
                _tool(
                    "create_reminder",
                    "Create a reminder",
                    {
                        "title": {"type": "string"},
                        "datetime": {"type": "string", "description": "ISO datetime"},
                        "priority": {"type": "string", "enum": ["low", "medium", "high"]},
                    },
                    required=("title", "datetime"),
                )
            ],
        ),
        "expected": {"functionCall": {"name": "create_reminder", "arguments": {"title": "call mom"}}},
        "evaluator": "function_call",
        "tags": ["parameters", "inference"],
    },
    {
        "id": "function.params.nested",
        "name": "Nested parameter structure",
        "input": _with_tools(
            "Create a new user with name John Doe, email john@example.com, and admin role",
            "Parse the request into the correct parameter structure.",
            [
                _tool(
                    "create_user",
                    "Create a new user",
                    {
                        "user": {
                            "type": "object",
                            "properties": {
                                "name": {"type": "string"},
                                "email": {"type": "string"},
                                "role": {"type": "string", "enum": ["user", "admin", "moderator"]},
                            },
                            "required": ["name", "email"],
                        }
                    },
                    required=("user",),
                )
            ],
        ),
        "expected": {
            "functionCall": {
                "name": "create_user",
                "arguments": {"user": {"name": "John Doe", "email": "john@example.com", "role": "admin"}},
            }
        },
        "evaluator": "function_call",
        "weight": 2,
        "tags": ["parameters", "nested"],
    },
]

MULTI_TOOL_CASES = [
    {
        "id": "function.multi.sequential",
        "name": "Sequential tool orchestration",
        "input": _with_tools(
            "Find the weather in Tokyo and convert the temperature to Fahrenheit",
            "You can use multiple tools. Plan and execute the steps needed.",
            [
                GET_WEATHER,
                _tool(
                    "convert_temperature",
                    "Convert temperature between units",
                    {
                        "value": {"type": "number"},
                        "from": {"type": "string", "enum": ["celsius", "fahrenheit"]},
                        "to": {"type": "string", "enum": ["celsius", "fahrenheit"]},
                    },
                ),
            ],
        ),
        "expected": {"functionCall": {"name": "get_weather", "arguments": {"location": "Tokyo"}}},
        "evaluator": "function_call",
        "weight": 2,
        "tags": ["multi-tool", "sequential"],
    },
    {
        "id": "function.multi.parallel",
        "name": "Parallel tool invocation",
        "input": _with_tools(
            "What's the weather in both New York and Los Angeles?",
            "You can call multiple tools in parallel when they don't depend on each other.",
            [GET_WEATHER],
        ),
        "expected": {"contains": ["New York", "Los Angeles"]},
        "evaluator": "contains",
        "weight": 2,
        "tags": ["multi-tool", "parallel"],
    },
]

BENCHMARKS = [
    {
        "id": "function_calling.tool-selection",
        "name": "Tool Selection",
        "description": "Pick the right tool, or none, for a request",
        "version": "1.0.0",
        "taskType": "function_calling",
        "category": "tool-selection",
        "testCases": SELECTION_CASES,
        "config": {"maxTokens": 300, "temperature": 0, "timeoutMs": 15000},
    },
    {
        "id": "function_calling.parameter-extraction",
        "name": "Parameter Extraction",
        "description": "Fill tool arguments from natural language, including nested objects",
        "version": "1.0.0",
        "taskType": "function_calling",
        "category": "parameter-extraction",
        "testCases": EXTRACTION_CASES,
        "config": {"maxTokens": 400, "temperature": 0, "timeoutMs": 15000},
    },
    {
        "id": "function_calling.multi-tool",
        "name": "Multi-Tool Orchestration",
        "description": "Plan across several tools",
        "version": "1.0.0",
        "taskType": "function_calling",
        "category": "multi-tool",
        "testCases": MULTI_TOOL_CASES,
        "config": {"maxTokens": 500, "temperature": 0, "timeoutMs": 20000},
    },
]
