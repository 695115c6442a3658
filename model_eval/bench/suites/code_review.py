from model_eval.bench.suites.common import chat

SECURITY_SYSTEM = "You are a code security reviewer. Analyze the code for security vulnerabilities."
PERFORMANCE_SYSTEM = "You are a code performance reviewer. Identify performance issues and suggest improvements."

FINDINGS_SCHEMA = {
    "type": "object",
    "properties": {
        "vulnerabilities": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "severity": {"type": "string", "enum": ["low", "medium", "high", "critical"]},
                    "line": {"type": "integer", "minimum": 1},
                    "description": {"type": "string"},
                },
                "required": ["type", "severity"],
            },
        }
    },
    "required": ["vulnerabilities"],
}


def _review(snippet: str, lang: str) -> str:
    return f"Review this code:\n```{lang}\n{snippet}\n```"


SECURITY_CASES = [
    {
        "id": "code.security.sql-injection-basic",
        "name": "Basic SQL injection detection",
        "input": chat(
            _review(
                "def get_user(username):\n"
                "    query = f\"SELECT * FROM users WHERE username = '{username}'\"\n"
                "    return db.execute(query)",
                "python",
            ),
            system=SECURITY_SYSTEM,
        ),
        "expected": {"contains": ["sql", "injection"]},
        "evaluator": "contains",
        "tags": ["security", "sql-injection", "high-priority"],
    },
    {
        "id": "code.security.sql-injection-structured",
        "name": "SQL injection as structured findings",
        "input": chat(
            _review(
                "const searchProducts = (category) => {\n"
                "  let query = \"SELECT * FROM products WHERE 1=1\";\n"
                "  if (category) query += \" AND category = '\" + category + \"'\";\n"
                "  return db.query(query);\n"
                "};",
                "javascript",
            ),
            system=SECURITY_SYSTEM
            + ' Output JSON: { "vulnerabilities": [{ "type": string, "severity": "low"|"medium"|"high"|"critical",'
            ' "line": number, "description": string }] }',
        ),
        "expected": {"schema": FINDINGS_SCHEMA},
        "evaluator": "json_schema",
        "weight": 2,
        "tags": ["security", "sql-injection", "structured-output"],
    },
    {
        "id": "code.security.path-traversal",
        "name": "Path traversal detection",
        "input": chat(
            _review(
                "@app.get('/files')\n"
                "def read_file(name: str):\n"
                "    return open(os.path.join('/srv/uploads', name)).read()",
                "python",
            ),
            system=SECURITY_SYSTEM,
        ),
        "expected": {"contains": ["path", "traversal"]},
        "evaluator": "contains",
        "tags": ["security", "path-traversal"],
    },
    {
        "id": "code.security.secure-query",
        "name": "Correctly identify secure parameterized query",
        "input": chat(
            _review(
                "def get_user(username):\n"
                "    query = \"SELECT * FROM users WHERE username = %s\"\n"
                "    return db.execute(query, (username,))",
                "python",
            ),
            system=SECURITY_SYSTEM + " If the code is secure, say so.",
        ),
        "expected": {"contains": ["secure", "parameterized"], "notContains": ["vulnerability", "injection"]},
        "evaluator": "contains",
        "tags": ["security", "false-positive-check"],
    },
]

PERFORMANCE_CASES = [
    {
        "id": "code.performance.n-plus-one",
        "name": "N+1 query detection",
        "input": chat(
            _review(
                "def get_orders_with_items():\n"
                "    result = []\n"
                "    for order in Order.objects.all():\n"
                "        items = OrderItem.objects.filter(order_id=order.id)\n"
                "        result.append({'order': order, 'items': list(items)})\n"
                "    return result",
                "python",
            ),
            system=PERFORMANCE_SYSTEM,
        ),
        "expected": {"contains": ["n+1", "query"]},
        "evaluator": "semantic",
        "tags": ["performance", "database", "n-plus-one"],
    },
    {
        "id": "code.performance.memory-leak-listener",
        "name": "Event listener memory leak",
        "input": chat(
            _review(
                "useEffect(() => {\n"
                "  const handler = () => fetch(url).then(r => r.json()).then(setData);\n"
                "  window.addEventListener('focus', handler);\n"
                "}, [url]);",
                "jsx",
            ),
            system=PERFORMANCE_SYSTEM,
        ),
        "expected": {"contains": ["memory", "leak", "cleanup"]},
        "evaluator": "contains",
        "tags": ["performance", "memory", "react"],
    },
    {
        "id": "code.performance.quadratic-membership",
        "name": "Quadratic membership test",
        "input": chat(
            _review(
                "def common(a, b):\n"
                "    return [x for x in a if x in b]  # a and b are large lists",
                "python",
            ),
            system=PERFORMANCE_SYSTEM,
        ),
        "expected": {"pattern": r"\bset\b"},
        "evaluator": "regex",
        "tags": ["performance", "complexity"],
    },
]

BENCHMARKS = [
    {
        "id": "code.security-detection",
        "name": "Security Vulnerability Detection",
        "description": "Spot common vulnerabilities without flagging secure code",
        "version": "1.0.0",
        "taskType": "code",
        "category": "security",
        "testCases": SECURITY_CASES,
        "config": {"maxTokens": 500, "temperature": 0},
    },
    {
        "id": "code.performance-suggestions",
        "name": "Performance Issue Detection",
        "description": "Identify performance problems and suggest fixes",
        "version": "1.0.0",
        "taskType": "code",
        "category": "performance",
        "testCases": PERFORMANCE_CASES,
        "config": {"maxTokens": 500, "temperature": 0},
    },
]
