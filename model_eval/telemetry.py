from prometheus_client import Counter, Gauge, Histogram

# HTTP request metrics
HTTP_REQUESTS_TOTAL = Counter(
    "modeleval_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_class"],
)
HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "modeleval_http_request_duration_seconds",
    "Duration of HTTP requests in seconds",
    ["method", "path"],
)

# Benchmark run metrics
RUNS_TOTAL = Counter("modeleval_runs_total", "Benchmark runs by terminal status", ["status"])
RUNS_IN_PROGRESS = Gauge("modeleval_runs_in_progress", "Benchmark runs currently executing")
TEST_CASES_TOTAL = Counter(
    "modeleval_test_cases_total",
    "Executed test cases by outcome",
    ["outcome"],
)
TEST_CASE_LATENCY_SECONDS = Histogram(
    "modeleval_test_case_latency_seconds",
    "Provider latency per test case in seconds",
    ["provider"],
)
PROVIDER_RETRIES_TOTAL = Counter("modeleval_provider_retries_total", "Provider call retries")
PROVIDER_TIMEOUTS_TOTAL = Counter("modeleval_provider_timeouts_total", "Provider calls abandoned on timeout")
