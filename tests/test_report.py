from model_eval.bench.report import render_markdown, write_report
from model_eval.bench.types import (
    Aggregates,
    EvalRunConfig,
    EvaluationResult,
    TestCaseOutput,
    TestCaseResult,
)


def _result(results=(), error=None) -> EvaluationResult:
    config = EvalRunConfig(benchmark_id="reasoning.multi-step", provider="mock", model_id="mock-1")
    return EvaluationResult(
        id="eval-1",
        provider="mock",
        model_id="mock-1",
        benchmark_id="reasoning.multi-step",
        benchmark_version="1.0.0",
        status="failed" if error else "completed",
        aggregates=Aggregates(overall_score=0.8125, accuracy=0.5, latency_p50_ms=120, latency_p95_ms=300),
        test_case_results=tuple(results),
        run_config=config,
        org_id=None,
        scope="global",
        started_at="2026-01-01T00:00:00+00:00",
        completed_at="2026-01-01T00:00:05+00:00",
        error_message=error,
    )


def test_render_headline_and_rows():
    rows = [
        TestCaseResult("age", TestCaseOutput("20"), True, 1.0, "All expected content found", 120, 10, 5),
        TestCaseResult("chain", TestCaseOutput(""), False, 0.0, "Missing: \"a|b\"\nsecond line", 0),
    ]
    md = render_markdown(_result(rows))
    assert md.startswith("# Benchmark report: reasoning.multi-step")
    assert "- Model: `mock/mock-1`" in md
    assert "| Overall score | 0.812 |" in md or "| Overall score | 0.813 |" in md
    assert "| Accuracy | 50.0% |" in md
    assert "| `age` | yes | 1.00 | 120 | All expected content found |" in md
    # Pipes are escaped and newlines flattened so the table stays intact
    assert '| `chain` | no | 0.00 | 0 | Missing: "a\\|b" second line |' in md
    assert "- Error:" not in md


def test_render_empty_and_failed():
    md = render_markdown(_result(error="provider exploded"), title="Nightly")
    assert md.startswith("# Nightly")
    assert "- Error: provider exploded" in md
    assert "_No test cases were run._" in md
    assert "| Test case |" not in md


def test_long_reason_is_truncated():
    long_reason = "x" * 200
    rows = [TestCaseResult("long", TestCaseOutput(""), False, 0.0, long_reason)]
    md = render_markdown(_result(rows))
    assert ("x" * 77 + "...") in md
    assert ("x" * 78) not in md


def test_write_report_creates_parent_dirs(tmp_path):
    target = tmp_path / "nested" / "report.md"
    path = write_report(_result(), target)
    assert path == target
    assert target.read_text(encoding="utf-8").startswith("# Benchmark report")
