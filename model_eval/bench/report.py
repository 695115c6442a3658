from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Union

from model_eval.bench.types import EvaluationResult


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def _cell(text: str, limit: int = 80) -> str:
    text = (text or "").replace("|", "\\|").replace("\n", " ")
    return text if len(text) <= limit else text[: limit - 3] + "..."


def render_markdown(result: EvaluationResult, title: Optional[str] = None) -> str:
    agg = result.aggregates
    lines: List[str] = []
    lines.append(f"# {title or f'Benchmark report: {result.benchmark_id}'}")
    lines.append("")
    lines.append(f"- Evaluation: `{result.id}`")
    lines.append(f"- Model: `{result.provider}/{result.model_id}`")
    lines.append(f"- Benchmark: `{result.benchmark_id}` v{result.benchmark_version}")
    lines.append(f"- Status: **{result.status}**")
    lines.append(f"- Started: {result.started_at}")
    if result.completed_at:
        lines.append(f"- Completed: {result.completed_at}")
    if result.error_message:
        lines.append(f"- Error: {result.error_message}")
    lines.append("")

    lines.append("## Aggregates")
    lines.append("")
    lines.append("| Metric | Value |")
    lines.append("|---|---|")
    lines.append(f"| Overall score | {agg.overall_score:.3f} |")
    lines.append(f"| Accuracy | {_pct(agg.accuracy)} |")
    lines.append(f"| Latency P50 (ms) | {agg.latency_p50_ms} |")
    lines.append(f"| Latency P95 (ms) | {agg.latency_p95_ms} |")
    lines.append(f"| Latency P99 (ms) | {agg.latency_p99_ms} |")
    lines.append(f"| Input tokens | {agg.total_input_tokens} |")
    lines.append(f"| Output tokens | {agg.total_output_tokens} |")
    lines.append("")

    lines.append("## Test cases")
    lines.append("")
    if not result.test_case_results:
        lines.append("_No test cases were run._")
        lines.append("")
        return "\n".join(lines)
    lines.append("| Test case | Passed | Score | Latency (ms) | Reason |")
    lines.append("|---|---|---|---|---|")
    for r in result.test_case_results:
        mark = "yes" if r.passed else "no"
        lines.append(f"| `{r.test_case_id}` | {mark} | {r.score:.2f} | {r.latency_ms} | {_cell(r.reason)} |")
    lines.append("")
    return "\n".join(lines)


def write_report(result: EvaluationResult, path: Union[str, Path]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(render_markdown(result), encoding="utf-8")
    return target
