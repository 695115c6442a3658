"""Storage for evaluation run records.

``EvaluationRepository`` is the contract the runner writes through; the
in-memory implementation backs the HTTP service and the tests. Status may only
move pending -> running -> {completed, failed}.
"""
from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from model_eval.bench.types import EVAL_STATUSES, EvaluationRun

ALLOWED_TRANSITIONS: Dict[str, tuple] = {
    "pending": ("running",),
    "running": ("completed", "failed"),
    "completed": (),
    "failed": (),
}


class InvalidTransitionError(ValueError):
    pass


def check_transition(current: str, new: str) -> None:
    # Each status is entered once; same-status rewrites are rejected too
    if new not in ALLOWED_TRANSITIONS.get(current, ()):
        raise InvalidTransitionError(f"Invalid status transition: {current} -> {new}")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EvaluationRepository(Protocol):
    async def create_evaluation(self, **fields: Any) -> EvaluationRun:
        ...

    async def update_evaluation(self, evaluation_id: str, **fields: Any) -> Optional[EvaluationRun]:
        ...

    async def get_evaluation(self, evaluation_id: str) -> Optional[EvaluationRun]:
        ...


class InMemoryEvaluationRepository:
    def __init__(self) -> None:
        self._records: Dict[str, EvaluationRun] = {}

    async def create_evaluation(self, **fields: Any) -> EvaluationRun:
        status = fields.get("status", "pending")
        if status not in ("pending", "running"):
            raise InvalidTransitionError(f"New evaluations start pending or running, got {status}")
        fields.setdefault("id", str(uuid.uuid4()))
        fields.setdefault("created_at", _now())
        record = EvaluationRun(**fields)
        self._records[record.id] = record
        return record

    async def update_evaluation(self, evaluation_id: str, **fields: Any) -> Optional[EvaluationRun]:
        current = self._records.get(evaluation_id)
        if current is None:
            return None
        if "status" in fields:
            if fields["status"] not in EVAL_STATUSES:
                raise ValueError(f"Unknown status: {fields['status']}")
            check_transition(current.status, fields["status"])
        fields.pop("id", None)
        updated = replace(current, **fields)
        self._records[evaluation_id] = updated
        return updated

    async def get_evaluation(self, evaluation_id: str) -> Optional[EvaluationRun]:
        return self._records.get(evaluation_id)

    async def query_evaluations(
        self,
        provider: Optional[str] = None,
        model_id: Optional[str] = None,
        benchmark_id: Optional[str] = None,
        status: Optional[str] = None,
        org_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[EvaluationRun]:
        rows = [
            r for r in self._records.values()
            if (provider is None or r.provider == provider)
            and (model_id is None or r.model_id == model_id)
            and (benchmark_id is None or r.benchmark_id == benchmark_id)
            and (status is None or r.status == status)
            and (org_id is None or r.org_id == org_id)
        ]
        rows.sort(key=lambda r: r.completed_at or r.started_at, reverse=True)
        return rows[offset : offset + limit]

    async def get_latest_evaluation(self, provider: str, model_id: str, benchmark_id: str) -> Optional[EvaluationRun]:
        rows = await self.query_evaluations(
            provider=provider, model_id=model_id, benchmark_id=benchmark_id, status="completed", limit=1
        )
        return rows[0] if rows else None

    async def delete_old_evaluations(self, older_than: datetime) -> int:
        stale = [k for k, r in self._records.items() if (r.created_at or r.started_at) <= older_than]
        for k in stale:
            del self._records[k]
        return len(stale)

    def __len__(self) -> int:
        return len(self._records)
