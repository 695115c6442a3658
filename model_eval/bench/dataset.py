from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Iterator, List, Union

from model_eval.bench.types import BenchmarkDefinition, DatasetError


class BenchmarkFile:
    """Benchmark definitions stored on disk.

    ``.json`` holds one definition or a list of them; ``.jsonl`` holds one
    definition per line.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Benchmark file not found: {self.path}")

    def _objects(self) -> Iterator[dict]:
        with self.path.open("r", encoding="utf-8") as f:
            if self.path.suffix == ".jsonl":
                for lineno, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        yield json.loads(line)
                    except json.JSONDecodeError as e:
                        raise DatasetError(f"{self.path}:{lineno}: invalid JSON: {e}") from e
                return
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise DatasetError(f"{self.path}: invalid JSON: {e}") from e
        if isinstance(data, list):
            yield from data
        else:
            yield data

    def __iter__(self) -> Iterator[BenchmarkDefinition]:
        for obj in self._objects():
            yield BenchmarkDefinition.from_dict(obj)

    def load_all(self) -> List[BenchmarkDefinition]:
        return list(iter(self))


def load_directory(path: Union[str, Path]) -> List[BenchmarkDefinition]:
    root = Path(path)
    if not root.is_dir():
        raise FileNotFoundError(f"Benchmark directory not found: {root}")
    out: List[BenchmarkDefinition] = []
    for file in sorted(root.iterdir()):
        if file.suffix in (".json", ".jsonl"):
            out.extend(BenchmarkFile(file).load_all())
    return out


def dump_benchmarks(benchmarks: Iterable[BenchmarkDefinition], path: Union[str, Path]) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as f:
        for b in benchmarks:
            f.write(json.dumps(b.to_dict()) + "\n")
