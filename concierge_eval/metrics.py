"""Run metrics, checkpoint/result sink, JSON reader."""
import json
import os
import sys
from collections import Counter
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

from .models import CaptureResult, as_result_dicts, utc_now_iso


@dataclass
class RunStats:
    session_id: str
    mode: str  # parallel, sequential
    concurrency: int
    started_at: str
    finished_at: str = ""
    total_seconds: float = 0.0
    attempted_count: int = 0
    successful_count: int = 0
    failed_count: int = 0
    timed_out_count: int = 0  # captured after completion timeout
    average_response_ms: int = 0
    extraction_methods: dict = field(default_factory=dict)
    environment: dict = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        if not self.attempted_count:
            return 0.0
        return 100.0 * self.successful_count / self.attempted_count

    def summary_line(self) -> str:
        return f"successful: {self.successful_count}, failed: {self.failed_count}, rate: {self.success_rate:.1f}%"

    def to_dict(self) -> dict:
        d = asdict(self)
        d["success_rate"] = round(self.success_rate, 1)
        return d


def average_response_ms(results: Sequence[CaptureResult]) -> int:
    """Mean over successful results that carry a timing."""
    times = [r.response_time_ms for r in results if r.ok and r.response_time_ms]
    if not times:
        return 0
    return round(sum(times) / len(times))


def tally(stats: RunStats, results: Sequence[CaptureResult]) -> RunStats:
    stats.attempted_count = len(results)
    stats.successful_count = sum(1 for r in results if r.ok)
    stats.failed_count = stats.attempted_count - stats.successful_count
    stats.timed_out_count = sum(1 for r in results if r.completion_timed_out)
    stats.average_response_ms = average_response_ms(results)
    stats.extraction_methods = dict(Counter(r.extraction_method.value for r in results))
    return stats


def write_json(path: Path, data: Any) -> Path:
    """Write via a temp file and rename, so readers never see a half-written file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    os.replace(tmp, path)
    return path


class ResultSink:
    """
    Writes self-describing result files: a metadata block (counts, timestamp,
    run config) plus the result array. Checkpoints go to checkpoints/, the final
    set to test-results.json. Write failures propagate; they are orchestration errors.
    """

    def __init__(
        self,
        results_dir: Path,
        session_id: str,
        expected_total: int,
        config_snapshot: Optional[dict] = None,
    ):
        self.results_dir = results_dir
        self.session_id = session_id
        self.expected_total = expected_total
        self.config_snapshot = config_snapshot or {}
        self.written: list[Path] = []

    @property
    def checkpoint_dir(self) -> Path:
        return self.results_dir / "checkpoints"

    def _payload(self, results: Sequence[Any], label: str) -> dict:
        return {
            "metadata": {
                "total_results": len(results),
                "expected_total": self.expected_total,
                "complete": len(results) == self.expected_total,
                "written_at": utc_now_iso(),
                "session_id": self.session_id,
                "label": label,
                "config": self.config_snapshot,
            },
            "results": as_result_dicts(list(results)),
        }

    def write_checkpoint(self, results: Sequence[Any], label: str) -> Path:
        path = write_json(self.checkpoint_dir / f"test-results-{label}.json", self._payload(results, label))
        self.written.append(path)
        return path

    def write_final(self, results: Sequence[Any], stats: Optional[RunStats] = None) -> Path:
        payload = self._payload(results, "final")
        if stats is not None:
            payload["metadata"]["stats"] = stats.to_dict()
        path = write_json(self.results_dir / "test-results.json", payload)
        self.written.append(path)
        print(f"Wrote {path}", file=sys.stderr)
        return path


def load_results(path: Path) -> tuple[dict, list[CaptureResult]]:
    """Read a results or checkpoint file. Bare result arrays are accepted too."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, list):
        return {}, [CaptureResult.from_dict(r) for r in data]
    if not isinstance(data, dict) or not isinstance(data.get("results"), list):
        raise ValueError(f"{path}: expected an object with a 'results' array")
    return data.get("metadata") or {}, [CaptureResult.from_dict(r) for r in data["results"]]


def validate_checkpoint(data: dict) -> list[str]:
    """Problems with a loaded results file; empty when it is complete and consistent."""
    problems = []
    meta = data.get("metadata") or {}
    results = data.get("results")
    if not isinstance(results, list):
        return ["missing results array"]
    total = meta.get("total_results")
    if total is None:
        problems.append("metadata has no total_results")
    elif total != len(results):
        problems.append(f"total_results={total} but {len(results)} results present")
    expected = meta.get("expected_total")
    if expected is not None and len(results) < expected:
        problems.append(f"incomplete: {len(results)} of {expected} results")
    if not meta.get("written_at"):
        problems.append("metadata has no written_at timestamp")
    ids = [r.get("question_id") for r in results if isinstance(r, dict)]
    dupes = sorted({i for i in ids if ids.count(i) > 1 and i is not None})
    if dupes:
        problems.append(f"duplicate question ids: {', '.join(dupes)}")
    return problems
