#!/usr/bin/env python3
"""Print a short summary of the newest results or checkpoint file. Run from project root."""
import json
import sys
from collections import Counter
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from concierge_eval.metrics import validate_checkpoint  # noqa: E402

RESULTS = PROJECT_ROOT / "data" / "results"


def newest_results_file(results_dir: Path):
    candidates = list(results_dir.glob("test-results*.json")) + list((results_dir / "checkpoints").glob("test-results-*.json"))
    if not candidates:
        return None
    return max(candidates, key=lambda p: p.stat().st_mtime)


def main() -> int:
    results_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else RESULTS
    print("--- Concierge results ---\n")

    path = newest_results_file(results_dir)
    if path is None:
        print(f"No results under {results_dir}")
        return 0
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"{path.name}: could not read ({e})")
        return 1

    if isinstance(data, list):
        data = {"results": data}
    meta = data.get("metadata") or {}
    results = data.get("results") or []
    print(f"File: {path.relative_to(results_dir) if path.is_relative_to(results_dir) else path}")
    print(f"  session: {meta.get('session_id', '?')}, label: {meta.get('label', '?')}, written: {meta.get('written_at', '?')}")
    print(f"  results: {len(results)} of {meta.get('expected_total', '?')}")

    ok = [r for r in results if not r.get("error")]
    print(f"  successful: {len(ok)}, failed: {len(results) - len(ok)}")
    methods = Counter(r.get("extraction_method", "?") for r in results)
    print(f"  extraction methods: {dict(methods)}")
    timed_out = sum(1 for r in results if r.get("completion_timed_out"))
    if timed_out:
        print(f"  captured after completion timeout: {timed_out}")
    print()

    for r in results[-5:]:
        status = "ERROR " + str(r.get("error")) if r.get("error") else (r.get("response_text") or "")[:100]
        print(f"  {r.get('question_id')}: {status}")
    print()

    problems = validate_checkpoint(data)
    if problems:
        print("Validation:")
        for p in problems:
            print(f"  - {p}")
        return 1
    print("Validation: complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
