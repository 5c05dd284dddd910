"""Run stats, result files and checkpoint validation."""
import json

import pytest

from concierge_eval.metrics import ResultSink, RunStats, load_results, tally, validate_checkpoint
from concierge_eval.models import CaptureResult, ExtractionMethod, QuestionRecord


def q(i):
    return QuestionRecord(id=f"acrobat-{i}", text=f"Question {i}", expected_product="Acrobat Pro")


def sample_results():
    return [
        CaptureResult.success(q(1), "I recommend Adobe Acrobat Pro for editing PDFs.", ExtractionMethod.PRIMARY_SELECTOR, 1000),
        CaptureResult.success(q(2), "Adobe Acrobat is ideal for forms.", ExtractionMethod.PAGE_SCAN, 3000, completion_timed_out=True),
        CaptureResult.failure(q(3), "Chat input not found", 500),
    ]


class TestRunStats:
    def test_tally(self):
        stats = tally(RunStats(session_id="s", mode="parallel", concurrency=3, started_at="t"), sample_results())
        assert stats.attempted_count == 3
        assert stats.successful_count == 2
        assert stats.failed_count == 1
        assert stats.timed_out_count == 1
        # failures carry no useful timing
        assert stats.average_response_ms == 2000
        assert stats.extraction_methods == {"primary-selector": 1, "page-scan": 1, "error-fallback": 1}
        assert stats.summary_line() == "successful: 2, failed: 1, rate: 66.7%"
        assert stats.to_dict()["success_rate"] == 66.7

    def test_empty_run(self):
        stats = tally(RunStats(session_id="s", mode="sequential", concurrency=1, started_at="t"), [])
        assert stats.success_rate == 0.0
        assert stats.average_response_ms == 0


class TestResultSink:
    def test_final_file_is_self_describing(self, tmp_path):
        sink = ResultSink(tmp_path, "session-1", expected_total=3, config_snapshot={"concurrency": 3})
        stats = tally(RunStats(session_id="session-1", mode="parallel", concurrency=3, started_at="t"), sample_results())
        path = sink.write_final(sample_results(), stats)

        assert path == tmp_path / "test-results.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        meta = data["metadata"]
        assert meta["total_results"] == 3
        assert meta["complete"] is True
        assert meta["session_id"] == "session-1"
        assert meta["config"] == {"concurrency": 3}
        assert meta["stats"]["successful_count"] == 2
        assert data["results"][2]["error"] == "Chat input not found"
        assert data["results"][0]["extraction_method"] == "primary-selector"
        assert validate_checkpoint(data) == []
        assert not (tmp_path / "test-results.json.tmp").exists()

    def test_checkpoint_overwrites_by_label(self, tmp_path):
        sink = ResultSink(tmp_path, "session-1", expected_total=3)
        results = sample_results()
        sink.write_checkpoint(results[:1], "batch-1")
        path = sink.write_checkpoint(results[:2], "batch-1")

        assert path.parent == tmp_path / "checkpoints"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["metadata"]["total_results"] == 2
        assert data["metadata"]["complete"] is False
        assert validate_checkpoint(data) == ["incomplete: 2 of 3 results"]


class TestLoadAndValidate:
    def test_round_trip(self, tmp_path):
        sink = ResultSink(tmp_path, "s", expected_total=3)
        path = sink.write_final(sample_results())
        meta, loaded = load_results(path)
        assert meta["session_id"] == "s"
        assert [r.question_id for r in loaded] == ["acrobat-1", "acrobat-2", "acrobat-3"]
        assert loaded[1].completion_timed_out
        assert loaded[2].error == "Chat input not found"

    def test_bare_list_is_accepted(self, tmp_path):
        path = tmp_path / "legacy.json"
        path.write_text(json.dumps([r.to_dict() for r in sample_results()]), encoding="utf-8")
        meta, loaded = load_results(path)
        assert meta == {}
        assert len(loaded) == 3

    def test_bad_shape(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"rows": []}), encoding="utf-8")
        with pytest.raises(ValueError):
            load_results(path)

    def test_validation_problems(self):
        data = {
            "metadata": {"total_results": 5, "expected_total": 4},
            "results": [{"question_id": "a"}, {"question_id": "a"}, {"question_id": "b"}],
        }
        problems = validate_checkpoint(data)
        assert "total_results=5 but 3 results present" in problems
        assert "incomplete: 3 of 4 results" in problems
        assert "metadata has no written_at timestamp" in problems
        assert "duplicate question ids: a" in problems
        assert validate_checkpoint({"metadata": {}}) == ["missing results array"]
