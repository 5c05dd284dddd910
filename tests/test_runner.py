"""Batch scheduling: order, isolation, bounded concurrency, checkpoints, session reuse."""
import asyncio
import json

import pytest

from concierge_eval.config import CaptureSettings, ExecutionConfig
from concierge_eval.controller import SessionController
from concierge_eval.metrics import ResultSink
from concierge_eval.models import CaptureResult, ExtractionMethod, QuestionRecord
from concierge_eval.runner import BatchScheduler, partition
from tests.fakes import FakePage, FakeSessionFactory, RecordingSleep, answer_stage, generating_stage


def make_questions(n):
    return [QuestionRecord(id=f"p-{i}", text=f"Which app should I pick for project {i}?") for i in range(1, n + 1)]


def echo(question: str) -> str:
    return f"I recommend Adobe Photoshop for this request: {question}"


@pytest.fixture
def sink(tmp_path):
    return ResultSink(tmp_path / "results", "session-test", expected_total=0)


def make_scheduler(sink, factory, tmp_path, execution=None, controller=None):
    controller = controller or SessionController(CaptureSettings(max_attempts=5), tmp_path / "shots", sleep=RecordingSleep())
    pause = RecordingSleep()
    scheduler = BatchScheduler(controller, factory, sink, execution or ExecutionConfig(), sleep=pause)
    return scheduler, pause


def checkpoint_sizes(sink):
    sizes = {}
    for path in sink.written:
        data = json.loads(path.read_text(encoding="utf-8"))
        sizes[data["metadata"]["label"]] = data["metadata"]["total_results"]
    return sizes


class TestPartition:
    def test_splits_in_order(self):
        assert partition([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert partition([], 3) == []

    def test_rejects_zero(self):
        with pytest.raises(ValueError):
            partition([1], 0)


class TestParallel:
    def test_batches_checkpoints_and_peak(self, sink, tmp_path):
        factory = FakeSessionFactory(page_for=lambda label: FakePage(respond=echo))
        scheduler, pause = make_scheduler(sink, factory, tmp_path)
        questions = make_questions(10)

        results = asyncio.run(scheduler.run(questions, concurrency=3))

        assert [r.question_id for r in results] == [q.id for q in questions]
        assert all(r.ok for r in results)
        assert factory.peak == 3
        assert factory.open_now == 0
        assert len(factory.opened) == 10
        assert checkpoint_sizes(sink) == {"batch-1": 3, "batch-2": 6, "batch-3": 9, "batch-4": 10}
        # pause between batches, none after the last
        assert pause.calls == [1.0, 1.0, 1.0]

    def test_each_session_answers_its_own_question(self, sink, tmp_path):
        factory = FakeSessionFactory(page_for=lambda label: FakePage(respond=echo))
        scheduler, _ = make_scheduler(sink, factory, tmp_path)
        questions = make_questions(6)

        results = asyncio.run(scheduler.run(questions, concurrency=3))

        for question, result in zip(questions, results):
            assert result.response_text == echo(question.text)
            assert result.question == question.text

    def test_order_kept_when_first_question_finishes_last(self, sink, tmp_path):
        def page_for(label):
            if label == "q1":
                return FakePage(stages=[generating_stage()] * 3 + [answer_stage()])
            return FakePage()

        factory = FakeSessionFactory(page_for=page_for)
        scheduler, _ = make_scheduler(sink, factory, tmp_path)
        questions = make_questions(3)

        results = asyncio.run(scheduler.run(questions, concurrency=3))

        assert factory.closed[-1] == "q1"
        assert [r.question_id for r in results] == ["p-1", "p-2", "p-3"]
        assert all(r.ok for r in results)

    def test_failures_never_drop_results(self, sink, tmp_path):
        def page_for(label):
            if label == "q2":
                return FakePage(goto_error=RuntimeError("connection reset"))
            if label == "q4":
                return FakePage(input_selectors=())
            return FakePage()

        factory = FakeSessionFactory(page_for=page_for, fail_labels=("q5",))
        scheduler, _ = make_scheduler(sink, factory, tmp_path)
        questions = make_questions(5)

        results = asyncio.run(scheduler.run(questions, concurrency=2))

        assert len(results) == 5
        assert [r.ok for r in results] == [True, False, True, False, False]
        assert results[1].error.startswith("Navigation to")
        assert results[3].error == "Chat input not found"
        assert results[4].error.startswith("Session failed")
        assert factory.open_now == 0

    def test_question_timeout_and_unexpected_errors(self, sink, tmp_path):
        class StubController:
            async def run(self, question, factory, label):
                if label == "q2":
                    await asyncio.sleep(1)
                if label == "q3":
                    raise RuntimeError("boom")
                return CaptureResult.success(question, "I recommend Adobe Express.", ExtractionMethod.PRIMARY_SELECTOR, 5)

        scheduler, _ = make_scheduler(
            sink, FakeSessionFactory(), tmp_path,
            execution=ExecutionConfig(question_timeout_s=0.01),
            controller=StubController(),
        )
        results = asyncio.run(scheduler.run(make_questions(3), concurrency=3))

        assert results[0].ok
        assert results[1].error.startswith("Question timed out")
        assert results[2].error == "Unexpected error: RuntimeError('boom')"

    def test_rejects_zero_concurrency(self, sink, tmp_path):
        scheduler, _ = make_scheduler(sink, FakeSessionFactory(), tmp_path)
        with pytest.raises(ValueError):
            asyncio.run(scheduler.run(make_questions(1), concurrency=0))

    def test_limit_truncates(self, sink, tmp_path):
        scheduler, _ = make_scheduler(sink, FakeSessionFactory(), tmp_path)
        results = asyncio.run(scheduler.run(make_questions(5), concurrency=2, limit=3))
        assert [r.question_id for r in results] == ["p-1", "p-2", "p-3"]


class TestSequential:
    def test_one_session_reloaded_between_questions(self, sink, tmp_path):
        factory = FakeSessionFactory(page_for=lambda label: FakePage(respond=echo))
        scheduler, pause = make_scheduler(sink, factory, tmp_path)
        questions = make_questions(7)

        results = asyncio.run(scheduler.run(questions, concurrency=1))

        assert [r.question_id for r in results] == [q.id for q in questions]
        assert [r.response_text for r in results] == [echo(q.text) for q in questions]
        assert factory.opened == ["seq"]
        page = factory.pages["seq"][0]
        assert page.gotos == 1
        assert page.reloads == 6
        assert factory.closed == ["seq"]
        assert [p.name for p in sink.written] == [
            "test-results-intermediate-5.json",
            "test-results-batch-1.json",
            "test-results-batch-2.json",
        ]
        # 8s between questions, 5s between batches of five
        assert pause.calls == [8.0] * 4 + [5.0] + [8.0] * 2

    def test_fresh_session_after_navigation_failure(self, sink, tmp_path):
        pages = iter([FakePage(goto_error=RuntimeError("dns failure")), FakePage(), FakePage()])
        factory = FakeSessionFactory(page_for=lambda label: next(pages))
        scheduler, _ = make_scheduler(sink, factory, tmp_path)

        results = asyncio.run(scheduler.run(make_questions(3), concurrency=1))

        assert [r.ok for r in results] == [False, True, True]
        assert results[0].error.startswith("Navigation to")
        assert factory.opened == ["seq", "seq"]
        assert factory.pages["seq"][1].reloads == 1
        assert factory.open_now == 0
