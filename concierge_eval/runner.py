"""Batch scheduling across sessions (parallel or one reused session), logging setup, top-level capture run."""
import asyncio
import logging
import platform
import sys
import time
from pathlib import Path
from typing import Optional, Sequence, TypeVar

from playwright.async_api import async_playwright
from rich.logging import RichHandler

from .config import AppConfig, ExecutionConfig
from .controller import SessionController
from .detector import Sleep
from .metrics import ResultSink, RunStats, tally
from .models import CaptureResult, QuestionRecord, Severity, utc_now_iso
from .session import PlaywrightSessionFactory, SessionFactory, SessionHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")


def setup_logging(out_dir: Path) -> logging.Logger:
    """Fresh debug.log per run (DEBUG) plus rich console output (INFO)."""
    out_dir.mkdir(parents=True, exist_ok=True)
    log_path = out_dir / "debug.log"
    root = logging.getLogger("concierge_eval")
    root.setLevel(logging.DEBUG)
    root.handlers.clear()
    fh = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(fh)
    sh = RichHandler(rich_tracebacks=True, show_path=False)
    sh.setLevel(logging.INFO)
    root.addHandler(sh)
    return root


def partition(items: Sequence[T], size: int) -> list[list[T]]:
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def _truncate(questions: Sequence[QuestionRecord], limit: Optional[int]) -> list[QuestionRecord]:
    if limit is None:
        return list(questions)
    return list(questions[:max(limit, 0)])


class BatchScheduler:
    """
    Runs a question list to exactly one CaptureResult per question, in input order.

    Parallel: consecutive batches of `concurrency`, one fresh session per question,
    batch N+1 starts only after every task in batch N settled.
    Sequential: one session reused across questions, reloaded in between.
    """

    def __init__(
        self,
        controller: SessionController,
        factory: SessionFactory,
        sink: ResultSink,
        execution: Optional[ExecutionConfig] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.controller = controller
        self.factory = factory
        self.sink = sink
        self.execution = execution or ExecutionConfig()
        self.sleep = sleep

    async def run(self, questions: Sequence[QuestionRecord], concurrency: int, limit: Optional[int] = None) -> list[CaptureResult]:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        if concurrency > 1:
            return await self.run_parallel(questions, concurrency, limit)
        return await self.run_sequential(questions, limit)

    def _timeout_failure(self, question: QuestionRecord, exc: BaseException, label: str) -> CaptureResult:
        if isinstance(exc, asyncio.TimeoutError):
            message = f"Question timed out after {self.execution.question_timeout_s:.0f}s"
        else:
            message = f"Unexpected error: {exc!r}"
        return CaptureResult.failure(question, message, session=label)

    async def _run_isolated(self, question: QuestionRecord, label: str) -> CaptureResult:
        return await asyncio.wait_for(
            self.controller.run(question, self.factory, label),
            timeout=self.execution.question_timeout_s,
        )

    async def run_parallel(
        self,
        questions: Sequence[QuestionRecord],
        concurrency: int,
        limit: Optional[int] = None,
    ) -> list[CaptureResult]:
        selected = _truncate(questions, limit)
        batches = partition(selected, concurrency)
        total = len(selected)
        logger.info("Testing %d questions in %d batches (concurrency %d)", total, len(batches), concurrency)
        results: list[CaptureResult] = []
        for b_idx, batch in enumerate(batches):
            offset = len(results)
            labels = [f"q{offset + i + 1}" for i in range(len(batch))]
            logger.info("Batch %d/%d: %d questions", b_idx + 1, len(batches), len(batch))
            outcomes = await asyncio.gather(
                *(self._run_isolated(q, label) for q, label in zip(batch, labels)),
                return_exceptions=True,
            )
            # gather keeps argument order, so results line up with the batch regardless of finish order
            for i, (question, label, outcome) in enumerate(zip(batch, labels, outcomes)):
                if isinstance(outcome, BaseException):
                    logger.error("[%s] %s", label, outcome)
                    outcome = self._timeout_failure(question, outcome, label)
                results.append(outcome)
                self._log_result(offset + i + 1, total, outcome)
            self.sink.write_checkpoint(results, f"batch-{b_idx + 1}")
            if b_idx < len(batches) - 1:
                await self.sleep(self.execution.batch_pause_ms / 1000)
        self._report(results)
        return results

    async def _acquire(self, handle: Optional[SessionHandle], label: str) -> tuple[Optional[SessionHandle], Optional[str], list[str]]:
        """Open or reload the shared session. Returns (handle, fatal error, warnings)."""
        reload = handle is not None
        try:
            if handle is None:
                handle = await self.factory.open(label)
            outcome = await self.controller.prepare(handle, reload=reload)
        except Exception as e:
            if handle is not None:
                await handle.close()
            return None, f"Session failed: {e}", []
        if outcome.is_fatal:
            # Unknown page state; start the next question from a fresh session
            await handle.close()
            return None, outcome.message, []
        warnings = [outcome.message] if outcome.severity is Severity.DEGRADED else []
        return handle, None, warnings

    async def _ask_shared(
        self,
        handle: Optional[SessionHandle],
        question: QuestionRecord,
        label: str,
    ) -> tuple[Optional[SessionHandle], CaptureResult]:
        handle, error, warnings = await self._acquire(handle, label)
        if error is not None:
            return None, CaptureResult.failure(question, error, session=label)
        try:
            result = await asyncio.wait_for(
                self.controller.ask(handle, question, warnings=warnings),
                timeout=self.execution.question_timeout_s,
            )
        except Exception as e:
            await handle.close()
            return None, self._timeout_failure(question, e, label)
        return handle, result

    async def run_sequential(self, questions: Sequence[QuestionRecord], limit: Optional[int] = None) -> list[CaptureResult]:
        selected = _truncate(questions, limit)
        ex = self.execution
        batches = partition(selected, ex.sequential_batch_size) if selected else []
        total = len(selected)
        delay_s = self.controller.settings.delay_between_questions_ms / 1000
        logger.info("Testing %d questions on one session in %d batches", total, len(batches))
        results: list[CaptureResult] = []
        handle: Optional[SessionHandle] = None
        try:
            for b_idx, batch in enumerate(batches):
                for question in batch:
                    if results:
                        await self.sleep(delay_s)
                    handle, result = await self._ask_shared(handle, question, "seq")
                    results.append(result)
                    self._log_result(len(results), total, result)
                    if len(results) % ex.checkpoint_every == 0:
                        self.sink.write_checkpoint(results, f"intermediate-{len(results)}")
                self.sink.write_checkpoint(results, f"batch-{b_idx + 1}")
                if b_idx < len(batches) - 1:
                    await self.sleep(ex.sequential_batch_pause_ms / 1000)
        finally:
            if handle is not None:
                await handle.close()
        self._report(results)
        return results

    @staticmethod
    def _log_result(position: int, total: int, result: CaptureResult) -> None:
        if result.ok:
            suffix = " (after completion timeout)" if result.completion_timed_out else ""
            logger.info("[%d/%d] %s completed%s", position, total, result.question_id, suffix)
        else:
            logger.warning("[%d/%d] %s failed: %s", position, total, result.question_id, result.error)

    @staticmethod
    def _report(results: Sequence[CaptureResult]) -> None:
        ok = sum(1 for r in results if r.ok)
        failed = len(results) - ok
        rate = 100.0 * ok / len(results) if results else 0.0
        logger.info("successful: %d, failed: %d, rate: %.1f%%", ok, failed, rate)


def environment_info() -> dict:
    try:
        import playwright as pw
        playwright_version = getattr(pw, "__version__", "unknown")
    except Exception:
        playwright_version = "unknown"
    return {
        "python_version": sys.version.split()[0],
        "playwright_version": playwright_version,
        "platform": platform.platform(),
    }


async def run_capture(
    questions: Sequence[QuestionRecord],
    config: AppConfig,
    concurrency: Optional[int] = None,
    limit: Optional[int] = None,
    session_id: Optional[str] = None,
) -> tuple[list[CaptureResult], RunStats]:
    """Launch Playwright, run the scheduler, write the final result file; return results and stats."""
    concurrency = concurrency or config.execution.concurrency
    session_id = session_id or f"session-{int(time.time() * 1000)}"
    selected = _truncate(questions, limit)
    sink = ResultSink(
        config.output.results_dir,
        session_id,
        expected_total=len(selected),
        config_snapshot={
            "capture": config.capture.to_dict(),
            "execution": config.execution.to_dict(),
            "headless": config.browser.headless,
        },
    )
    controller = SessionController(config.capture, config.output.screenshots_dir)
    stats = RunStats(
        session_id=session_id,
        mode="parallel" if concurrency > 1 else "sequential",
        concurrency=concurrency,
        started_at=utc_now_iso(),
        environment=environment_info(),
    )
    run_start = time.perf_counter()
    async with async_playwright() as p:
        factory = PlaywrightSessionFactory(p.chromium, config.browser)
        scheduler = BatchScheduler(controller, factory, sink, config.execution)
        results = await scheduler.run(selected, concurrency)
    stats.finished_at = utc_now_iso()
    stats.total_seconds = round(time.perf_counter() - run_start, 2)
    tally(stats, results)
    sink.write_final(results, stats)
    return results, stats
