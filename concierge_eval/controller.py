"""Drive one question through a session: navigate, find input, type, submit, wait, extract."""
import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

from .actions import (
    INPUT_STRATEGIES,
    get_visible_inputs_count,
    inject_text,
    locate_chat_input,
    navigate,
    reload_page,
    submit_question,
    take_debug_screenshot,
    wait_for_input_ready,
)
from .config import CaptureSettings
from .detector import Sleep, await_completion
from .extractors import extract_response
from .models import CaptureResult, QuestionRecord, Severity, StepOutcome
from .session import SessionFactory, SessionHandle, session_scope
from .site import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class SessionController:
    """
    Per-question pipeline. Every failure inside a question comes back as an
    error-shaped CaptureResult; nothing escapes to the scheduler.
    """

    def __init__(
        self,
        settings: CaptureSettings,
        screenshots_dir: Path,
        vocab: Vocabulary = DEFAULT_VOCABULARY,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings
        self.screenshots_dir = screenshots_dir
        self.vocab = vocab
        self.sleep = sleep

    async def prepare(self, handle: SessionHandle, reload: bool = False) -> StepOutcome:
        """Load (or reload) the widget and resolve a ready input on the handle."""
        page = handle.page
        s = self.settings
        loaded = await (reload_page(page, s.navigation_timeout_ms) if reload else navigate(page, s.url, s.navigation_timeout_ms))
        if loaded.is_fatal:
            handle.input_selector = None
            return loaded

        located = await locate_chat_input(page, timeout_ms=s.locate_timeout_ms)
        if located.is_fatal:
            handle.input_selector = None
            visible = await get_visible_inputs_count(page)
            logger.warning("[%s] chat input not found (visible inputs: %d)", handle.label, visible)
            await take_debug_screenshot(page, self.screenshots_dir, f"{handle.label}-chat-interface-not-found")
            return located
        handle.input_selector = located.detail
        logger.debug("[%s] chat input: %s", handle.label, located.detail)

        ready = await wait_for_input_ready(page, located.detail, s.input_ready_timeout_ms)
        if ready.severity is Severity.DEGRADED:
            logger.warning("[%s] %s", handle.label, ready.message)
            await take_debug_screenshot(page, self.screenshots_dir, f"{handle.label}-input-not-ready")
        return ready

    async def ask(
        self,
        handle: SessionHandle,
        question: QuestionRecord,
        start: Optional[float] = None,
        warnings: Optional[list[str]] = None,
    ) -> CaptureResult:
        """Type, submit, wait and extract on an already prepared session."""
        start = time.perf_counter() if start is None else start
        warnings = list(warnings or [])
        page = handle.page
        s = self.settings
        selector = handle.input_selector
        if not selector:
            return CaptureResult.failure(question, "Chat input not located", _elapsed_ms(start), handle.label, tuple(warnings))
        try:
            injected = await inject_text(page, selector, question.text, s.type_delay_ms)
            if injected.is_fatal:
                await take_debug_screenshot(page, self.screenshots_dir, f"{handle.label}-input-question-error")
                return CaptureResult.failure(question, injected.message, _elapsed_ms(start), handle.label, tuple(warnings))
            if injected.detail != INPUT_STRATEGIES[0][0]:
                logger.info("[%s] input fell back to %s", handle.label, injected.detail)
            await self.sleep(s.post_input_wait_ms / 1000)

            submitted = await submit_question(page, selector)
            if submitted.is_fatal:
                return CaptureResult.failure(question, submitted.message, _elapsed_ms(start), handle.label, tuple(warnings))

            report = await await_completion(
                page,
                selector,
                max_attempts=s.max_attempts,
                poll_interval_ms=s.poll_interval_ms,
                settle_ms=s.settle_ms,
                vocab=self.vocab,
                sleep=self.sleep,
                label=handle.label,
            )
            if not report.ready:
                warnings.append(f"captured after timeout ({report.attempts} polls, {report.last_status})")

            extraction = await extract_response(page, self.vocab)
            if extraction.degraded:
                logger.warning("[%s] no valid response found for %s", handle.label, question.id)
                await take_debug_screenshot(page, self.screenshots_dir, f"{handle.label}-no-valid-response")
        except Exception as e:
            logger.error("[%s] question %s failed: %s", handle.label, question.id, e)
            return CaptureResult.failure(question, str(e), _elapsed_ms(start), handle.label, tuple(warnings))

        elapsed = _elapsed_ms(start)
        logger.info(
            "[%s] captured %s via %s (%d chars, %dms): %s",
            handle.label, question.id, extraction.method.value, len(extraction.text), elapsed, extraction.text[:80],
        )
        return CaptureResult.success(
            question,
            extraction.text,
            extraction.method,
            elapsed,
            completion_timed_out=not report.ready,
            session=handle.label,
            warnings=tuple(warnings),
            metadata={
                "input_method": injected.detail,
                "submit_method": submitted.detail,
                "poll_attempts": report.attempts,
                "api_responses": len(handle.api_responses),
            },
        )

    async def run(self, question: QuestionRecord, factory: SessionFactory, label: str) -> CaptureResult:
        """Isolated run: own session, opened here and closed before returning."""
        start = time.perf_counter()
        try:
            async with session_scope(factory, label) as handle:
                prepared = await self.prepare(handle)
                if prepared.is_fatal:
                    return CaptureResult.failure(question, prepared.message, _elapsed_ms(start), label)
                warnings = [prepared.message] if prepared.severity is Severity.DEGRADED else []
                return await self.ask(handle, question, start=start, warnings=warnings)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("[%s] session failed for %s: %s", label, question.id, e)
            return CaptureResult.failure(question, f"Session failed: {e}", _elapsed_ms(start), label)
