"""Completion detection: poll three page signals until all agree, or the budget runs out."""
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from playwright.async_api import Page

from .site import DEFAULT_VOCABULARY, READ_SIGNALS_JS, Vocabulary, has_substantial_line, is_busy

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class CompletionState(str, Enum):
    BUSY = "busy"
    READY = "ready"
    TIMED_OUT = "timed-out"


@dataclass(frozen=True)
class PageSignals:
    text: str
    input_enabled: bool


@dataclass(frozen=True)
class CompletionReport:
    state: CompletionState
    attempts: int
    elapsed_ms: int
    last_status: str = ""

    @property
    def ready(self) -> bool:
        return self.state is CompletionState.READY


def describe(signals: PageSignals, vocab: Vocabulary = DEFAULT_VOCABULARY) -> str:
    if is_busy(signals.text, vocab):
        return "still generating"
    if not signals.input_enabled:
        return "input disabled"
    if not has_substantial_line(signals.text, vocab):
        return "waiting for substantial response"
    return "complete"


def evaluate_signals(
    signals: PageSignals,
    attempt: int,
    max_attempts: int,
    vocab: Vocabulary = DEFAULT_VOCABULARY,
) -> CompletionState:
    """READY needs all three signals in the same sample; otherwise BUSY until the budget is spent."""
    if signals.input_enabled and not is_busy(signals.text, vocab) and has_substantial_line(signals.text, vocab):
        return CompletionState.READY
    if attempt >= max_attempts:
        return CompletionState.TIMED_OUT
    return CompletionState.BUSY


async def read_signals(page: Page, input_selector: Optional[str]) -> PageSignals:
    data = await page.evaluate(READ_SIGNALS_JS, input_selector)
    data = data or {}
    return PageSignals(text=str(data.get("text") or ""), input_enabled=bool(data.get("inputEnabled")))


async def await_completion(
    page: Page,
    input_selector: Optional[str] = None,
    max_attempts: int = 60,
    poll_interval_ms: int = 2000,
    settle_ms: int = 2000,
    vocab: Vocabulary = DEFAULT_VOCABULARY,
    sleep: Sleep = asyncio.sleep,
    label: str = "",
) -> CompletionReport:
    """
    Never raises. Waits at most max_attempts polls, then the settle delay.
    A failed signal read counts as a busy sample.
    """
    start = time.perf_counter()
    state = CompletionState.BUSY
    status = ""
    attempt = 0
    while attempt < max_attempts:
        await sleep(poll_interval_ms / 1000)
        attempt += 1
        try:
            signals = await read_signals(page, input_selector)
            state = evaluate_signals(signals, attempt, max_attempts, vocab)
            status = describe(signals, vocab)
        except Exception as e:
            status = f"signal read failed: {e}"
            state = CompletionState.TIMED_OUT if attempt >= max_attempts else CompletionState.BUSY
        if state is CompletionState.READY:
            logger.debug("[%s] complete response detected after %d polls", label, attempt)
            break
        if attempt % 5 == 0:
            logger.debug("[%s] %s... (poll %d/%d)", label, status, attempt, max_attempts)
    if state is not CompletionState.READY:
        state = CompletionState.TIMED_OUT
        logger.warning(
            "[%s] no complete response after %d polls (%s); capturing whatever is available",
            label, attempt, status,
        )
    # Trailing DOM mutations
    await sleep(settle_ms / 1000)
    elapsed_ms = int((time.perf_counter() - start) * 1000)
    return CompletionReport(state=state, attempts=attempt, elapsed_ms=elapsed_ms, last_status=status)
