"""Navigate, find the chat input, type, submit, screenshot."""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

from playwright.async_api import Page

from .models import StepOutcome
from .site import (
    CHAT_INPUT_SELECTORS,
    INPUT_READY_JS,
    SEND_BUTTON_SELECTOR,
    SET_VALUE_JS,
    SUBMIT_BUTTON_SELECTOR,
)

logger = logging.getLogger(__name__)

# (page, selector, text, keystroke delay ms)
InputStrategy = Callable[[Page, str, str, int], Awaitable[None]]
# (page, selector)
SubmitStrategy = Callable[[Page, str], Awaitable[None]]


async def navigate(page: Page, url: str, timeout_ms: int = 30000) -> StepOutcome:
    try:
        await page.goto(url, wait_until="networkidle", timeout=timeout_ms)
        return StepOutcome.ok("navigate", detail=url)
    except Exception as e:
        return StepOutcome.fatal("navigate", f"Navigation to {url} failed: {e}")


async def reload_page(page: Page, timeout_ms: int = 30000) -> StepOutcome:
    try:
        await page.reload(wait_until="networkidle", timeout=timeout_ms)
        return StepOutcome.ok("reload")
    except Exception as e:
        return StepOutcome.fatal("reload", f"Page reload failed: {e}")


async def locate_chat_input(
    page: Page,
    selectors: Sequence[str] = CHAT_INPUT_SELECTORS,
    timeout_ms: int = 5000,
) -> StepOutcome:
    """
    Give the primary selector time to render, then take the first candidate that is
    visible and enabled. detail carries the winning selector.
    """
    try:
        await page.locator(selectors[0]).first.wait_for(state="visible", timeout=timeout_ms)
    except Exception:
        logger.debug("Primary input %s not visible after %dms; scanning fallbacks", selectors[0], timeout_ms)
    for sel in selectors:
        try:
            inp = page.locator(sel).first
            if await inp.count() == 0:
                continue
            if await inp.is_visible() and await inp.is_enabled():
                return StepOutcome.ok("locate-input", detail=sel)
        except Exception as e:
            logger.debug("Input candidate %s failed: %s", sel, e)
    return StepOutcome.fatal("locate-input", "Chat input not found")


async def wait_for_input_ready(page: Page, selector: str, timeout_ms: int = 15000) -> StepOutcome:
    """Visible, enabled, non-zero size. A miss here is a warning, not a failure."""
    try:
        await page.wait_for_function(INPUT_READY_JS, arg=selector, timeout=timeout_ms)
        return StepOutcome.ok("input-ready")
    except Exception as e:
        return StepOutcome.degraded("input-ready", f"Input ready check failed, continuing: {e}")


async def _fill_and_type(page: Page, selector: str, text: str, delay_ms: int) -> None:
    inp = page.locator(selector).first
    await inp.fill("", timeout=10000)
    await inp.press_sequentially(text, delay=delay_ms)


async def _keyboard_type(page: Page, selector: str, text: str, delay_ms: int) -> None:
    await page.locator(selector).first.focus()
    await page.keyboard.press("Control+A")
    await page.keyboard.press("Delete")
    await page.keyboard.type(text, delay=delay_ms)


async def _set_value_script(page: Page, selector: str, text: str, delay_ms: int) -> None:
    # Some widget frameworks swallow synthetic keystrokes; assign value and fire events
    await page.evaluate(SET_VALUE_JS, [selector, text])


INPUT_STRATEGIES: list[tuple[str, InputStrategy]] = [
    ("fill-and-type", _fill_and_type),
    ("keyboard", _keyboard_type),
    ("set-value", _set_value_script),
]


async def inject_text(
    page: Page,
    selector: str,
    text: str,
    delay_ms: int = 50,
    strategies: Sequence[tuple[str, InputStrategy]] = INPUT_STRATEGIES,
) -> StepOutcome:
    """First strategy that does not raise wins; detail carries its name."""
    for name, strategy in strategies:
        try:
            await strategy(page, selector, text, delay_ms)
            return StepOutcome.ok("inject", detail=name)
        except Exception as e:
            logger.debug("Input method %s failed: %s", name, e)
    return StepOutcome.fatal("inject", "All input methods failed")


async def _press_enter(page: Page, selector: str) -> None:
    await page.locator(selector).first.press("Enter")


async def _click_button(page: Page, button_selector: str) -> None:
    btn = page.locator(button_selector).first
    if await btn.count() == 0:
        raise LookupError(f"no button for {button_selector}")
    await btn.click(timeout=5000)


async def _click_submit(page: Page, selector: str) -> None:
    await _click_button(page, SUBMIT_BUTTON_SELECTOR)


async def _click_send(page: Page, selector: str) -> None:
    await _click_button(page, SEND_BUTTON_SELECTOR)


SUBMIT_STRATEGIES: list[tuple[str, SubmitStrategy]] = [
    ("enter-key", _press_enter),
    ("submit-button", _click_submit),
    ("send-button", _click_send),
]


async def submit_question(
    page: Page,
    selector: str,
    strategies: Sequence[tuple[str, SubmitStrategy]] = SUBMIT_STRATEGIES,
) -> StepOutcome:
    for name, strategy in strategies:
        try:
            await strategy(page, selector)
            return StepOutcome.ok("submit", detail=name)
        except Exception as e:
            logger.debug("Submit method %s failed: %s", name, e)
    return StepOutcome.fatal("submit", "Could not submit question - no valid submission method found")


async def take_debug_screenshot(page: Page, out_dir: Path, context_label: str) -> Optional[Path]:
    """Save <context>-<UTC timestamp>.png; diagnostics only, never raises."""
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        ts = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
        path = out_dir / f"{context_label}-{ts}.png"
        await page.screenshot(path=str(path))
        logger.info("Debug screenshot saved: %s", path)
        return path
    except Exception as e:
        logger.debug("Screenshot %s failed: %s", context_label, e)
        return None


async def get_visible_inputs_count(page: Page) -> int:
    try:
        return await page.evaluate("""() => {
            return document.querySelectorAll('input:not([type=hidden]), textarea, [role="textbox"]').length;
        }""")
    except Exception:
        return 0
