"""Response extraction (container selectors, page line scan, brand scan, fallback) and API response capture."""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from playwright.async_api import Page

from .models import ExtractionMethod
from .site import (
    DEFAULT_VOCABULARY,
    FALLBACK_PREFIX,
    RESPONSE_SELECTORS,
    TOTAL_FAILURE_TEXT,
    Vocabulary,
    contains_brand_recommendation,
    is_chrome_text,
    is_generating_message,
    is_valid_response,
)

logger = logging.getLogger(__name__)

# Per-session list of captured JSON API responses; passed in, never module-level
ApiResponseLog = list

API_URL_HINTS = ("api", "chat", "assistant")


@dataclass(frozen=True)
class PageSnapshot:
    """Everything extraction looks at, read once from a settled page."""

    containers: tuple = ()  # ((selector, (text, ...)), ...) in document order
    body_text: str = ""


@dataclass(frozen=True)
class Extraction:
    text: str
    method: ExtractionMethod

    @property
    def degraded(self) -> bool:
        return self.method is ExtractionMethod.ERROR_FALLBACK


async def snapshot_page(page: Page, selectors: Sequence[str] = RESPONSE_SELECTORS) -> PageSnapshot:
    containers = []
    for sel in selectors:
        try:
            texts = await page.locator(sel).all_inner_texts()
        except Exception as e:
            logger.debug("Response selector %s failed: %s", sel, e)
            continue
        if texts:
            containers.append((sel, tuple(texts)))
    try:
        body = await page.inner_text("body")
    except Exception as e:
        logger.debug("Body text read failed: %s", e)
        body = ""
    return PageSnapshot(containers=tuple(containers), body_text=body or "")


def _from_containers(snapshot: PageSnapshot, vocab: Vocabulary) -> Optional[str]:
    for _sel, texts in snapshot.containers:
        # Newest rendered message first
        for text in reversed(texts):
            if is_valid_response(text, vocab):
                return text
    return None


def _from_page_lines(snapshot: PageSnapshot, vocab: Vocabulary) -> Optional[str]:
    candidates = [line.strip() for line in snapshot.body_text.split("\n") if is_valid_response(line.strip(), vocab)]
    if not candidates:
        return None
    # Longest line is most likely the whole answer rather than a fragment
    return max(candidates, key=len)


def _from_brand_lines(snapshot: PageSnapshot, vocab: Vocabulary) -> Optional[str]:
    for line in snapshot.body_text.split("\n"):
        trimmed = line.strip()
        if len(trimmed) <= 50 or is_generating_message(trimmed, vocab) or is_chrome_text(trimmed, vocab):
            continue
        if contains_brand_recommendation(trimmed, vocab):
            return trimmed
    return None


EXTRACTION_LAYERS = [
    (ExtractionMethod.PRIMARY_SELECTOR, _from_containers),
    (ExtractionMethod.PAGE_SCAN, _from_page_lines),
    (ExtractionMethod.HEURISTIC_FALLBACK, _from_brand_lines),
]


def fallback_text(body_text: str) -> str:
    if body_text and body_text.strip():
        return f"{FALLBACK_PREFIX}{body_text.strip()[:200]}..."
    return TOTAL_FAILURE_TEXT


def choose_response(snapshot: PageSnapshot, vocab: Vocabulary = DEFAULT_VOCABULARY) -> Extraction:
    """Pure: same snapshot, same answer. Always returns non-empty text."""
    for method, layer in EXTRACTION_LAYERS:
        text = layer(snapshot, vocab)
        if text and len(text.strip()) >= 20 and not is_generating_message(text, vocab):
            return Extraction(text=text.strip(), method=method)
    return Extraction(text=fallback_text(snapshot.body_text), method=ExtractionMethod.ERROR_FALLBACK)


async def extract_response(page: Page, vocab: Vocabulary = DEFAULT_VOCABULARY) -> Extraction:
    """Never raises; a page that cannot be read at all yields the marked fallback."""
    try:
        snapshot = await snapshot_page(page)
    except Exception as e:
        logger.warning("Snapshot failed: %s", e)
        snapshot = PageSnapshot()
    return choose_response(snapshot, vocab)


def install_api_listener(page: Page, log: ApiResponseLog) -> None:
    """Record JSON responses from chat/assistant endpoints into this session's log."""

    async def on_response(response: Any) -> None:
        url = response.url
        if not any(h in url for h in API_URL_HINTS):
            return
        try:
            ct = response.headers.get("content-type") or ""
            if "json" not in ct:
                return
            data = json.loads(await response.text())
        except Exception:
            # Bodies of redirects and aborted requests are unreadable
            return
        log.append({
            "url": url,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    page.on("response", on_response)
