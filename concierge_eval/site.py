"""Selectors, page scripts and text predicates for the concierge chat widget."""
import re
from dataclasses import dataclass, field
from typing import Optional

# Chat input: known widget id first, then generic fallbacks (order matters)
CHAT_INPUT_SELECTORS = [
    "#bc-input-field",
    'input[placeholder*="ask" i]',
    'input[placeholder*="question" i]',
    'textarea[placeholder*="ask" i]',
    'textarea[placeholder*="question" i]',
    '[placeholder*="message" i]',
    'input[type="text"]',
    "textarea",
    '[role="textbox"]',
]

SUBMIT_BUTTON_SELECTOR = 'button[type="submit"], .submit-button, [data-testid*="submit"]'
SEND_BUTTON_SELECTOR = 'button:has-text("Send"), button[aria-label*="send" i], .send-button'

# Response containers, tried in order; within one selector the newest match wins
RESPONSE_SELECTORS = [
    ".bc-response",
    ".bc-message",
    ".response",
    ".message",
    ".chat-message",
    '[data-testid*="message"]',
    '[data-testid*="response"]',
    ".bot-message",
    ".assistant-message",
    ".bc-output",
]

# One round trip per poll: body text plus whether the located input is enabled
READ_SIGNALS_JS = """(selector) => {
    const body = document.body ? document.body.innerText : '';
    let el = selector ? document.querySelector(selector) : null;
    if (!el) el = document.querySelector('#bc-input-field, input[type="text"], textarea');
    return { text: body || '', inputEnabled: !!el && !el.disabled };
}"""

INPUT_READY_JS = """(selector) => {
    const el = document.querySelector(selector);
    return !!el && !el.disabled && el.style.display !== 'none'
        && el.offsetWidth > 0 && el.offsetHeight > 0;
}"""

SET_VALUE_JS = """([selector, text]) => {
    const el = document.querySelector(selector);
    if (!el) throw new Error('input not found: ' + selector);
    el.value = text;
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}"""

FALLBACK_PREFIX = "Response capture failed. Page content: "
TOTAL_FAILURE_TEXT = "Complete response capture failure - check debug screenshots"

_NUMERIC_ONLY = re.compile(r"^[\d\s\-+*.,:;!?()%$#/]+$")


@dataclass(frozen=True)
class Vocabulary:
    """Phrase lists behind the completion and extraction heuristics.

    Swapping these changes which answers are accepted, so treat a new
    vocabulary as a behavior change, not a tuning knob.
    """

    # Full-page "still busy" markers for the completion detector
    busy_markers: tuple = ("generating", "knowledge base", "please wait")
    # Line-level loading phrases
    generating_phrases: tuple = (
        "generating response",
        "knowledge base",
        "please wait",
        "loading",
        "processing",
        "thinking",
        "one moment",
        "generating from our",
        "hold on",
    )
    ui_phrases: tuple = (
        "tell us what you",
        "or create",
        "type your message",
        "send message",
        "clear conversation",
        "start new chat",
    )
    chrome_phrases: tuple = ("copyright", "privacy policy", "terms")
    substance_keywords: tuple = ("adobe", "recommend", "suggest", "perfect", "ideal")
    brand: str = "adobe"
    products: tuple = (
        "photoshop", "illustrator", "premiere", "after effects", "lightroom",
        "indesign", "acrobat", "express", "substance", "dimension", "animate",
        "audition", "bridge", "character animator", "creative cloud",
    )
    recommendation_words: tuple = ("recommend", "suggest", "perfect", "ideal", "great", "best", "try", "use", "consider")
    _patterns: dict = field(default_factory=dict, compare=False, repr=False)

    def recommendation_pattern(self, with_brand: bool = True) -> re.Pattern:
        key = "rec+brand" if with_brand else "rec"
        if key not in self._patterns:
            words = list(self.recommendation_words) + ([self.brand] if with_brand and self.brand else [])
            self._patterns[key] = re.compile(r"\b(" + "|".join(re.escape(w) for w in words) + r")\b", re.I)
        return self._patterns[key]


DEFAULT_VOCABULARY = Vocabulary()


def is_generating_message(text: Optional[str], vocab: Vocabulary = DEFAULT_VOCABULARY) -> bool:
    if not text:
        return False
    lower = text.lower()
    return any(p in lower for p in vocab.generating_phrases)


def is_ui_text(text: Optional[str], vocab: Vocabulary = DEFAULT_VOCABULARY) -> bool:
    if not text:
        return False
    lower = text.lower()
    return any(p in lower for p in vocab.ui_phrases) or bool(_NUMERIC_ONLY.match(text.strip()))


def is_chrome_text(text: Optional[str], vocab: Vocabulary = DEFAULT_VOCABULARY) -> bool:
    """Page footer and legal boilerplate."""
    if not text:
        return False
    lower = text.lower()
    return any(p in lower for p in vocab.chrome_phrases)


def is_valid_response(text: Optional[str], vocab: Vocabulary = DEFAULT_VOCABULARY) -> bool:
    """Reject loading, UI and footer text; accept text that reads like a recommendation."""
    if not text or not isinstance(text, str):
        return False
    trimmed = text.strip()
    if len(trimmed) < 30:
        return False
    if is_generating_message(trimmed, vocab) or is_ui_text(trimmed, vocab) or is_chrome_text(trimmed, vocab):
        return False
    return bool(vocab.recommendation_pattern().search(trimmed))


def contains_brand_recommendation(text: Optional[str], vocab: Vocabulary = DEFAULT_VOCABULARY) -> bool:
    """Brand name, one of its products, and recommendation language all present."""
    if not text:
        return False
    lower = text.lower()
    if vocab.brand and vocab.brand not in lower:
        return False
    if not any(p in lower for p in vocab.products):
        return False
    return bool(vocab.recommendation_pattern(with_brand=False).search(text))


def is_busy(page_text: str, vocab: Vocabulary = DEFAULT_VOCABULARY) -> bool:
    lower = (page_text or "").lower()
    return any(m in lower for m in vocab.busy_markers)


def has_substantial_line(page_text: str, vocab: Vocabulary = DEFAULT_VOCABULARY) -> bool:
    """At least one long line that is not busy/UI/chrome text and carries a domain keyword."""
    for line in (page_text or "").split("\n"):
        lower = line.strip().lower()
        if len(lower) <= 30:
            continue
        if any(m in lower for m in vocab.busy_markers):
            continue
        if any(p in lower for p in vocab.ui_phrases) or is_chrome_text(lower, vocab):
            continue
        if any(k in lower for k in vocab.substance_keywords):
            return True
    return False
