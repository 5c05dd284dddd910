"""Scripted stand-ins for a Playwright page and a browser session factory."""
import asyncio
from typing import Callable, Optional

from concierge_eval.session import SessionHandle
from concierge_eval.site import CHAT_INPUT_SELECTORS, READ_SIGNALS_JS, SET_VALUE_JS

PRIMARY_INPUT = CHAT_INPUT_SELECTORS[0]

GENERATING_TEXT = "Concierge\nGenerating response from our knowledge base..."
FINAL_ANSWER = "I recommend Adobe Photoshop for retouching your product photos and removing backgrounds."


def stage(text: str, input_enabled: bool = True, containers: Optional[dict] = None) -> dict:
    return {"text": text, "input_enabled": input_enabled, "containers": containers or {}}


def generating_stage() -> dict:
    return stage(GENERATING_TEXT, input_enabled=False)


def answer_stage(answer: str = FINAL_ANSWER) -> dict:
    return stage(f"Concierge\n{answer}", containers={".bc-response": [answer]})


class RecordingSleep:
    """Mock clock: records requested delays and yields to the loop without waiting."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


class FakeKeyboard:
    def __init__(self, page: "FakePage"):
        self.page = page

    async def press(self, key: str) -> None:
        if key == "Delete":
            self.page.value = ""

    async def type(self, text: str, delay: int = 0) -> None:
        self.page.value += text


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str):
        self.page = page
        self.selector = selector

    @property
    def first(self) -> "FakeLocator":
        return self

    def _exists(self) -> bool:
        return self.selector in self.page.input_selectors or self.selector in self.page.buttons

    async def count(self) -> int:
        if self.page.locator_error:
            raise self.page.locator_error
        return 1 if self._exists() else 0

    async def is_visible(self) -> bool:
        return self._exists()

    async def is_enabled(self) -> bool:
        return self._exists()

    async def wait_for(self, state: str = "visible", timeout: Optional[float] = None) -> None:
        if not self._exists():
            raise TimeoutError(f"{self.selector} not visible")

    async def fill(self, value: str, timeout: Optional[float] = None) -> None:
        if self.page.fill_fails:
            raise RuntimeError("fill intercepted by widget")
        self.page.value = value

    async def press_sequentially(self, text: str, delay: int = 0) -> None:
        self.page.value += text

    async def focus(self) -> None:
        pass

    async def press(self, key: str) -> None:
        if key == "Enter":
            if self.page.enter_fails:
                raise RuntimeError("enter ignored")
            self.page.submit()

    async def click(self, timeout: Optional[float] = None) -> None:
        self.page.submit()

    async def all_inner_texts(self) -> list[str]:
        return list(self.page.state().get("containers", {}).get(self.selector, []))


class FakePage:
    """
    Page whose state advances with each completion poll: poll n sees stages[n-1]
    (the last stage repeats). With `respond`, every poll after a submission sees
    respond(submitted_text) instead, so a page only ever answers its own question.
    """

    def __init__(
        self,
        stages: Optional[list[dict]] = None,
        respond: Optional[Callable[[str], str]] = None,
        input_selectors: tuple = (PRIMARY_INPUT,),
        buttons: tuple = (),
        fill_fails: bool = False,
        enter_fails: bool = False,
        goto_error: Optional[Exception] = None,
        input_ready: bool = True,
        poll_errors: tuple = (),
    ):
        self.stages = stages if stages is not None else [answer_stage()]
        self.respond = respond
        self.input_selectors = set(input_selectors)
        self.buttons = set(buttons)
        self.fill_fails = fill_fails
        self.enter_fails = enter_fails
        self.goto_error = goto_error
        self.input_ready = input_ready
        self.poll_errors = set(poll_errors)
        self.locator_error: Optional[Exception] = None
        self.keyboard = FakeKeyboard(self)
        self.value = ""
        self.submitted: list[str] = []
        self.polls = 0
        self.gotos = 0
        self.reloads = 0
        self.screenshots: list[str] = []
        self.listeners: dict[str, list] = {}

    def state(self) -> dict:
        if self.respond is not None and self.submitted:
            answer = self.respond(self.submitted[-1])
            return answer_stage(answer)
        if not self.stages:
            return stage("")
        idx = min(max(self.polls - 1, 0), len(self.stages) - 1)
        return self.stages[idx]

    def submit(self) -> None:
        self.submitted.append(self.value)
        self.value = ""
        self.polls = 0

    def _reset(self) -> None:
        self.value = ""
        self.polls = 0
        self.submitted = []

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def on(self, event: str, handler) -> None:
        self.listeners.setdefault(event, []).append(handler)

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[float] = None) -> None:
        await asyncio.sleep(0)
        if self.goto_error:
            raise self.goto_error
        self.gotos += 1
        self._reset()

    async def reload(self, wait_until: str = "load", timeout: Optional[float] = None) -> None:
        await asyncio.sleep(0)
        self.reloads += 1
        self._reset()

    async def wait_for_function(self, script: str, arg=None, timeout: Optional[float] = None) -> None:
        if not self.input_ready:
            raise TimeoutError("input not ready")

    async def evaluate(self, script: str, arg=None):
        if script == READ_SIGNALS_JS:
            self.polls += 1
            if self.polls in self.poll_errors:
                raise RuntimeError("execution context was destroyed")
            st = self.state()
            return {"text": st["text"], "inputEnabled": st["input_enabled"]}
        if script == SET_VALUE_JS:
            self.value = arg[1]
            return True
        return len(self.input_selectors)

    async def inner_text(self, selector: str) -> str:
        return self.state()["text"]

    async def screenshot(self, path: str) -> None:
        self.screenshots.append(path)


class _TrackedContext:
    def __init__(self, factory: "FakeSessionFactory", label: str):
        self.factory = factory
        self.label = label

    async def close(self) -> None:
        self.factory.open_now -= 1
        self.factory.closed.append(self.label)


class FakeSessionFactory:
    """Hands out FakePages; counts opens/closes and the peak number open at once."""

    def __init__(self, page_for: Optional[Callable[[str], FakePage]] = None, fail_labels: tuple = ()):
        self.page_for = page_for or (lambda label: FakePage())
        self.fail_labels = set(fail_labels)
        self.opened: list[str] = []
        self.closed: list[str] = []
        self.open_now = 0
        self.peak = 0
        self.pages: dict[str, list[FakePage]] = {}

    async def open(self, label: str) -> SessionHandle:
        if label in self.fail_labels:
            raise RuntimeError("browser launch failed")
        page = self.page_for(label)
        self.pages.setdefault(label, []).append(page)
        self.opened.append(label)
        self.open_now += 1
        self.peak = max(self.peak, self.open_now)
        return SessionHandle(label=label, page=page, context=_TrackedContext(self, label))
