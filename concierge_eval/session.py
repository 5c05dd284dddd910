"""Browser sessions: one handle per in-flight question, always closed by its owner."""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional, Protocol

from playwright.async_api import Browser, BrowserContext, BrowserType, Page

from .config import BrowserConfig
from .extractors import ApiResponseLog, install_api_listener

logger = logging.getLogger(__name__)


@dataclass
class SessionHandle:
    """A browser process + context + page, owned by exactly one task."""

    label: str
    page: Page
    browser: Optional[Browser] = None
    context: Optional[BrowserContext] = None
    input_selector: Optional[str] = None
    api_responses: ApiResponseLog = field(default_factory=list)
    closed: bool = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Context first so pending page work is torn down before the process exits
        for resource in (self.context, self.browser):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                logger.warning("[%s] close failed: %s", self.label, e)
        logger.debug("[%s] session closed", self.label)


class SessionFactory(Protocol):
    async def open(self, label: str) -> SessionHandle:
        ...


class PlaywrightSessionFactory:
    """Launches a separate browser instance per session (no shared cookies, storage or DOM)."""

    def __init__(self, browser_type: BrowserType, config: BrowserConfig):
        self.browser_type = browser_type
        self.config = config

    async def open(self, label: str) -> SessionHandle:
        browser = await self.browser_type.launch(
            headless=self.config.headless,
            slow_mo=self.config.slow_mo,
            args=list(self.config.launch_args),
        )
        try:
            context = await browser.new_context(
                user_agent=self.config.user_agent,
                viewport=dict(self.config.viewport),
                ignore_https_errors=True,
            )
            if self.config.block_resources:
                await context.route("**/*", _block_heavy_resources)
            page = await context.new_page()
        except Exception:
            await browser.close()
            raise
        handle = SessionHandle(label=label, page=page, browser=browser, context=context)
        install_api_listener(page, handle.api_responses)
        logger.debug("[%s] browser session opened", label)
        return handle


async def _block_heavy_resources(route: Any) -> None:
    if route.request.resource_type in ("image", "media", "font"):
        await route.abort()
    else:
        await route.continue_()


@asynccontextmanager
async def session_scope(factory: SessionFactory, label: str) -> AsyncIterator[SessionHandle]:
    """Open a session and guarantee it is closed on every exit path, cancellation included."""
    handle = await factory.open(label)
    try:
        yield handle
    finally:
        await handle.close()
