"""Browser automation capability used by the lecture state machine.

One ``BrowserPool`` launches Chromium once per run. Each lane asks it for
its own session: an isolated browser context with one page and one HTTP
client. Sessions are never shared between lanes.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import httpx
from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .config import BrowserConfig
from .logging_config import get_logger

logger = get_logger('browser')

LAUNCH_ARGS = ["--no-sandbox", "--disable-dev-shm-usage"]


class BrowserSession:
    """The operations the extraction logic needs from a browser.

    Timeouts are in seconds.
    """

    async def navigate(self, url: str, timeout: float) -> Optional[int]:
        """Load a page; return the HTTP status of the main document if known."""
        raise NotImplementedError

    async def wait_for(self, selector: str, timeout: float) -> bool:
        """Wait until an element matching selector is visible."""
        raise NotImplementedError

    async def click(self, selector: str, timeout: float) -> None:
        raise NotImplementedError

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        raise NotImplementedError

    async def fetch_text(self, url: str) -> str:
        """Download a text resource with the session's credentials."""
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError


class PlaywrightSession(BrowserSession):
    """BrowserSession backed by one Playwright page and one httpx client."""

    def __init__(self, context: BrowserContext, page: Page, http: httpx.AsyncClient):
        self.context = context
        self.page = page
        self.http = http

    async def navigate(self, url: str, timeout: float) -> Optional[int]:
        response = await self.page.goto(url, wait_until='domcontentloaded', timeout=timeout * 1000)
        return response.status if response is not None else None

    async def wait_for(self, selector: str, timeout: float) -> bool:
        try:
            await self.page.wait_for_selector(selector, state='visible', timeout=timeout * 1000)
            return True
        except PlaywrightTimeoutError:
            return False

    async def click(self, selector: str, timeout: float) -> None:
        await self.page.locator(selector).first.click(timeout=timeout * 1000)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self.page.evaluate(script, arg)

    async def fetch_text(self, url: str) -> str:
        response = await self.http.get(url)
        response.raise_for_status()
        return response.text

    async def close(self) -> None:
        try:
            await self.http.aclose()
        finally:
            await self.context.close()


class BrowserPool:
    """Owns the Playwright driver and browser; creates per-lane sessions.

    Usage:
        async with BrowserPool(config, base_url, token) as pool:
            async with pool.session() as session:
                ...
    """

    def __init__(self, config: BrowserConfig, base_url: str, access_token: Optional[str] = None):
        self.config = config
        self.base_url = base_url.rstrip('/')
        self.access_token = access_token
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self) -> 'BrowserPool':
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                args=LAUNCH_ARGS,
            )
        except Exception:
            await self._playwright.stop()
            raise
        logger.debug(f"Launched Chromium (headless={self.config.headless})")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            if self._playwright is not None:
                await self._playwright.stop()
        return False

    def _context_args(self) -> dict:
        args: dict = {}
        storage_state = self.config.storage_state
        if storage_state:
            if Path(storage_state).exists():
                args['storage_state'] = storage_state
            else:
                logger.warning(f"Storage state file not found, starting without it: {storage_state}")
        if self.config.user_agent:
            args['user_agent'] = self.config.user_agent
        return args

    def _http_headers(self) -> dict:
        headers = {'Accept': 'text/vtt, text/plain, */*'}
        if self.config.user_agent:
            headers['User-Agent'] = self.config.user_agent
        if self.access_token:
            headers['Authorization'] = f'Bearer {self.access_token}'
        return headers

    @asynccontextmanager
    async def session(self) -> AsyncIterator[PlaywrightSession]:
        """Open an isolated session for one lane."""
        if self._browser is None:
            raise RuntimeError("BrowserPool must be entered before opening sessions")

        context = await self._browser.new_context(**self._context_args())
        try:
            if self.access_token:
                await context.add_cookies([{
                    'name': 'access_token',
                    'value': self.access_token,
                    'url': self.base_url,
                }])
            context.set_default_timeout(self.config.selector_timeout * 1000)
            context.set_default_navigation_timeout(self.config.navigation_timeout * 1000)
            page = await context.new_page()
        except Exception:
            await context.close()
            raise

        http = httpx.AsyncClient(
            headers=self._http_headers(),
            timeout=httpx.Timeout(self.config.navigation_timeout),
            follow_redirects=True,
        )
        session = PlaywrightSession(context, page, http)
        try:
            yield session
        finally:
            await session.close()
