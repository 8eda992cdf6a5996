"""Drive a Chromium page through Playwright with every request routed through the rule chain."""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from playwright.async_api import Route, async_playwright

from sahne.core.config import Settings
from sahne.core.interceptor import Interceptor
from sahne.core.rules.models import NormalizedResponse
from sahne.core.sources import response_headers
from sahne.core.utils import maybe_await, setup_logging


class PlaywrightRequestSource:
    """Adapts a Playwright route; a route accepts exactly one of abort/continue/fulfill"""

    def __init__(self, route: Route):
        self.route = route
        self._resolved = False

    def url(self) -> str:
        return self.route.request.url

    def method(self) -> str:
        return self.route.request.method

    def headers(self) -> Dict[str, str]:
        return dict(self.route.request.headers)

    def body(self) -> Optional[bytes]:
        return self.route.request.post_data_buffer

    async def abort(self) -> None:
        self._resolved = True
        await self.route.abort()

    async def continue_(self) -> None:
        self._resolved = True
        await self.route.continue_()

    async def respond(self, response: NormalizedResponse) -> None:
        self._resolved = True
        await self.route.fulfill(
            status=response.status,
            headers=response_headers(response),
            body=response.body_bytes,
        )

    def is_already_resolved(self) -> bool:
        return self._resolved


@dataclass
class Callbacks:
    before_launch: Optional[Callable[[], Any]] = None
    after_launch: Optional[Callable[[Any], Any]] = None
    before_goto: Optional[Callable[[Any, Any], Any]] = None
    after_goto: Optional[Callable[[Any, Any], Any]] = None


def make_route_handler(interceptor: Interceptor) -> Callable[[Route], Any]:
    async def handle_route(route: Route) -> None:
        await interceptor.handle(PlaywrightRequestSource(route))

    return handle_route


async def run(initial_url: str, rules: Any = None, launch_options: Optional[Mapping[str, Any]] = None,
              goto_options: Optional[Mapping[str, Any]] = None, callbacks: Optional[Callbacks] = None,
              interceptor: Optional[Interceptor] = None, wait_for_close: bool = True) -> None:
    """Open `initial_url` in a headed Chromium page with interception enabled"""
    logger = setup_logging(Settings.from_env().log_level)
    callbacks = callbacks or Callbacks()
    interceptor = interceptor or Interceptor(rules)

    if callbacks.before_launch:
        await maybe_await(callbacks.before_launch())

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(**{"headless": False, **dict(launch_options or {})})
        try:
            if callbacks.after_launch:
                await maybe_await(callbacks.after_launch(browser))

            context = await browser.new_context(no_viewport=True)
            page = await context.new_page()
            await page.route("**/*", make_route_handler(interceptor))

            if callbacks.before_goto:
                await maybe_await(callbacks.before_goto(browser, page))
            logger.info(f"sahne: opening {initial_url} with {len(interceptor)} rule(s)")
            await page.goto(initial_url, **dict(goto_options or {}))
            if callbacks.after_goto:
                await maybe_await(callbacks.after_goto(browser, page))

            if wait_for_close:
                await page.wait_for_event("close", timeout=0)
        finally:
            await interceptor.aclose()
            await browser.close()
