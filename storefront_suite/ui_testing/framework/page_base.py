"""
================================================================================
Base Page Object
================================================================================

Foundation class for the storefront Page Object Model.

Provides:
    - Named element tables (ElementQuery) resolved through the interaction layer
    - Navigation relative to the configured storefront base URL
    - Cart counter parsing and viewport switching
    - SEO, navigation-timing and paint-metric checks
    - Screenshot and failure capture with Allure attachments
    - Response capture for failure diagnostics

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import asyncio
import re
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import allure
from loguru import logger
from playwright.async_api import Locator, Page, Response, expect

from storefront_tools.report_tools.allure_utils import attach_html, attach_json, attach_response_log, attach_text

from .config_loader import ConfigLoader
from .interaction import (
    ActionResult,
    ElementQuery,
    InteractionLayer,
    InteractionTimeoutError,
    Postcondition,
    QueryLike,
    WaitCondition,
    as_query,
)


# Named viewports used by responsive checks
VIEWPORTS: Dict[str, Dict[str, int]] = {
    "mobile": {"width": 375, "height": 667},
    "tablet": {"width": 768, "height": 1024},
    "desktop": {"width": 1280, "height": 720},
    "wide": {"width": 1920, "height": 1080},
}

# Breakpoint below which the storefront renders its mobile layout
MOBILE_BREAKPOINT = 768

CART_COUNTER = ElementQuery.parse(
    ".cart-counter, [data-testid='cart-counter']", name="cart_counter"
)

# Per-check probe while polling the cart badge
CART_POLL_MS = 100

_NAVIGATION_TIMING_JS = """
() => {
    const [nav] = performance.getEntriesByType('navigation');
    if (nav) {
        return {
            domContentLoaded: nav.domContentLoadedEventEnd - nav.startTime,
            loadComplete: nav.loadEventEnd - nav.startTime,
            responseEnd: nav.responseEnd - nav.startTime,
        };
    }
    const t = performance.timing;
    return {
        domContentLoaded: t.domContentLoadedEventEnd - t.navigationStart,
        loadComplete: t.loadEventEnd - t.navigationStart,
        responseEnd: t.responseEnd - t.navigationStart,
    };
}
"""

_PAINT_METRICS_JS = """
() => new Promise((resolve) => {
    const metrics = {fcp: null, lcp: null};
    const fcp = performance.getEntriesByName('first-contentful-paint')[0];
    if (fcp) {
        metrics.fcp = fcp.startTime;
    }
    if (typeof PerformanceObserver === 'undefined'
        || !PerformanceObserver.supportedEntryTypes.includes('largest-contentful-paint')) {
        resolve(metrics);
        return;
    }
    new PerformanceObserver((list) => {
        const entries = list.getEntries();
        metrics.lcp = entries[entries.length - 1].startTime;
        resolve(metrics);
    }).observe({type: 'largest-contentful-paint', buffered: true});
    setTimeout(() => resolve(metrics), 3000);
})
"""


def parse_count(text: Optional[str]) -> int:
    """Extract the first integer from a counter badge ("3", "(3)", "3 items")."""
    match = re.search(r"\d+", text or "")
    return int(match.group()) if match else 0


class BasePage:
    """
    Base class for all storefront page objects.

    Subclasses declare URL_PATH and a LOCATORS table mapping element names
    to ElementQuery objects. Interactions go through ``self.ui`` so every
    action gets selector fallback, explicit waits and verification.

    Usage:
        class TequilaPage(BasePage):
            URL_PATH = "/tequila"
            LOCATORS = {
                "page_title": ElementQuery.parse("h1, .page-title"),
            }

            async def title_text(self) -> str:
                return await self.get_text("page_title")
    """

    # Override in subclasses
    URL_PATH: str = "/"
    PAGE_TITLE: str = ""
    LOCATORS: Dict[str, ElementQuery] = {}

    MAX_CAPTURED_RESPONSES = 50

    def __init__(
        self,
        page: Page,
        base_url: str = "",
        ui: Optional[InteractionLayer] = None,
    ):
        """
        Initialize page object.

        Args:
            page: Playwright Page object
            base_url: Storefront base URL (defaults to storefront.base_url)
            ui: Interaction layer to share; a new one is built when omitted
        """
        self.page = page
        self.config = ConfigLoader()
        if not base_url:
            base_url = self.config.get("storefront.base_url", "http://localhost:3000")
        self.base_url = base_url.rstrip("/")
        self.ui = ui or InteractionLayer(page)

        self._captured_responses: List[Dict[str, Any]] = []
        self._setup_response_capture()

    def _setup_response_capture(self) -> None:
        """Keep a rolling window of responses for failure diagnostics."""

        def capture_response(response: Response) -> None:
            self._captured_responses.append({
                "timestamp": datetime.now().isoformat(),
                "url": response.url,
                "status": response.status,
                "resource_type": response.request.resource_type,
            })
            if len(self._captured_responses) > self.MAX_CAPTURED_RESPONSES:
                self._captured_responses.pop(0)

        self.page.on("response", capture_response)

    @property
    def captured_responses(self) -> List[Dict[str, Any]]:
        return list(self._captured_responses)

    # =========================================================================
    # Element Tables
    # =========================================================================

    def query(self, target: Union[str, QueryLike]) -> ElementQuery:
        """
        Look up a named element, or coerce a raw selector expression.

        Args:
            target: Key of LOCATORS, an ElementQuery, or a selector string

        Returns:
            ElementQuery for the element
        """
        if isinstance(target, str) and target in self.LOCATORS:
            return as_query(self.LOCATORS[target], name=target)
        return as_query(target)

    def find_all(self, target: Union[str, QueryLike], within: Optional[Locator] = None) -> Locator:
        """
        Union Locator over every alternative, for counting and nth access.

        Unlike resolve(), this does not prefer the first alternative; it is
        meant for collections such as product cards.
        """
        query = self.query(target)
        root = within if within is not None else self.page
        locator = root.locator(query.selectors[0])
        for selector in query.selectors[1:]:
            locator = locator.or_(root.locator(selector))
        return locator

    # =========================================================================
    # Navigation
    # =========================================================================

    @property
    def url(self) -> str:
        """Get full page URL."""
        return f"{self.base_url}{self.URL_PATH}"

    async def navigate(self) -> None:
        """Navigate to this page and wait for it to settle."""
        await self.navigate_to(self.URL_PATH)

    async def navigate_to(self, path: str = "/") -> None:
        """
        Navigate to a path relative to the storefront base URL.

        Args:
            path: URL path to navigate to
        """
        full_url = f"{self.base_url}{path}"
        with allure.step(f"Navigate to {path}"):
            await self.page.goto(full_url, wait_until="domcontentloaded")
            await self.wait_for_page_load()
            logger.debug(f"Navigated to: {full_url}")

    async def wait_for_page_load(self, timeout: Optional[int] = None) -> None:
        """
        Wait for DOM content and network idle.

        Args:
            timeout: Timeout in milliseconds (browser.navigation_timeout_ms)
        """
        timeout = timeout or self.config.get("browser.navigation_timeout_ms", 15000)
        await self.page.wait_for_load_state("domcontentloaded", timeout=timeout)
        await self.page.wait_for_load_state("networkidle", timeout=timeout)

    async def get_title(self) -> str:
        return await self.page.title()

    def get_url(self) -> str:
        return self.page.url

    # =========================================================================
    # Interaction Wrappers
    # =========================================================================

    async def click(
        self,
        target: Union[str, QueryLike],
        force: bool = False,
        timeout: Optional[float] = None,
        postcondition: Optional[Postcondition] = None,
        within: Optional[Locator] = None,
    ) -> ActionResult:
        query = self.query(target)
        with allure.step(f"Click: {query.label}"):
            return await self.ui.click(
                query, force=force, timeout=timeout, postcondition=postcondition, within=within
            )

    async def fill(
        self,
        target: Union[str, QueryLike],
        value: str,
        timeout: Optional[float] = None,
        within: Optional[Locator] = None,
    ) -> ActionResult:
        query = self.query(target)
        with allure.step(f"Fill {query.label}: {value}"):
            return await self.ui.fill(query, value, timeout=timeout, within=within)

    async def exists(
        self,
        target: Union[str, QueryLike],
        timeout: Optional[float] = None,
        condition: WaitCondition = WaitCondition.ATTACHED,
        within: Optional[Locator] = None,
    ) -> bool:
        return await self.ui.exists(self.query(target), timeout=timeout, condition=condition, within=within)

    async def is_visible(
        self,
        target: Union[str, QueryLike],
        timeout: Optional[float] = None,
        within: Optional[Locator] = None,
    ) -> bool:
        return await self.exists(target, timeout=timeout, condition=WaitCondition.VISIBLE, within=within)

    async def wait_for(
        self,
        target: Union[str, QueryLike],
        condition: WaitCondition = WaitCondition.VISIBLE,
        timeout: Optional[float] = None,
    ) -> ActionResult:
        return await self.ui.resolve(self.query(target), condition, timeout)

    async def wait_for_disappearance(
        self,
        target: Union[str, QueryLike],
        timeout: Optional[float] = None,
    ) -> float:
        query = self.query(target)
        with allure.step(f"Wait for {query.label} to disappear"):
            return await self.ui.wait_for_disappearance(query, timeout=timeout)

    async def get_text(
        self,
        target: Union[str, QueryLike],
        timeout: Optional[float] = None,
        within: Optional[Locator] = None,
    ) -> str:
        return (await self.ui.get_text(self.query(target), timeout=timeout, within=within)).strip()

    async def select_option(
        self,
        target: Union[str, QueryLike],
        value: str,
        timeout: Optional[float] = None,
    ) -> ActionResult:
        query = self.query(target)
        with allure.step(f"Select '{value}' in {query.label}"):
            return await self.ui.select_option(query, value, timeout=timeout)

    # =========================================================================
    # Shared Storefront Widgets
    # =========================================================================

    async def get_cart_item_count(self, timeout: Optional[float] = None) -> int:
        """Read the header cart badge; a hidden or missing badge means 0."""
        if not await self.ui.exists(CART_COUNTER, timeout=timeout, condition=WaitCondition.VISIBLE):
            return 0
        return parse_count(await self.ui.get_text(CART_COUNTER))

    def cart_count_above(self, baseline: int, timeout: Optional[float] = None) -> Postcondition:
        """
        Postcondition factory: the cart badge shows more than ``baseline``.

        Used with click() in place of a fixed animation delay.
        """
        timeout = timeout or self.config.get("expect.timeout_ms", 5000)

        async def _check() -> None:
            deadline = time.monotonic() + timeout / 1000
            count = await self.get_cart_item_count(CART_POLL_MS)
            while count <= baseline:
                if time.monotonic() >= deadline:
                    raise InteractionTimeoutError(
                        f"Cart counter stayed at {count} (expected > {baseline})",
                        query=CART_COUNTER,
                        condition=WaitCondition.VISIBLE,
                        timeout_ms=timeout,
                    )
                await asyncio.sleep(CART_POLL_MS / 1000)
                count = await self.get_cart_item_count(CART_POLL_MS)
            logger.debug(f"Cart counter updated: {baseline} -> {count}")

        return _check

    # =========================================================================
    # Responsive
    # =========================================================================

    async def set_viewport(self, name: str) -> None:
        """
        Resize the page to a named viewport.

        Args:
            name: One of VIEWPORTS ("mobile", "tablet", "desktop", "wide")
        """
        if name not in VIEWPORTS:
            raise ValueError(f"Unknown viewport '{name}'. Choose from: {sorted(VIEWPORTS)}")
        with allure.step(f"Set viewport: {name}"):
            await self.page.set_viewport_size(VIEWPORTS[name])
            await self.wait_for_page_load()

    def is_mobile_viewport(self) -> bool:
        size = self.page.viewport_size
        return bool(size) and size["width"] < MOBILE_BREAKPOINT

    async def check_responsive(self, names: Optional[List[str]] = None) -> None:
        """Cycle through viewports, waiting for the layout to settle in each."""
        for name in names or ["mobile", "tablet", "wide"]:
            await self.set_viewport(name)

    # =========================================================================
    # SEO and Performance
    # =========================================================================

    async def check_seo(self) -> None:
        """
        Basic SEO checks shared by every storefront page.

        Asserts a meta description with content, a non-empty title and at
        least one JSON-LD block.
        """
        with allure.step("Check SEO metadata"):
            await expect(self.page.locator('meta[name="description"]')).to_have_attribute(
                "content", re.compile(r"\S")
            )
            title = await self.page.title()
            assert title.strip(), "Page title is empty"
            json_ld = await self.page.locator('script[type="application/ld+json"]').count()
            assert json_ld > 0, "No JSON-LD structured data found"

    async def get_navigation_timing(self) -> Dict[str, float]:
        """Navigation timing in milliseconds since navigation start."""
        return await self.page.evaluate(_NAVIGATION_TIMING_JS)

    async def check_performance(self, max_load_ms: Optional[float] = None) -> float:
        """
        Assert the page load event completed under ``max_load_ms``.

        Returns:
            Measured load time in milliseconds
        """
        max_load_ms = max_load_ms or self.config.get("performance.max_load_ms", 5000)
        timing = await self.get_navigation_timing()
        load_time = timing["loadComplete"]
        logger.info(f"Page load time for {self.URL_PATH}: {load_time:.0f}ms")
        attach_json(timing, name="Navigation Timing")
        assert load_time < max_load_ms, (
            f"Load time {load_time:.0f}ms exceeds {max_load_ms}ms"
        )
        return load_time

    async def get_paint_metrics(self) -> Dict[str, Optional[float]]:
        """
        First Contentful Paint and Largest Contentful Paint in milliseconds.

        Values are None where the browser does not expose the entry
        (LCP is Chromium-only).
        """
        return await self.page.evaluate(_PAINT_METRICS_JS)

    # =========================================================================
    # Screenshot and Debug Utilities
    # =========================================================================

    @property
    def artifacts_dir(self) -> Path:
        return Path(self.config.get("artifacts.dir", "test-results"))

    async def screenshot(
        self,
        name: str,
        full_page: bool = True,
        attach_to_allure: bool = True,
    ) -> Path:
        """
        Take screenshot and optionally attach to Allure.

        Args:
            name: Screenshot name (without extension)
            full_page: Capture full scrollable page
            attach_to_allure: Whether to attach to Allure report

        Returns:
            Path to saved screenshot
        """
        screenshot_dir = self.artifacts_dir / "screenshots"
        screenshot_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = screenshot_dir / f"{name}_{timestamp}.png"

        await self.page.screenshot(path=str(filepath), full_page=full_page)

        if attach_to_allure:
            allure.attach.file(
                str(filepath),
                name=name,
                attachment_type=allure.attachment_type.PNG,
            )

        logger.debug(f"Screenshot saved: {filepath}")
        return filepath

    async def capture_failure(self, test_name: str) -> None:
        """
        Capture debugging information on test failure.

        Saves:
            - Screenshot
            - Current URL
            - Page HTML
            - Recent responses
            - Locator health report
        """
        with allure.step("Capture failure details"):
            await self.screenshot(f"failure_{test_name}", attach_to_allure=True)

            attach_text(self.page.url, name="Current URL")
            attach_html(await self.page.content(), name="Page HTML")
            if self._captured_responses:
                attach_response_log(self._captured_responses, name="Recent Responses")
            attach_text(self.ui.get_health_report(), name="Locator Health")

    def get_locator_health_report(self) -> str:
        """Get fallback usage report from the interaction layer."""
        return self.ui.get_health_report()


__all__ = [
    "BasePage",
    "CART_COUNTER",
    "MOBILE_BREAKPOINT",
    "VIEWPORTS",
    "parse_count",
]
