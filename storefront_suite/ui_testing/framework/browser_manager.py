"""
================================================================================
Browser Manager
================================================================================

Browser lifecycle management for the storefront suite.

Features:
    - Named projects (desktop browsers, phone and tablet presets)
    - One browser per session, one isolated context per test
    - Context defaults: base URL, viewport, HTTPS errors ignored
    - Optional video recording kept only for failed tests

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger
from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
)

from .config_loader import ConfigLoader


@dataclass(frozen=True)
class BrowserProject:
    """
    A browser + device combination the suite can run against.

    Attributes:
        name: Project name used on the command line
        browser_type: Playwright engine ('chromium', 'firefox', 'webkit')
        device: Key of ``playwright.devices`` to take context options from
        channel: Branded browser channel (e.g. 'msedge')
        launch_options: Extra keyword arguments for ``launch()``
        context_options: Extra keyword arguments for ``new_context()``
    """

    name: str
    browser_type: str = "chromium"
    device: Optional[str] = None
    channel: Optional[str] = None
    launch_options: Dict[str, Any] = field(default_factory=dict)
    context_options: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_mobile(self) -> bool:
        return bool(self.context_options.get("is_mobile"))


PROJECTS: Dict[str, BrowserProject] = {
    "chromium": BrowserProject(
        name="chromium",
        browser_type="chromium",
        device="Desktop Chrome",
        launch_options={"args": ["--disable-web-security", "--disable-features=VizDisplayCompositor"]},
    ),
    "firefox": BrowserProject(
        name="firefox",
        browser_type="firefox",
        device="Desktop Firefox",
        launch_options={"firefox_user_prefs": {"network.http.referer.XOriginPolicy": 0}},
    ),
    "webkit": BrowserProject(
        name="webkit",
        browser_type="webkit",
        device="Desktop Safari",
        context_options={"viewport": {"width": 1280, "height": 720}},
    ),
    "mobile-chrome": BrowserProject(
        name="mobile-chrome",
        browser_type="chromium",
        device="Pixel 5",
        context_options={"is_mobile": True, "has_touch": True},
    ),
    "mobile-safari": BrowserProject(
        name="mobile-safari",
        browser_type="webkit",
        device="iPhone 12",
        context_options={"is_mobile": True, "has_touch": True},
    ),
    "tablet": BrowserProject(
        name="tablet",
        browser_type="webkit",
        device="iPad Pro 11",
        context_options={"is_mobile": True, "has_touch": True},
    ),
    "edge": BrowserProject(
        name="edge",
        browser_type="chromium",
        device="Desktop Edge",
        channel="msedge",
    ),
}

MOBILE_PROJECTS: List[str] = ["mobile-chrome", "mobile-safari"]


def get_project(name: str) -> BrowserProject:
    """
    Look up a project by name.

    Raises:
        ValueError: Unknown project name
    """
    try:
        return PROJECTS[name]
    except KeyError:
        raise ValueError(
            f"Unknown browser project '{name}'. Available: {', '.join(PROJECTS)}"
        ) from None


class BrowserManager:
    """
    Manages the browser instance and per-test contexts.

    Usage:
        async with BrowserManager(project="mobile-safari") as manager:
            context = await manager.new_context()
            page = await context.new_page()
            await page.goto("/tequila")  # relative to storefront.base_url
    """

    # Default context options (project device presets win over these)
    DEFAULT_CONTEXT_OPTIONS: Dict[str, Any] = {
        "ignore_https_errors": True,
    }

    def __init__(
        self,
        project: str = "",
        headless: Optional[bool] = None,
        slow_mo: Optional[float] = None,
        base_url: str = "",
        config: Optional[ConfigLoader] = None,
    ):
        """
        Initialize browser manager.

        Args:
            project: Project name from PROJECTS (defaults to browser.project)
            headless: Run browser in headless mode (defaults to browser.headless)
            slow_mo: Milliseconds to slow every operation down by
            base_url: Base URL for relative navigation (defaults to storefront.base_url)
            config: Configuration loader
        """
        self.config = config or ConfigLoader()
        self.project = get_project(project or self.config.get("browser.project", "chromium"))
        self.headless = self.config.get("browser.headless", True) if headless is None else headless
        self.slow_mo = self.config.get("browser.slow_mo_ms", 0) if slow_mo is None else slow_mo
        self.base_url = base_url or self.config.get("storefront.base_url", "http://localhost:3000")

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._contexts: List[BrowserContext] = []

    async def __aenter__(self) -> "BrowserManager":
        """Async context manager entry - start browser."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - close browser."""
        await self.close()

    async def start(self) -> None:
        """Start Playwright and launch the project's browser."""
        self._playwright = await async_playwright().start()
        browser_launcher = getattr(self._playwright, self.project.browser_type)

        launch_options: Dict[str, Any] = {
            **self.project.launch_options,
            "headless": self.headless,
            "slow_mo": self.slow_mo,
        }
        if self.project.channel:
            launch_options["channel"] = self.project.channel

        try:
            self._browser = await browser_launcher.launch(**launch_options)
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise

        logger.debug(
            f"Browser started: {self.project.name} "
            f"({self.project.browser_type}, headless={self.headless})"
        )

    async def close(self) -> None:
        """Close all contexts and browser."""
        for context in self._contexts:
            await context.close()
        self._contexts.clear()

        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        logger.debug("Browser closed")

    def context_options(self, **overrides: Any) -> Dict[str, Any]:
        """
        Build context options for the project.

        Priority (lowest to highest): defaults, configured viewport, device
        preset, project options, overrides.
        """
        options: Dict[str, Any] = dict(self.DEFAULT_CONTEXT_OPTIONS)
        viewport = self.config.get("browser.viewport")
        if viewport:
            options["viewport"] = dict(viewport)

        if self.project.device and self._playwright is not None:
            device = dict(self._playwright.devices[self.project.device])
            # Launch-level setting, not a context option
            device.pop("default_browser_type", None)
            options.update(device)

        options.update(self.project.context_options)
        options["base_url"] = self.base_url

        video_mode = self.config.get("artifacts.video", "retain-on-failure")
        if video_mode != "off":
            options["record_video_dir"] = str(
                Path(self.config.get("artifacts.dir", "test-results")) / "videos"
            )

        options.update(overrides)
        return options

    async def new_context(self, **options: Any) -> BrowserContext:
        """
        Create new browser context.

        Each context is isolated - separate cookies, localStorage, cart.

        Args:
            **options: Context options overriding the project defaults

        Returns:
            New BrowserContext
        """
        if not self._browser:
            raise RuntimeError("Browser not started. Call start() first.")

        context = await self._browser.new_context(**self.context_options(**options))
        context.set_default_timeout(self.config.get("interaction.action_timeout_ms", 10000))
        context.set_default_navigation_timeout(
            self.config.get("browser.navigation_timeout_ms", 15000)
        )
        self._contexts.append(context)
        return context

    async def close_context(self, context: BrowserContext) -> None:
        """Close a context created by this manager."""
        if context in self._contexts:
            self._contexts.remove(context)
        await context.close()

    async def new_page(
        self,
        context: Optional[BrowserContext] = None,
        **context_options: Any,
    ) -> Page:
        """
        Create new page in new or existing context.

        Args:
            context: Existing context to use (creates new if None)
            **context_options: Options for new context

        Returns:
            New Page
        """
        if context is None:
            context = await self.new_context(**context_options)

        return await context.new_page()

    @property
    def browser(self) -> Optional[Browser]:
        """Get browser instance."""
        return self._browser


__all__ = [
    "BrowserManager",
    "BrowserProject",
    "MOBILE_PROJECTS",
    "PROJECTS",
    "get_project",
]
