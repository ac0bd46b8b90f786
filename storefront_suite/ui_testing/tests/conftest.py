"""
================================================================================
UI Testing Pytest Configuration
================================================================================

Fixtures for browser management, storefront page objects and failure capture.

Key Features:
- One browser per session for the selected project
- Fresh BrowserContext per test (isolated cookies, storage and cart)
- Storefront availability probe; e2e tests skip when the app is down
- Screenshot, HTML and response log attached to Allure on failure

================================================================================
"""

from typing import AsyncGenerator

import httpx
import pytest
from loguru import logger
from playwright.async_api import BrowserContext, Error as PlaywrightError, Page, expect

from storefront_suite.ui_testing.framework.assertions import StorefrontAssertions
from storefront_suite.ui_testing.framework.browser_manager import BrowserManager
from storefront_suite.ui_testing.framework.config_loader import ConfigLoader
from storefront_suite.ui_testing.framework.interaction import InteractionLayer
from storefront_suite.ui_testing.framework.test_data import TestDataGenerator
from storefront_suite.ui_testing.pages.home_page import HomePage
from storefront_suite.ui_testing.pages.tequila_page import TequilaPage
from storefront_tools.report_tools.allure_utils import attach_png


# ================================================================================
# Report Hooks
# ================================================================================

@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Expose each phase's report to fixtures as ``item.rep_<phase>``."""
    outcome = yield
    report = outcome.get_result()
    setattr(item, f"rep_{report.when}", report)


def _test_failed(request: pytest.FixtureRequest) -> bool:
    report = getattr(request.node, "rep_call", None)
    return bool(report and report.failed)


# ================================================================================
# Session Fixtures
# ================================================================================

@pytest.fixture(scope="session")
def e2e_config() -> ConfigLoader:
    config = ConfigLoader()
    expect.set_options(timeout=config.get("expect.timeout_ms", 5000))
    return config


@pytest.fixture(scope="session")
async def browser_manager(
    request: pytest.FixtureRequest,
    e2e_config: ConfigLoader,
) -> AsyncGenerator[BrowserManager, None]:
    """
    Session-scoped browser manager for the selected project.

    Skips every browser test when the browser cannot be launched
    (e.g. `playwright install` has not been run).
    """
    manager = BrowserManager(
        project=request.config.getoption("--project") or "",
        headless=False if request.config.getoption("--headed") else None,
        slow_mo=request.config.getoption("--slowmo"),
        config=e2e_config,
    )
    try:
        await manager.start()
    except PlaywrightError as e:
        pytest.skip(f"Browser project '{manager.project.name}' unavailable: {e}")

    yield manager
    await manager.close()


@pytest.fixture(scope="session")
def storefront_url(e2e_config: ConfigLoader) -> str:
    """
    Base URL of a reachable storefront.

    Skips the dependent tests when nothing answers at that URL.
    """
    base_url = e2e_config.get("storefront.base_url", "http://localhost:3000")
    try:
        httpx.get(base_url, timeout=5.0, follow_redirects=True)
    except httpx.HTTPError as e:
        pytest.skip(f"Storefront not reachable at {base_url}: {e}")
    return base_url


@pytest.fixture(scope="session")
def project_name(browser_manager: BrowserManager) -> str:
    return browser_manager.project.name


# ================================================================================
# Per-test Fixtures
# ================================================================================

@pytest.fixture
async def context(browser_manager: BrowserManager) -> AsyncGenerator[BrowserContext, None]:
    """Fresh isolated context per test."""
    context = await browser_manager.new_context()
    yield context
    await browser_manager.close_context(context)


@pytest.fixture
async def page(
    request: pytest.FixtureRequest,
    context: BrowserContext,
) -> AsyncGenerator[Page, None]:
    """
    Function-scoped page.

    On failure attaches a full-page screenshot unless a page object
    already captured richer details.
    """
    page = await context.new_page()
    yield page

    if _test_failed(request) and not getattr(request.node, "failure_captured", False):
        try:
            attach_png(await page.screenshot(full_page=True), name="failure_screenshot")
        except PlaywrightError as e:
            logger.warning(f"Failed to capture screenshot on failure: {e}")
    await page.close()


@pytest.fixture
def ui(page: Page) -> InteractionLayer:
    """Interaction layer bound to the test's page."""
    return InteractionLayer(page)


async def _capture_on_failure(request: pytest.FixtureRequest, page_object) -> None:
    if not _test_failed(request):
        return
    logger.info(page_object.get_locator_health_report())
    try:
        await page_object.capture_failure(request.node.name)
        request.node.failure_captured = True
    except PlaywrightError as e:
        logger.warning(f"Failed to capture failure details: {e}")


# ================================================================================
# Page Object Fixtures
# ================================================================================

@pytest.fixture
async def home_page(
    request: pytest.FixtureRequest,
    page: Page,
    storefront_url: str,
) -> AsyncGenerator[HomePage, None]:
    """HomePage opened at ``/``."""
    home = HomePage(page, base_url=storefront_url)
    await home.open()
    yield home
    await _capture_on_failure(request, home)


@pytest.fixture
async def tequila_page(
    request: pytest.FixtureRequest,
    page: Page,
    storefront_url: str,
) -> AsyncGenerator[TequilaPage, None]:
    """TequilaPage opened at ``/tequila``."""
    tequila = TequilaPage(page, base_url=storefront_url)
    await tequila.open()
    yield tequila
    await _capture_on_failure(request, tequila)


# ================================================================================
# Utility Fixtures
# ================================================================================

@pytest.fixture
def assertions() -> type:
    return StorefrontAssertions


@pytest.fixture
def data_generator() -> TestDataGenerator:
    return TestDataGenerator()


@pytest.fixture
def whatsapp_number(e2e_config: ConfigLoader) -> str:
    return str(e2e_config.get("storefront.whatsapp_number", "50687396001"))
