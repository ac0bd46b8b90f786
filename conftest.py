"""
Repository-level pytest configuration.

Responsibilities:
  - Demo-safe environment defaults (no secrets embedded)
  - Browser command-line options shared by every suite
  - One asyncio event loop for the whole session
  - Session setup/teardown banners with configuration and artefact locations
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from loguru import logger
from pytest_asyncio import is_async_test

from storefront_suite.ui_testing.framework.config_loader import ConfigLoader
from storefront_tools.common import ensure_directory, init_logger
from storefront_tools.report_tools.allure_utils import write_categories, write_environment_properties


# Applied at import time so ConfigLoader sees them on first use
_ENV_DEFAULTS = {
    "NODE_ENV": "test",
}

for _key, _value in _ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _value)

# BASE_URL is what CI pipelines for the storefront already export
if "BASE_URL" in os.environ:
    os.environ.setdefault("STOREFRONT_BASE_URL", os.environ["BASE_URL"])


def pytest_addoption(parser):
    group = parser.getgroup("storefront", "Storefront E2E options")
    group.addoption(
        "--project",
        action="store",
        default=None,
        help="Browser project (chromium, firefox, webkit, mobile-chrome, mobile-safari, tablet, edge)",
    )
    group.addoption(
        "--headed",
        action="store_true",
        default=False,
        help="Run the browser with a visible window",
    )
    group.addoption(
        "--slowmo",
        action="store",
        type=float,
        default=None,
        help="Slow every browser operation down by N milliseconds",
    )


def pytest_collection_modifyitems(items):
    """Run every async test in the session-scoped event loop."""
    session_scope_marker = pytest.mark.asyncio(loop_scope="session")
    for item in (i for i in items if is_async_test(i)):
        item.add_marker(session_scope_marker, append=False)


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return repo root path."""
    return Path(__file__).parent


def pytest_sessionstart(session):
    init_logger()
    config = ConfigLoader()
    project = session.config.getoption("--project") or config.get("browser.project", "chromium")
    artifacts = ensure_directory(config.get("artifacts.dir", "test-results"))

    logger.info("🚀 Starting Galería Mexicana E2E Test Suite Setup...")
    logger.info(f"📋 Base URL: {config.get('storefront.base_url')}")
    logger.info(f"🔧 Test Environment: {os.environ.get('NODE_ENV', 'test')}")
    logger.info(f"🖥️ Project: {project}")
    logger.info(f"📁 Artifacts: {artifacts}")
    logger.info("✅ Global setup completed successfully!")


def pytest_sessionfinish(session, exitstatus):
    config = ConfigLoader()
    artifacts = Path(config.get("artifacts.dir", "test-results"))

    logger.info("🧹 Starting Galería Mexicana E2E Test Suite Teardown...")
    logger.info(f"📊 Test execution completed (exit status {int(exitstatus)})")
    logger.info(f"📁 Test artifacts saved to: {artifacts}")
    logger.info(f"  - Screenshots: {artifacts / 'screenshots'}")
    logger.info(f"  - Videos: {artifacts / 'videos'}")
    logger.info(f"  - JUnit XML: {artifacts / 'junit.xml'}")

    allure_dir = session.config.getoption("allure_report_dir", default=None)
    if allure_dir:
        write_environment_properties(Path(allure_dir), {
            "Base.URL": config.get("storefront.base_url"),
            "Project": session.config.getoption("--project") or config.get("browser.project", "chromium"),
            "Headless": not session.config.getoption("--headed"),
            "Environment": os.environ.get("NODE_ENV", "test"),
        })
        write_categories(Path(allure_dir))
        logger.info(f"  - Allure results: {allure_dir}")
    logger.info("✅ Global teardown completed successfully!")
