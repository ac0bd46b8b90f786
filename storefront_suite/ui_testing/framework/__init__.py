"""
================================================================================
UI Testing Framework
================================================================================

Playwright-based UI automation framework for the storefront.

Components:
    - interaction: Resilient interaction layer (fallback selectors, waits, verification)
    - page_base: Base page object for common storefront operations
    - browser_manager: Browser projects and context lifecycle
    - assertions: Price, WhatsApp, structured data and accessibility checks
    - test_data: Random storefront test data
    - config_loader: YAML configuration with environment overrides

Author: Automation Team
License: MIT
================================================================================
"""

from .config_loader import ConfigLoader, ConfigurationError
from .interaction import (
    ActionResult,
    ElementNotActionableError,
    ElementNotFoundError,
    ElementQuery,
    InteractionError,
    InteractionLayer,
    InteractionSettings,
    InteractionTimeoutError,
    ValueMismatchError,
    WaitCondition,
)
from .page_base import BasePage
from .browser_manager import BrowserManager, PROJECTS
from .assertions import StorefrontAssertions
from .test_data import TestDataGenerator

__all__ = [
    "ActionResult",
    "BasePage",
    "BrowserManager",
    "ConfigLoader",
    "ConfigurationError",
    "ElementNotActionableError",
    "ElementNotFoundError",
    "ElementQuery",
    "InteractionError",
    "InteractionLayer",
    "InteractionSettings",
    "InteractionTimeoutError",
    "PROJECTS",
    "StorefrontAssertions",
    "TestDataGenerator",
    "ValueMismatchError",
    "WaitCondition",
]
