"""
================================================================================
Storefront Assertions
================================================================================

Domain checks shared by the storefront suites: colón price format, WhatsApp
checkout links, JSON-LD structured data and basic accessibility.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import allure
from loguru import logger
from playwright.async_api import Locator, Page, expect

from .config_loader import ConfigLoader


WHATSAPP_HOSTS = ("api.whatsapp.com", "wa.me", "web.whatsapp.com")
SCHEMA_ORG_CONTEXT = "https://schema.org"


def price_pattern(currency_symbol: Optional[str] = None) -> re.Pattern:
    """Regex for a formatted price such as ``₡12,500``."""
    symbol = currency_symbol or ConfigLoader().get("storefront.currency_symbol", "₡")
    return re.compile(rf"{re.escape(symbol)}\s?[\d,]+")


class StorefrontAssertions:
    """
    Assertion helpers for storefront pages.

    Text/URL checks are synchronous and raise AssertionError; element and
    page checks are coroutines that read from the browser first.

    Usage:
        >>> StorefrontAssertions.assert_valid_price("₡25,000")
        >>> await StorefrontAssertions.to_have_valid_price(card.locator(".price"))
    """

    # =========================================================================
    # Prices
    # =========================================================================

    @staticmethod
    def assert_valid_price(text: Optional[str], currency_symbol: Optional[str] = None) -> None:
        pattern = price_pattern(currency_symbol)
        assert text and pattern.search(text), f"Invalid price format: {text!r} (expected {pattern.pattern})"

    @staticmethod
    def parse_price(text: str) -> int:
        """Convert ``₡12,500`` to 12500."""
        digits = re.sub(r"[^\d]", "", text or "")
        if not digits:
            raise ValueError(f"No amount in price text: {text!r}")
        return int(digits)

    @staticmethod
    async def to_have_valid_price(element: Locator) -> str:
        text = (await element.text_content()) or ""
        StorefrontAssertions.assert_valid_price(text)
        return text.strip()

    # =========================================================================
    # WhatsApp
    # =========================================================================

    @staticmethod
    def assert_whatsapp_url(url: Optional[str], number: Optional[str] = None) -> Dict[str, List[str]]:
        """
        Check a WhatsApp checkout URL targets the shop's number.

        Returns:
            Parsed query parameters (e.g. the prefilled ``text``)
        """
        number = number or str(ConfigLoader().get("storefront.whatsapp_number", "50687396001"))
        assert url, "WhatsApp link has no URL"
        parsed = urlparse(url)
        assert parsed.netloc in WHATSAPP_HOSTS, f"Not a WhatsApp URL: {url}"
        assert number in url, f"WhatsApp URL does not target {number}: {url}"
        return parse_qs(parsed.query)

    @staticmethod
    async def to_have_valid_whatsapp_link(element: Locator, number: Optional[str] = None) -> str:
        href = await element.get_attribute("href")
        StorefrontAssertions.assert_whatsapp_url(href, number)
        return href

    # =========================================================================
    # Structured Data
    # =========================================================================

    @staticmethod
    async def get_json_ld(page: Page) -> List[Dict[str, Any]]:
        """
        Parse every JSON-LD block on the page.

        A block holding a list contributes each of its items.

        Raises:
            AssertionError: A block is not valid JSON
        """
        blocks: List[Dict[str, Any]] = []
        scripts = page.locator('script[type="application/ld+json"]')
        for index in range(await scripts.count()):
            raw = await scripts.nth(index).text_content()
            try:
                data = json.loads(raw or "")
            except json.JSONDecodeError as e:
                raise AssertionError(f"JSON-LD block {index} is not valid JSON: {e}") from e
            blocks.extend(data if isinstance(data, list) else [data])
        return blocks

    @staticmethod
    def assert_schema_org(blocks: List[Dict[str, Any]]) -> None:
        assert blocks, "No JSON-LD structured data found"
        for block in blocks:
            context = str(block.get("@context", "")).rstrip("/")
            assert context in (SCHEMA_ORG_CONTEXT, "http://schema.org"), (
                f"Unexpected JSON-LD @context: {block.get('@context')!r}"
            )
            assert block.get("@type"), f"JSON-LD block without @type: {block}"

    @staticmethod
    async def to_have_structured_data(page: Page) -> List[Dict[str, Any]]:
        with allure.step("Verify JSON-LD structured data"):
            blocks = await StorefrontAssertions.get_json_ld(page)
            StorefrontAssertions.assert_schema_org(blocks)
            allure.attach(
                json.dumps(blocks, indent=2, ensure_ascii=False),
                name="JSON-LD",
                attachment_type=allure.attachment_type.JSON,
            )
            return blocks

    # =========================================================================
    # Page State
    # =========================================================================

    @staticmethod
    async def to_be_loaded(page: Page, timeout: int = 10000) -> None:
        await expect(page).to_have_url(re.compile(r".*"), timeout=timeout)
        await page.wait_for_load_state("networkidle", timeout=timeout)

    @staticmethod
    async def images_missing_alt(page: Page) -> List[str]:
        """Return the ``src`` of every image without an ``alt`` attribute."""
        return await page.eval_on_selector_all(
            "img",
            "imgs => imgs.filter(i => !i.hasAttribute('alt')).map(i => i.getAttribute('src') || '<inline>')",
        )

    @staticmethod
    async def to_be_accessible(page: Page) -> None:
        """Every image has an alt attribute and a visible h1 exists."""
        with allure.step("Check basic accessibility"):
            missing = await StorefrontAssertions.images_missing_alt(page)
            if missing:
                logger.warning(f"{len(missing)} image(s) without alt text")
            assert not missing, f"Images without alt attribute: {missing[:10]}"
            await expect(page.locator("h1").first).to_be_visible()


__all__ = [
    "SCHEMA_ORG_CONTEXT",
    "StorefrontAssertions",
    "WHATSAPP_HOSTS",
    "price_pattern",
]
