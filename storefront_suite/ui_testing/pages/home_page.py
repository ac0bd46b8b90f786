"""
================================================================================
Home Page Object
================================================================================

Landing page of the storefront: header, banner, product grid with filters
and search, brands and blog sections, footer, floating WhatsApp button and
the cart modal that hands checkout off to WhatsApp.

NOTE:
  Every element lists its alternatives in priority order. The first
  selector is what the current markup uses; later ones cover older
  layouts and data-testid variants.

================================================================================
"""

from __future__ import annotations

import re
from typing import Dict, Optional

import allure
from loguru import logger
from playwright.async_api import Locator, expect
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from storefront_suite.ui_testing.framework.assertions import StorefrontAssertions
from storefront_suite.ui_testing.framework.interaction import ElementQuery, WaitCondition
from storefront_suite.ui_testing.framework.page_base import BasePage


Q = ElementQuery.parse


class HomePage(BasePage):
    """Storefront landing page (``/``)."""

    URL_PATH = "/"
    PAGE_TITLE = "Galería Mexicana"

    LOCATORS: Dict[str, ElementQuery] = {
        # Header
        "header": Q("#unified-header, header"),
        "logo": Q('img[alt*="Galería Mexicana"], img[alt*="Galeria Mexicana"], #unified-header img'),
        "cart_button": Q('[data-testid="cart-button"], .cart-icon, [class*="cart"]'),
        "cart_counter": Q('.cart-counter, [data-testid="cart-counter"]'),
        # Navigation
        "nav_menu": Q('.nav-menu, [data-testid="nav-menu"]'),
        "tequila_link": Q('a[href="/tequila"], a[href*="tequila"]'),
        "blog_link": Q('a[href="/blog"], a[href*="blog"]'),
        "admin_link": Q('a[href="/admin"], a[href*="admin"]'),
        # Banner
        "banner": Q('.banner, [data-testid="banner"]'),
        "banner_title": Q(".banner h1, .banner-title"),
        "banner_subtitle": Q(".banner-subtitle, .banner p"),
        # Product grid
        "product_grid": Q('.product-grid, [data-testid="product-grid"]'),
        "product_cards": Q('.product-card, [data-testid="product-card"]'),
        "product_name": Q(".product-name, .product-title"),
        "product_price": Q(".product-price, .price"),
        "product_image": Q(".product-image img, img"),
        "add_to_cart": Q('.add-to-cart, [data-testid="add-to-cart"]'),
        # Filters
        "filter_container": Q('.product-filter, [data-testid="filter"]'),
        "category_filter": Q('.category-filter, select[name="category"]'),
        "search_input": Q('.search-input, input[type="search"], input[placeholder*="buscar"]'),
        "search_button": Q('.search-button, [data-testid="search-btn"]'),
        "sort_select": Q('.sort-select, select[name="sort"]'),
        # Brands
        "brands_section": Q('.brands-section, [data-testid="brands"]'),
        "brand_logos": Q(".brand-logo, .brands-section img"),
        # Blog
        "blog_section": Q('.blog-section, [data-testid="blog-section"]'),
        "blog_posts": Q(".blog-post, .blog-card"),
        "blog_titles": Q(".blog-title, .blog-post h3"),
        # Footer
        "footer": Q("footer, .footer"),
        "footer_links": Q("footer a, .footer a"),
        "social_links": Q('.social-links a, [data-testid="social-link"]'),
        # WhatsApp
        "whatsapp_button": Q('.whatsapp-float, [data-testid="whatsapp"], .floating-whatsapp'),
        # Cart modal
        "cart_modal": Q('.cart-modal, [data-testid="cart-modal"]'),
        "cart_items": Q('.cart-item, [data-testid="cart-item"]'),
        "cart_total": Q('.cart-total, [data-testid="cart-total"]'),
        "checkout_button": Q('.checkout-btn, [data-testid="checkout"]'),
        "cart_close": Q('.cart-close, [data-testid="cart-close"]'),
        "remove_item": Q('.remove-item, [data-testid="remove-item"]'),
        "quantity_input": Q('.quantity-input, input[type="number"]'),
        "clear_cart": Q('.clear-cart, [data-testid="clear-cart"]'),
    }

    # ============================================================
    # Navigation
    # ============================================================

    @allure.step("Open homepage")
    async def open(self) -> "HomePage":
        await self.navigate()
        return self

    async def click_logo(self) -> None:
        await self.click("logo")
        await self.wait_for_page_load()

    @allure.step("Go to tequila page")
    async def navigate_to_tequila(self) -> None:
        await self.click("tequila_link")
        await self.wait_for_page_load()

    @allure.step("Go to blog")
    async def navigate_to_blog(self) -> None:
        await self.click("blog_link")
        await self.wait_for_page_load()

    # ============================================================
    # Products
    # ============================================================

    async def get_product_count(self) -> int:
        return await self.find_all("product_cards").count()

    def first_product(self) -> Locator:
        return self.find_all("product_cards").first

    def product_by_name(self, name: str) -> Locator:
        return self.find_all("product_cards").filter(has_text=name).first

    async def get_product_name(self, card: Locator) -> str:
        return await self.get_text("product_name", within=card)

    async def get_product_price(self, card: Locator) -> str:
        return await self.get_text("product_price", within=card)

    async def add_product_to_cart(self, card: Locator, verify_counter: bool = True) -> None:
        """
        Click the card's add-to-cart button.

        Args:
            card: Product card locator
            verify_counter: Wait for the header counter to increase instead
                of sleeping through the cart animation
        """
        baseline = await self.get_cart_item_count() if verify_counter else 0
        postcondition = self.cart_count_above(baseline) if verify_counter else None
        await self.click("add_to_cart", within=card, postcondition=postcondition)

    @allure.step("Add first product to cart")
    async def add_first_product_to_cart(self, verify_counter: bool = True) -> None:
        await self.add_product_to_cart(self.first_product(), verify_counter)

    @allure.step("Add '{name}' to cart")
    async def add_product_to_cart_by_name(self, name: str, verify_counter: bool = True) -> None:
        await self.add_product_to_cart(self.product_by_name(name), verify_counter)

    # ============================================================
    # Search, Filter, Sort
    # ============================================================

    @allure.step("Search products: {term}")
    async def search_products(self, term: str) -> None:
        """Fill the search box, then use the button when present, else Enter."""
        await self.fill("search_input", term)
        if await self.exists("search_button"):
            await self.click("search_button")
        else:
            await self.ui.press(self.query("search_input"), "Enter")
        await self.wait_for_page_load()

    async def _select_if_visible(self, name: str, value: str) -> bool:
        if not await self.is_visible(name):
            logger.info(f"'{name}' not present on this layout; skipping")
            return False
        await self.select_option(name, value)
        await self.wait_for_page_load()
        return True

    async def filter_by_category(self, category: str) -> bool:
        return await self._select_if_visible("category_filter", category)

    async def sort_products(self, option: str) -> bool:
        return await self._select_if_visible("sort_select", option)

    # ============================================================
    # Cart
    # ============================================================

    @allure.step("Open cart")
    async def open_cart(self) -> None:
        await self.click("cart_button", postcondition=lambda: self.wait_for("cart_modal"))

    @allure.step("Close cart")
    async def close_cart(self) -> float:
        await self.click("cart_close")
        return await self.wait_for_disappearance("cart_modal")

    async def get_cart_total(self) -> str:
        return await self.get_text("cart_total")

    async def get_cart_line_count(self) -> int:
        return await self.find_all("cart_items").count()

    @allure.step("Remove first cart item")
    async def remove_first_cart_item(self) -> None:
        await self.open_cart()
        before = await self.get_cart_line_count()
        await self.click("remove_item", within=self.find_all("cart_modal").first)
        await expect(self.find_all("cart_items")).to_have_count(max(before - 1, 0))

    @allure.step("Clear cart")
    async def clear_cart(self) -> bool:
        await self.open_cart()
        if not await self.is_visible("clear_cart"):
            return False
        await self.click("clear_cart")
        await expect(self.find_all("cart_items")).to_have_count(0)
        return True

    async def _follow_external_link(self, name: str) -> str:
        """
        Click an element that opens an external URL and return that URL.

        Handles both a new tab and same-tab navigation.
        """
        popup_timeout = self.config.get("interaction.default_timeout_ms", 5000)
        try:
            async with self.page.context.expect_page(timeout=popup_timeout) as popup_info:
                await self.click(name)
            popup = await popup_info.value
        except PlaywrightTimeoutError:
            logger.debug(f"'{name}' did not open a new tab; using current URL")
            return self.page.url

        await popup.wait_for_load_state("domcontentloaded")
        url = popup.url
        await popup.close()
        return url

    @allure.step("Proceed to checkout")
    async def proceed_to_checkout(self) -> str:
        """Open the cart and press checkout. Returns the WhatsApp URL opened."""
        await self.open_cart()
        url = await self._follow_external_link("checkout_button")
        logger.info(f"Checkout handed off to: {url}")
        return url

    # ============================================================
    # WhatsApp
    # ============================================================

    async def get_whatsapp_href(self) -> Optional[str]:
        return await self.ui.get_attribute(self.query("whatsapp_button"), "href")

    @allure.step("Click WhatsApp button")
    async def click_whatsapp_button(self) -> str:
        return await self._follow_external_link("whatsapp_button")

    # ============================================================
    # Verifications
    # ============================================================

    @allure.step("Verify homepage loaded")
    async def verify_homepage_loaded(self) -> None:
        for name in ("header", "banner", "product_grid", "footer"):
            await self.wait_for(name)

    @allure.step("Verify products displayed")
    async def verify_products_displayed(self) -> None:
        count = await self.get_product_count()
        assert count > 0, "No product cards rendered"
        card = self.first_product()
        for name in ("product_name", "product_price", "product_image"):
            await self.ui.resolve(self.query(name), WaitCondition.VISIBLE, within=card)

    @allure.step("Verify brands section")
    async def verify_brands_section(self) -> None:
        await self.wait_for("brands_section")
        assert await self.find_all("brand_logos").count() > 0, "No brand logos"

    @allure.step("Verify blog section")
    async def verify_blog_section(self) -> None:
        await self.wait_for("blog_section")
        assert await self.find_all("blog_posts").count() > 0, "No blog posts"

    @allure.step("Verify navigation")
    async def verify_navigation(self) -> None:
        await self.wait_for("logo")
        await self.wait_for("cart_button")

    @allure.step("Verify search box")
    async def verify_search_functionality(self) -> None:
        await self.wait_for("search_input")

    @allure.step("Verify responsive elements")
    async def verify_responsive_elements(self) -> None:
        await self.wait_for("header")
        await self.wait_for("product_grid")
        if self.is_mobile_viewport():
            logger.info("Mobile viewport detected, navigation may be collapsed")

    @allure.step("Verify cart counter increments")
    async def verify_cart_functionality(self) -> None:
        initial = await self.get_cart_item_count()
        await self.add_first_product_to_cart()
        assert await self.get_cart_item_count() > initial

    @allure.step("Verify WhatsApp integration")
    async def verify_whatsapp_integration(self) -> None:
        await self.wait_for("whatsapp_button")

    @allure.step("Verify homepage SEO")
    async def verify_seo(self) -> None:
        await self.check_seo()
        for prop in ("og:title", "og:description", "og:image"):
            await expect(self.page.locator(f'meta[property="{prop}"]')).to_have_attribute(
                "content", re.compile(r"\S")
            )

    async def verify_accessibility(self) -> None:
        await StorefrontAssertions.to_be_accessible(self.page)


__all__ = ["HomePage"]
