"""
================================================================================
Tequila Page Object
================================================================================

Category page ``/tequila``: filter tabs per tequila type, product grid with
brand/type/price details, badges, quick-view modal, sort, brand filter,
search and "load more".

================================================================================
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

import allure
from loguru import logger
from playwright.async_api import Locator, expect

from storefront_suite.ui_testing.framework.assertions import StorefrontAssertions
from storefront_suite.ui_testing.framework.interaction import ElementQuery, WaitCondition
from storefront_suite.ui_testing.framework.page_base import BasePage


Q = ElementQuery.parse

CATEGORIES = ("todos", "blanco", "reposado", "anejo", "extra-anejo")


def category_tab(category: str, active: bool = False) -> ElementQuery:
    """Filter tab for a tequila category ("todos" also matches data-filter="all")."""
    suffix = ".active" if active else ""
    selectors = [
        f'[data-category="{category}"]{suffix}',
        f'.category-tab[data-filter="{category}"]{suffix}',
    ]
    if category == "todos":
        selectors.append(f'.category-tab[data-filter="all"]{suffix}')
    return ElementQuery(tuple(selectors), name=f"{category}_tab{'_active' if active else ''}")


@dataclass
class TequilaInfo:
    name: str
    brand: str
    type: str
    price: str


class TequilaPage(BasePage):
    """Tequila category page (``/tequila``)."""

    URL_PATH = "/tequila"
    PAGE_TITLE = "Tequila"

    LOCATORS: Dict[str, ElementQuery] = {
        "page_title": Q("h1, .page-title"),
        "page_description": Q(".page-description, .tequila-intro"),
        "filter_container": Q(".filter-container, .tequila-filters"),
        "category_tabs": Q(".category-tab, .filter-tab"),
        "tequila_grid": Q(".tequila-grid, .products-grid, .tequila-products"),
        "tequila_cards": Q(".tequila-card, .product-card, .tequila-item"),
        "tequila_name": Q(".tequila-name, .product-name, h3"),
        "tequila_brand": Q(".tequila-brand, .brand-name"),
        "tequila_type": Q(".tequila-type, .product-type"),
        "tequila_price": Q(".tequila-price, .price, .product-price"),
        "original_price": Q(".original-price, .price-before"),
        "tequila_image": Q(".tequila-image img, .product-image img"),
        "tequila_description": Q(".tequila-description, .product-description"),
        "alcohol_content": Q(".alcohol-content, .alcohol-percentage"),
        "origin": Q(".origin, .tequila-origin"),
        "age_info": Q(".age-info, .aging-info"),
        "stock_status": Q(".stock-status, .availability"),
        "add_to_cart": Q('.add-to-cart-btn, .add-to-cart, [data-testid="add-to-cart"]'),
        "product_modal": Q(".product-modal, .tequila-modal, .product-overlay"),
        "modal_close": Q('.modal-close, .close-modal, [data-testid="close-modal"]'),
        "modal_image": Q(".modal-image img"),
        "modal_details": Q(".modal-details, .product-details"),
        "quick_view": Q('.quick-view, .view-details, [data-testid="quick-view"]'),
        "sort_select": Q('.sort-select, select[name="sort"]'),
        "price_filter": Q(".price-filter, .price-range"),
        "brand_filter": Q('.brand-filter, select[name="brand"]'),
        "search_box": Q('.search-box, input[type="search"]'),
        "discount_badge": Q(".discount-badge, .sale-badge, .discount-tag"),
        "new_badge": Q(".new-badge, .new-product, .nuevo"),
        "premium_badge": Q(".premium-badge, .premium-tag"),
        "load_more": Q('.load-more, .show-more, [data-testid="load-more"]'),
        "pagination": Q(".pagination, .page-numbers"),
        "featured_section": Q(".featured-tequilas, .destacados"),
        "featured_products": Q(".featured-product, .producto-destacado"),
    }

    # ============================================================
    # Navigation and Filters
    # ============================================================

    @allure.step("Open tequila page")
    async def open(self) -> "TequilaPage":
        await self.navigate()
        return self

    @allure.step("Select category: {category}")
    async def select_category(self, category: str) -> None:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown tequila category '{category}'. Choose from: {CATEGORIES}")
        await self.click(category_tab(category))
        await self.wait_for_page_load()

    async def select_all_categories(self) -> None:
        await self.select_category("todos")

    async def filter_by_blanco(self) -> None:
        await self.select_category("blanco")

    async def filter_by_reposado(self) -> None:
        await self.select_category("reposado")

    async def filter_by_anejo(self) -> None:
        await self.select_category("anejo")

    async def filter_by_extra_anejo(self) -> None:
        await self.select_category("extra-anejo")

    async def _select_if_visible(self, name: str, value: str) -> bool:
        if not await self.is_visible(name):
            logger.info(f"'{name}' not present on this layout; skipping")
            return False
        await self.select_option(name, value)
        await self.wait_for_page_load()
        return True

    async def sort_products(self, option: str) -> bool:
        return await self._select_if_visible("sort_select", option)

    async def filter_by_brand(self, brand: str) -> bool:
        return await self._select_if_visible("brand_filter", brand)

    @allure.step("Search tequilas: {term}")
    async def search_tequilas(self, term: str) -> bool:
        if not await self.is_visible("search_box"):
            return False
        await self.fill("search_box", term)
        await self.ui.press(self.query("search_box"), "Enter")
        await self.wait_for_page_load()
        return True

    @allure.step("Load more products")
    async def load_more_products(self) -> bool:
        if not await self.is_visible("load_more"):
            return False
        before = await self.get_tequila_count()
        await self.click("load_more")
        await self.wait_for_page_load()
        logger.info(f"Loaded more tequilas: {before} -> {await self.get_tequila_count()}")
        return True

    # ============================================================
    # Product Cards
    # ============================================================

    async def get_tequila_count(self) -> int:
        return await self.find_all("tequila_cards").count()

    def first_tequila(self) -> Locator:
        return self.find_all("tequila_cards").first

    def tequilas_matching(self, text: str) -> Locator:
        """Cards whose text contains ``text`` (name or brand)."""
        return self.find_all("tequila_cards").filter(has_text=text)

    def tequila_by_name(self, name: str) -> Locator:
        return self.tequilas_matching(name).first

    def tequila_by_brand(self, brand: str) -> Locator:
        return self.tequilas_matching(brand).first

    async def get_tequila_price(self, card: Locator) -> str:
        return await self.get_text("tequila_price", within=card)

    async def get_tequila_brand(self, card: Locator) -> str:
        return await self.get_text("tequila_brand", within=card)

    async def get_tequila_type(self, card: Locator) -> str:
        return await self.get_text("tequila_type", within=card)

    async def get_tequila_info(self, card: Locator) -> TequilaInfo:
        return TequilaInfo(
            name=await self.get_text("tequila_name", within=card),
            brand=await self.get_tequila_brand(card),
            type=await self.get_tequila_type(card),
            price=await self.get_tequila_price(card),
        )

    async def add_tequila_to_cart(self, card: Locator, verify_counter: bool = True) -> None:
        baseline = await self.get_cart_item_count() if verify_counter else 0
        postcondition = self.cart_count_above(baseline) if verify_counter else None
        await self.click("add_to_cart", within=card, postcondition=postcondition)

    @allure.step("Add first tequila to cart")
    async def add_first_tequila_to_cart(self, verify_counter: bool = True) -> None:
        await self.add_tequila_to_cart(self.first_tequila(), verify_counter)

    # ============================================================
    # Badges and Stock
    # ============================================================

    async def is_in_stock(self, card: Locator) -> bool:
        """A card without a stock label is treated as available."""
        if not await self.is_visible("stock_status", within=card):
            return True
        status = await self.get_text("stock_status", within=card)
        return "agotado" not in status.lower()

    async def has_discount(self, card: Locator) -> bool:
        return await self.is_visible("discount_badge", within=card)

    async def is_new_product(self, card: Locator) -> bool:
        return await self.is_visible("new_badge", within=card)

    async def is_premium(self, card: Locator) -> bool:
        return await self.is_visible("premium_badge", within=card)

    # ============================================================
    # Quick View Modal
    # ============================================================

    @allure.step("Open product details")
    async def view_tequila_details(self, card: Locator) -> bool:
        if not await self.is_visible("quick_view", within=card):
            logger.info("Card has no quick-view button")
            return False
        await self.click("quick_view", within=card, postcondition=lambda: self.wait_for("product_modal"))
        return True

    @allure.step("Close product modal")
    async def close_product_modal(self) -> None:
        await self.click("modal_close")
        await self.wait_for_disappearance("product_modal")

    # ============================================================
    # Verifications
    # ============================================================

    @allure.step("Verify tequila page loaded")
    async def verify_tequila_page_loaded(self) -> None:
        for name in ("page_title", "tequila_grid", "filter_container"):
            await self.wait_for(name)

    @allure.step("Verify tequilas displayed")
    async def verify_tequilas_displayed(self) -> None:
        assert await self.get_tequila_count() > 0, "No tequila cards rendered"
        card = self.first_tequila()
        for name in ("tequila_name", "tequila_price", "tequila_image"):
            await self.ui.resolve(self.query(name), WaitCondition.VISIBLE, within=card)

    @allure.step("Verify filter tabs")
    async def verify_filter_tabs(self) -> None:
        for category in ("todos", "blanco", "reposado", "anejo"):
            await self.wait_for(category_tab(category))

    @allure.step("Verify filter: {category}")
    async def verify_filter_functionality(self, category: str) -> None:
        await self.select_category(category)
        await self.wait_for(category_tab(category, active=True))
        assert await self.get_tequila_count() > 0, f"No tequilas under '{category}'"

    @allure.step("Verify tequila details")
    async def verify_tequila_details(self) -> TequilaInfo:
        info = await self.get_tequila_info(self.first_tequila())
        assert info.name, "Tequila name is empty"
        assert info.brand, "Tequila brand is empty"
        StorefrontAssertions.assert_valid_price(info.price)
        return info

    @allure.step("Verify price format")
    async def verify_price_format(self, sample: int = 5) -> List[str]:
        cards = self.find_all("tequila_cards")
        prices = []
        for index in range(min(await cards.count(), sample)):
            price = await self.get_tequila_price(cards.nth(index))
            StorefrontAssertions.assert_valid_price(price)
            prices.append(price)
        return prices

    @allure.step("Verify brand products: {brand}")
    async def verify_brand_products(self, brand: str = "Don Julio") -> int:
        matches = self.tequilas_matching(brand)
        count = await matches.count()
        assert count > 0, f"No {brand} products listed"
        await expect(self.find_all("tequila_name", within=matches.first).first).to_contain_text(brand)
        return count

    @allure.step("Verify product modal")
    async def verify_product_modal(self) -> bool:
        if not await self.view_tequila_details(self.first_tequila()):
            return False
        for name in ("product_modal", "modal_image", "modal_details"):
            await self.wait_for(name)
        await self.close_product_modal()
        return True

    @allure.step("Verify responsive design")
    async def verify_responsive_design(self) -> None:
        await self.set_viewport("mobile")
        await self.wait_for("tequila_grid")
        await self.wait_for("filter_container")

        await self.set_viewport("tablet")
        await self.wait_for("tequila_grid")

        await self.set_viewport("desktop")

    @allure.step("Verify tequila SEO")
    async def verify_seo_elements(self) -> None:
        await self.check_seo()
        title = await self.get_title()
        assert "tequila" in title.lower(), f"Title does not mention tequila: {title!r}"
        await StorefrontAssertions.to_have_structured_data(self.page)

    @allure.step("Verify cart integration")
    async def verify_cart_integration(self) -> None:
        initial = await self.get_cart_item_count()
        await self.add_first_tequila_to_cart()
        assert await self.get_cart_item_count() > initial

    async def page_title_text(self) -> str:
        return await self.get_text("page_title")

    async def description_text(self) -> Optional[str]:
        if not await self.exists("page_description"):
            return None
        return await self.get_text("page_description")

    def price_amounts(self, prices: List[str]) -> List[int]:
        return [StorefrontAssertions.parse_price(p) for p in prices if re.search(r"\d", p)]


__all__ = ["CATEGORIES", "TequilaInfo", "TequilaPage", "category_tab"]
