from typing import List, Optional

import pytest

from storefront_suite.ui_testing.framework import page_base
from storefront_suite.ui_testing.framework.interaction import InteractionTimeoutError
from storefront_suite.ui_testing.framework.page_base import CART_POLL_MS, BasePage, parse_count


class FakePage:
    def on(self, event, handler):
        pass


class BadgeUI:
    """Serves successive cart badge texts; ``None`` means the badge is hidden."""

    def __init__(self, texts: List[Optional[str]]):
        self.texts = texts
        self.probe_timeouts: List[Optional[float]] = []

    async def exists(self, target, timeout=None, condition=None, within=None) -> bool:
        self.probe_timeouts.append(timeout)
        if len(self.texts) > 1 and self.texts[0] is None:
            self.texts.pop(0)
            return False
        return self.texts[0] is not None

    async def get_text(self, target, timeout=None, within=None) -> str:
        return self.texts.pop(0) if len(self.texts) > 1 else self.texts[0]


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    async def _sleep(seconds):
        return None

    monkeypatch.setattr(page_base.asyncio, "sleep", _sleep)


def make_page(texts) -> BasePage:
    return BasePage(FakePage(), base_url="http://shop.test", ui=BadgeUI(texts))


@pytest.mark.parametrize("text, expected", [("3", 3), ("(12)", 12), ("2 items", 2), ("", 0), (None, 0)])
def test_parse_count(text, expected):
    assert parse_count(text) == expected


async def test_hidden_badge_counts_as_zero():
    assert await make_page([None]).get_cart_item_count() == 0


async def test_cart_postcondition_waits_for_increase():
    page = make_page([None, "1", "1", "2"])

    await page.cart_count_above(1)()

    assert page.ui.texts == ["2"]


async def test_cart_postcondition_polls_with_short_probe():
    page = make_page([None, None, "1"])

    await page.cart_count_above(0)()

    assert page.ui.probe_timeouts
    assert all(t == CART_POLL_MS for t in page.ui.probe_timeouts)


async def test_cart_postcondition_times_out():
    page = make_page(["1"])

    with pytest.raises(InteractionTimeoutError, match="stayed at 1"):
        await page.cart_count_above(1, timeout=1)()

    assert all(t == CART_POLL_MS for t in page.ui.probe_timeouts)
