"""
================================================================================
Resilient Interaction Layer
================================================================================

Policy layer on top of Playwright's locator engine:

    locate -> wait until actionable -> act -> verify postcondition

Features:
    - Ordered multi-selector fallback (ElementQuery)
    - Per-selector slices of a single timeout budget
    - Read-back verification after fill
    - Disappearance waits for modals and loading indicators
    - Non-throwing existence probe for optional UI
    - Fallback usage analytics for markup-drift maintenance

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .config_loader import ConfigLoader


# =============================================================================
# Errors
# =============================================================================

class InteractionError(Exception):
    """
    Base class for interaction failures.

    Carries the attempted selector list plus the condition and timeout that
    were not met, so markup drift can be diagnosed from the message alone.
    """

    def __init__(
        self,
        message: str,
        query: Optional["ElementQuery"] = None,
        condition: Optional["WaitCondition"] = None,
        timeout_ms: Optional[float] = None,
        attempts: Optional[List[str]] = None,
    ):
        self.query = query
        self.condition = condition
        self.timeout_ms = timeout_ms
        self.attempts = list(attempts or [])
        super().__init__(self._format(message))

    def _format(self, message: str) -> str:
        lines = [message]
        if self.query is not None:
            lines.append(f"  element: {self.query.label}")
            lines.append(f"  selectors: {list(self.query.selectors)}")
        if self.condition is not None:
            lines.append(f"  condition: {self.condition.value}")
        if self.timeout_ms is not None:
            lines.append(f"  timeout: {self.timeout_ms:.0f}ms")
        lines.extend(f"  - {attempt}" for attempt in self.attempts)
        return "\n".join(lines)


class ElementNotFoundError(InteractionError):
    """Raised when no selector alternative satisfied the condition in time."""


class ValueMismatchError(InteractionError):
    """Raised when a filled field does not read back the typed text."""

    def __init__(self, expected: str, actual: str, **kwargs: Any):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Value mismatch after fill: expected {expected!r}, got {actual!r}",
            **kwargs,
        )


class InteractionTimeoutError(InteractionError):
    """Raised when a disappearance or generic wait exceeded its budget."""


class ElementNotActionableError(InteractionError):
    """Raised when a resolved element never became actionable (e.g. covered)."""


# =============================================================================
# Data Model
# =============================================================================

class WaitCondition(str, Enum):
    """Element state to await. Exactly one per wait call."""

    ATTACHED = "attached"
    VISIBLE = "visible"
    STABLE = "stable"
    DETACHED = "detached"


def split_selector_list(expression: str) -> List[str]:
    """
    Split a comma-alternation string into selectors.

    Only top-level commas separate alternatives; commas inside quotes,
    brackets or parentheses belong to the selector:

        >>> split_selector_list(".cart-counter, [data-testid='cart-counter']")
        ['.cart-counter', "[data-testid='cart-counter']"]
        >>> split_selector_list("button:has-text('Add, now'), .add")
        ["button:has-text('Add, now')", '.add']
    """
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    quote: Optional[str] = None
    escaped = False

    for char in expression:
        if escaped:
            current.append(char)
            escaped = False
            continue
        if char == "\\":
            current.append(char)
            escaped = True
            continue
        if quote:
            current.append(char)
            if char == quote:
                quote = None
            continue
        if char in ("'", '"'):
            quote = char
        elif char in "([":
            depth += 1
        elif char in ")]":
            depth = max(depth - 1, 0)
        elif char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)

    parts.append("".join(current).strip())
    return [part for part in parts if part]


@dataclass(frozen=True)
class ElementQuery:
    """
    Ordered list of equivalent selectors for one logical UI element.

    Order is priority: the first selector that satisfies the wait condition
    wins, even if a later one matches at the same moment.

    Attributes:
        selectors: Non-empty tuple of selector expressions (CSS, text=, role=, xpath=)
        name: Human-readable element name used in logs and reports
    """

    selectors: Tuple[str, ...]
    name: str = ""

    def __post_init__(self) -> None:
        raw = self.selectors
        if isinstance(raw, str):
            raw = split_selector_list(raw)
        cleaned = tuple(s.strip() for s in raw if s and s.strip())
        if not cleaned:
            raise ValueError(
                f"ElementQuery '{self.name or '<unnamed>'}' needs at least one selector"
            )
        object.__setattr__(self, "selectors", cleaned)

    @classmethod
    def parse(cls, expression: str, name: str = "") -> "ElementQuery":
        """Build a query from a comma-alternation string."""
        return cls(tuple(split_selector_list(expression)), name=name)

    @classmethod
    def of(cls, *selectors: str, name: str = "") -> "ElementQuery":
        """Build a query from positional selectors."""
        return cls(tuple(selectors), name=name)

    @property
    def primary(self) -> str:
        return self.selectors[0]

    @property
    def label(self) -> str:
        return self.name or self.primary

    def named(self, name: str) -> "ElementQuery":
        return replace(self, name=name)

    def __iter__(self) -> Iterator[str]:
        return iter(self.selectors)

    def __len__(self) -> int:
        return len(self.selectors)


QueryLike = Union[ElementQuery, str, Sequence[str]]


def as_query(target: QueryLike, name: str = "") -> ElementQuery:
    """Coerce a string, list of selectors or ElementQuery into an ElementQuery."""
    if isinstance(target, ElementQuery):
        return target.named(name) if name and not target.name else target
    if isinstance(target, str):
        return ElementQuery.parse(target, name=name)
    return ElementQuery(tuple(target), name=name)


@dataclass
class ActionResult:
    """
    Outcome of a resolution or action.

    Attributes:
        action: Operation name ("resolve", "click", "fill", ...)
        query: The query that was resolved
        selector: The alternative that matched
        selector_index: Position of the matched alternative (0 = primary)
        elapsed_ms: Time spent waiting and acting
        locator: Playwright Locator of the matched element
    """

    action: str
    query: ElementQuery
    selector: str
    selector_index: int
    elapsed_ms: float
    locator: Optional[Locator] = field(default=None, repr=False, compare=False)
    success: bool = True

    @property
    def used_fallback(self) -> bool:
        return self.selector_index > 0


@dataclass
class InteractionSettings:
    """Default budgets for the interaction layer (milliseconds)."""

    default_timeout_ms: float = 5000
    exists_timeout_ms: float = 1000
    settle_ms: float = 100
    action_timeout_ms: float = 10000

    @classmethod
    def from_config(cls, config: Optional[ConfigLoader] = None) -> "InteractionSettings":
        config = config or ConfigLoader()
        defaults = cls()
        return cls(
            default_timeout_ms=config.get("interaction.default_timeout_ms", defaults.default_timeout_ms),
            exists_timeout_ms=config.get("interaction.exists_timeout_ms", defaults.exists_timeout_ms),
            settle_ms=config.get("interaction.settle_ms", defaults.settle_ms),
            action_timeout_ms=config.get("interaction.action_timeout_ms", defaults.action_timeout_ms),
        )


Postcondition = Callable[[], Awaitable[Any]]


def _now_ms() -> float:
    return time.monotonic() * 1000


def _first_line(error: BaseException, limit: int = 120) -> str:
    text = str(error).strip().splitlines()
    return (text[0] if text else type(error).__name__)[:limit]


# =============================================================================
# Interaction Layer
# =============================================================================

class InteractionLayer:
    """
    Resilient element interaction on a single Playwright page.

    Usage:
        >>> ui = InteractionLayer(page)
        >>> add = ElementQuery.parse(".add-to-cart, [data-testid='add-to-cart']")
        >>> result = await ui.click(add)
        >>> result.selector
        "[data-testid='add-to-cart']"

    The layer owns no browser resources and must not outlive its page.
    It never retries beyond selector fallback and poll-until-timeout;
    suite-level retries belong to the test runner.
    """

    def __init__(
        self,
        page: Page,
        settings: Optional[InteractionSettings] = None,
    ):
        """
        Args:
            page: Playwright Page object
            settings: Budgets; loaded from configuration when omitted
        """
        self.page = page
        self.settings = settings or InteractionSettings.from_config()
        self._history: List[ActionResult] = []
        self._fallback_used: Dict[str, ActionResult] = {}

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    async def resolve(
        self,
        target: QueryLike,
        condition: WaitCondition = WaitCondition.VISIBLE,
        timeout: Optional[float] = None,
        within: Optional[Locator] = None,
    ) -> ActionResult:
        """
        Resolve the first alternative that satisfies ``condition``.

        Each selector gets ``remaining_budget / selectors_left``, so the last
        alternative receives whatever is left and the whole query never
        waits longer than ``timeout``.

        Args:
            target: ElementQuery, comma-alternation string or list of selectors
            condition: State to await (DETACHED is not resolvable)
            timeout: Total budget in milliseconds
            within: Optional parent Locator to scope the search

        Returns:
            ActionResult carrying the matched selector and its Locator

        Raises:
            ElementNotFoundError: When every alternative failed
        """
        query = as_query(target)
        condition = WaitCondition(condition)
        if condition is WaitCondition.DETACHED:
            raise ValueError(
                "resolve() cannot target a detached element; "
                "use wait_for_disappearance()"
            )

        budget = self.settings.default_timeout_ms if timeout is None else timeout
        root = within if within is not None else self.page
        started = _now_ms()
        deadline = started + budget
        attempts: List[str] = []

        for index, selector in enumerate(query.selectors):
            remaining = max(deadline - _now_ms(), 0)
            slice_ms = remaining / (len(query.selectors) - index)
            locator = root.locator(selector)
            if condition is not WaitCondition.ATTACHED:
                # first visible match, not first in DOM order
                locator = locator.filter(visible=True)
            locator = locator.first
            try:
                await self._await_condition(locator, condition, slice_ms)
            except PlaywrightError as e:
                attempts.append(f"{selector} -> {_first_line(e)}")
                logger.debug(
                    f"'{query.label}' alternative {index} not {condition.value} "
                    f"within {slice_ms:.0f}ms: {selector}"
                )
                continue

            result = ActionResult(
                action="resolve",
                query=query,
                selector=selector,
                selector_index=index,
                elapsed_ms=_now_ms() - started,
                locator=locator,
            )
            self._record(result)
            return result

        message = f"❌ All locators failed for '{query.label}'"
        logger.error(f"{message} ({condition.value}, {budget:.0f}ms)")
        raise ElementNotFoundError(
            message,
            query=query,
            condition=condition,
            timeout_ms=budget,
            attempts=attempts,
        )

    async def _await_condition(
        self,
        locator: Locator,
        condition: WaitCondition,
        timeout_ms: float,
    ) -> None:
        """Wait for a single locator; a zero budget still gets 1ms (0 means forever)."""
        started = _now_ms()
        if condition is not WaitCondition.STABLE:
            await locator.wait_for(state=condition.value, timeout=max(timeout_ms, 1))
            return

        await locator.wait_for(state="visible", timeout=max(timeout_ms, 1))
        left = max(timeout_ms - (_now_ms() - started), 1)
        handle = await locator.element_handle(timeout=left)
        left = max(timeout_ms - (_now_ms() - started), 1)
        await handle.wait_for_element_state("stable", timeout=left)

    def _record(self, result: ActionResult) -> None:
        self._history.append(result)
        if result.used_fallback:
            logger.warning(
                f"⚠️ Element '{result.query.label}' used fallback: "
                f"#{result.selector_index} -> {result.selector}"
            )
            self._fallback_used[result.query.label] = result
        else:
            logger.debug(f"✅ Element '{result.query.label}' found: {result.selector}")

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def click(
        self,
        target: QueryLike,
        force: bool = False,
        timeout: Optional[float] = None,
        settle_ms: Optional[float] = None,
        postcondition: Optional[Postcondition] = None,
        within: Optional[Locator] = None,
    ) -> ActionResult:
        """
        Click the first visible alternative.

        Args:
            target: Element to click
            force: Bypass overlap/actionability checks. Can hide real UI
                bugs, so callers must say why they need it.
            timeout: Budget for resolution and for the click itself
            settle_ms: Delay after the click when no postcondition is given
            postcondition: Coroutine factory awaited after the click instead
                of the settle delay, e.g. an ``expect`` on a cart counter
            within: Optional parent Locator

        Raises:
            ElementNotFoundError: No alternative became visible
            ElementNotActionableError: The element stayed covered/disabled
        """
        started = _now_ms()
        resolved = await self.resolve(target, WaitCondition.VISIBLE, timeout, within)
        action_budget = self.settings.action_timeout_ms if timeout is None else timeout

        if force:
            logger.warning(f"Forced click on '{resolved.query.label}' (actionability checks bypassed)")
        try:
            await resolved.locator.click(force=force, timeout=max(action_budget, 1))
        except PlaywrightTimeoutError as e:
            raise ElementNotActionableError(
                f"Element '{resolved.query.label}' was not clickable: {_first_line(e)}",
                query=resolved.query,
                condition=WaitCondition.VISIBLE,
                timeout_ms=action_budget,
                attempts=[resolved.selector],
            ) from e

        if postcondition is not None:
            await postcondition()
        else:
            delay = self.settings.settle_ms if settle_ms is None else settle_ms
            if delay > 0:
                await asyncio.sleep(delay / 1000)

        return replace(resolved, action="click", elapsed_ms=_now_ms() - started)

    async def fill(
        self,
        target: QueryLike,
        text: str,
        timeout: Optional[float] = None,
        within: Optional[Locator] = None,
    ) -> ActionResult:
        """
        Clear a field, type ``text`` and verify it reads back unchanged.

        Raises:
            ElementNotFoundError: No alternative became visible
            ElementNotActionableError: The field never became editable
            ValueMismatchError: Input was rejected or transformed (masks,
                max-length truncation, disabled handlers)
        """
        started = _now_ms()
        resolved = await self.resolve(target, WaitCondition.VISIBLE, timeout, within)
        locator = resolved.locator
        action_budget = max(self.settings.action_timeout_ms if timeout is None else timeout, 1)

        try:
            await locator.clear(timeout=action_budget)
            await locator.fill(text, timeout=action_budget)
            actual = await locator.input_value(timeout=action_budget)
        except PlaywrightTimeoutError as e:
            raise ElementNotActionableError(
                f"Field '{resolved.query.label}' was not editable: {_first_line(e)}",
                query=resolved.query,
                condition=WaitCondition.VISIBLE,
                timeout_ms=action_budget,
                attempts=[resolved.selector],
            ) from e

        if actual != text:
            logger.error(f"Field '{resolved.query.label}' read back {actual!r}, typed {text!r}")
            raise ValueMismatchError(
                expected=text,
                actual=actual,
                query=resolved.query,
                attempts=[resolved.selector],
            )

        logger.debug(f"Filled '{resolved.query.label}' ({len(text)} chars)")
        return replace(resolved, action="fill", elapsed_ms=_now_ms() - started)

    async def wait_for_disappearance(
        self,
        target: QueryLike,
        timeout: Optional[float] = None,
        within: Optional[Locator] = None,
    ) -> float:
        """
        Wait until no alternative resolves to an attached node.

        Returns as soon as the condition holds, not at the end of the budget.

        Returns:
            Elapsed milliseconds

        Raises:
            InteractionTimeoutError: Something was still attached at the deadline
        """
        query = as_query(target)
        budget = self.settings.default_timeout_ms if timeout is None else timeout
        root = within if within is not None else self.page
        started = _now_ms()
        deadline = started + budget

        while True:
            for selector in query.selectors:
                remaining = max(deadline - _now_ms(), 1)
                try:
                    await root.locator(selector).first.wait_for(state="detached", timeout=remaining)
                except PlaywrightTimeoutError as e:
                    raise InteractionTimeoutError(
                        f"'{query.label}' did not disappear",
                        query=query,
                        condition=WaitCondition.DETACHED,
                        timeout_ms=budget,
                        attempts=[f"{selector} -> {_first_line(e)}"],
                    ) from e

            # An earlier alternative may have re-attached while later ones were awaited
            still_attached = [s for s in query.selectors if await root.locator(s).count() > 0]
            if not still_attached:
                elapsed = _now_ms() - started
                logger.debug(f"'{query.label}' disappeared after {elapsed:.0f}ms")
                return elapsed
            if _now_ms() >= deadline:
                raise InteractionTimeoutError(
                    f"'{query.label}' did not disappear",
                    query=query,
                    condition=WaitCondition.DETACHED,
                    timeout_ms=budget,
                    attempts=[f"{s} -> still attached" for s in still_attached],
                )

    async def exists(
        self,
        target: QueryLike,
        timeout: Optional[float] = None,
        condition: WaitCondition = WaitCondition.ATTACHED,
        within: Optional[Locator] = None,
    ) -> bool:
        """
        Probe for optional UI without raising.

        Short default timeout: optional affordances that never appear must
        not stall the suite.
        """
        budget = self.settings.exists_timeout_ms if timeout is None else timeout
        try:
            await self.resolve(target, condition, budget, within)
            return True
        except ElementNotFoundError:
            return False

    # -------------------------------------------------------------------------
    # Thin helpers
    # -------------------------------------------------------------------------

    async def hover(self, target: QueryLike, timeout: Optional[float] = None,
                    within: Optional[Locator] = None) -> ActionResult:
        resolved = await self.resolve(target, WaitCondition.VISIBLE, timeout, within)
        await resolved.locator.hover()
        return replace(resolved, action="hover")

    async def tap(self, target: QueryLike, timeout: Optional[float] = None,
                  within: Optional[Locator] = None) -> ActionResult:
        """Touch tap; the context must be created with ``has_touch``."""
        resolved = await self.resolve(target, WaitCondition.VISIBLE, timeout, within)
        await resolved.locator.tap()
        return replace(resolved, action="tap")

    async def press(self, target: QueryLike, key: str, timeout: Optional[float] = None,
                    within: Optional[Locator] = None) -> ActionResult:
        resolved = await self.resolve(target, WaitCondition.VISIBLE, timeout, within)
        await resolved.locator.press(key)
        return replace(resolved, action=f"press:{key}")

    async def select_option(self, target: QueryLike, value: str, timeout: Optional[float] = None,
                            within: Optional[Locator] = None) -> ActionResult:
        resolved = await self.resolve(target, WaitCondition.VISIBLE, timeout, within)
        await resolved.locator.select_option(value)
        return replace(resolved, action="select_option")

    async def scroll_into_view(self, target: QueryLike, timeout: Optional[float] = None,
                               within: Optional[Locator] = None) -> ActionResult:
        resolved = await self.resolve(target, WaitCondition.ATTACHED, timeout, within)
        await resolved.locator.scroll_into_view_if_needed()
        return replace(resolved, action="scroll_into_view")

    async def get_text(self, target: QueryLike, timeout: Optional[float] = None,
                       within: Optional[Locator] = None) -> str:
        resolved = await self.resolve(target, WaitCondition.VISIBLE, timeout, within)
        return (await resolved.locator.text_content()) or ""

    async def get_attribute(self, target: QueryLike, name: str, timeout: Optional[float] = None,
                            within: Optional[Locator] = None) -> Optional[str]:
        resolved = await self.resolve(target, WaitCondition.ATTACHED, timeout, within)
        return await resolved.locator.get_attribute(name)

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    @property
    def history(self) -> List[ActionResult]:
        return list(self._history)

    def get_health_report(self) -> str:
        """
        Summarise queries that needed a fallback alternative.

        Those are the selectors to update when the storefront markup drifts.
        """
        if not self._fallback_used:
            return "✅ All elements used primary locators. No maintenance needed."

        report_lines = [
            "⚠️ Locator Health Report - Fallbacks Used:",
            "",
            "The following elements used fallback locators.",
            "Consider updating the primary selectors:",
            "",
        ]
        for label, result in self._fallback_used.items():
            report_lines.extend([
                f"  [{label}]",
                f"    Failed primary: {result.query.primary}",
                f"    Used: #{result.selector_index} -> {result.selector}",
                "",
            ])
        return "\n".join(report_lines)


__all__ = [
    "ActionResult",
    "ElementNotActionableError",
    "ElementNotFoundError",
    "ElementQuery",
    "InteractionError",
    "InteractionLayer",
    "InteractionSettings",
    "InteractionTimeoutError",
    "Postcondition",
    "QueryLike",
    "ValueMismatchError",
    "WaitCondition",
    "as_query",
    "split_selector_list",
]
