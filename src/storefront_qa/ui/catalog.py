"""Built-in storefront UI scenarios."""

from __future__ import annotations

from .checks import AnyOf, ElementCountAtLeast, ElementVisible, Fill, Press, TitleMatches
from .runner import UiScenario

PRODUCT_SELECTOR = '[data-test="product"], .product, .product-card'
SEARCH_INPUT_SELECTOR = 'input[type="search"], input[placeholder*="search"]'
SEARCH_RESULT_SELECTOR = '[data-test="product-item"], .product-card, .search-result'
SEARCH_TERM = 'hammer'


def storefront_ui_scenarios() -> list[UiScenario]:
    return [
        UiScenario(
            name='ui_homepage_title',
            path='/',
            checks=(TitleMatches('Practice Software Testing'),),
            tags=('smoke', 'ui'),
        ),
        UiScenario(
            name='ui_navigation_visible',
            path='/',
            checks=(ElementVisible('text=Home'),),
            tags=('smoke', 'ui'),
        ),
        # Either the product grid renders or the page says loading failed.
        UiScenario(
            name='ui_products_or_error_shown',
            path='/',
            checks=(
                AnyOf((
                    ElementCountAtLeast(PRODUCT_SELECTOR),
                    ElementVisible('text=/error/i'),
                    ElementVisible('text=/failed/i'),
                )),
            ),
            tags=('ui', 'products'),
        ),
        UiScenario(
            name='ui_search_for_hammer',
            path='/',
            precondition=ElementVisible(SEARCH_INPUT_SELECTOR),
            actions=(
                Fill(SEARCH_INPUT_SELECTOR, SEARCH_TERM),
                Press(SEARCH_INPUT_SELECTOR, 'Enter'),
            ),
            checks=(
                AnyOf((
                    ElementCountAtLeast(SEARCH_RESULT_SELECTOR),
                    ElementVisible('text=/no.*found/i'),
                )),
            ),
            tags=('ui', 'search'),
        ),
    ]
