"""
================================================================================
Suite Pytest Configuration
================================================================================

Registers the project-wide markers and tags tests by location.

================================================================================
"""

from pathlib import Path

import pytest


MARKERS = {
    # Priority
    "P0": "Critical priority tests - must pass for deployment",
    "P1": "High priority tests - important functionality",
    "P2": "Medium priority tests - edge cases and minor features",
    "P3": "Low priority tests - extensive validation",
    # Test type
    "smoke": "Quick verification tests",
    "regression": "Full regression test suite",
    "e2e": "End-to-end tests against a running storefront",
    "ui": "Browser-backed tests",
    "unit": "In-memory tests, no browser required",
    # Feature
    "homepage": "Landing page tests",
    "tequila": "Tequila category page tests",
    "cart": "Shopping cart and WhatsApp checkout tests",
    "accessibility": "Accessibility checks",
    "cross_browser": "Cross-browser and device tests",
    "performance": "Load time and paint metric tests",
    "seo": "SEO metadata and structured data tests",
    "mobile": "Mobile viewport tests",
    "interaction": "Interaction layer behaviour",
}


def pytest_configure(config):
    """Configure pytest with project-wide custom markers."""
    for name, description in MARKERS.items():
        config.addinivalue_line("markers", f"{name}: {description}")


def pytest_collection_modifyitems(config, items):
    """
    Tag tests by directory.

    ui_testing/ -> ui, unit/ -> unit
    """
    for item in items:
        path = str(item.fspath)
        if "ui_testing" in path:
            item.add_marker(pytest.mark.ui)
        if "unit" in Path(path).parts:
            item.add_marker(pytest.mark.unit)


def pytest_report_header(config):
    """Add custom header to pytest output."""
    return [
        "",
        "=" * 60,
        "Galería Mexicana Storefront E2E Suite",
        "=" * 60,
        "",
    ]
