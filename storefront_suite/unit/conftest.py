import pytest

from storefront_suite.ui_testing.framework.config_loader import ConfigLoader


@pytest.fixture(autouse=True)
def fresh_config():
    """Tests that point ConfigLoader at a temp file must not leak it."""
    ConfigLoader.reset()
    yield
    ConfigLoader.reset()
