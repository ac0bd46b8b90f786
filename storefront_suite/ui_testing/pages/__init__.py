"""
================================================================================
Page Objects
================================================================================

Page Object Model implementations for storefront pages.

Each page class encapsulates:
    - Element tables (ElementQuery per logical element)
    - Page-specific actions
    - Verification methods

Author: Automation Team
License: MIT
================================================================================
"""

from .home_page import HomePage
from .tequila_page import TequilaPage

__all__ = [
    "HomePage",
    "TequilaPage",
]
