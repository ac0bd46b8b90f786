"""
Storefront test suites package.

Kept importable so that page objects, fixtures and the programmatic
runner (`run_tests.py`) can share the same framework modules.

All content is demo-safe and does not include production secrets.
"""
