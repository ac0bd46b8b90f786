"""
================================================================================
Storefront Tools
================================================================================

Support utilities for the storefront end-to-end suite.

Modules:
    - common: Shared configuration access and logging setup
    - report_tools: Allure attachments, result summaries and report generation

Example:
    from storefront_tools.common import init_logger
    from storefront_tools.report_tools.allure_utils import AllureReportProcessor

    init_logger()
    processor = AllureReportProcessor("allure-results")
    summary = processor.generate_summary()

================================================================================
"""

__version__ = "1.0.0"

__all__ = [
    "common",
    "report_tools",
]
