"""
================================================================================
Allure Report Utilities
================================================================================

Helpers for enriching the storefront Allure report and for summarising an
``allure-results`` directory after a run.

Features:
- Attachment helpers (JSON, text, HTML, screenshots, response logs)
- Report metadata (environment.properties, failure categories)
- Result parsing and summary generation
- Report generation and history management

================================================================================
"""

import json
import shutil
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import allure
from loguru import logger


# ================================================================================
# Attachment Helpers
# ================================================================================

def attach_json(data: Any, name: str = "Data"):
    """
    Attach JSON data to Allure report.

    Args:
        data: Data to attach (will be JSON serialized)
        name: Attachment name
    """
    json_str = json.dumps(data, indent=2, default=str, ensure_ascii=False)
    allure.attach(
        json_str,
        name=name,
        attachment_type=allure.attachment_type.JSON
    )


def attach_text(text: str, name: str = "Text"):
    allure.attach(
        text,
        name=name,
        attachment_type=allure.attachment_type.TEXT
    )


def attach_html(html: str, name: str = "HTML"):
    allure.attach(
        html,
        name=name,
        attachment_type=allure.attachment_type.HTML
    )


def attach_png(image: bytes, name: str = "Screenshot"):
    allure.attach(
        image,
        name=name,
        attachment_type=allure.attachment_type.PNG
    )


def attach_response_log(responses: List[Dict[str, Any]], name: str = "Responses", limit: int = 10):
    """
    Attach the most recent captured responses, failed ones flagged.

    Args:
        responses: Entries with ``url``, ``status`` and ``resource_type``
        name: Attachment name
        limit: How many of the latest entries to keep
    """
    recent = responses[-limit:]
    lines = []
    for entry in recent:
        status = entry.get("status", 0)
        emoji = "✅" if status < 400 else "❌"
        lines.append(f"{emoji} {status} {entry.get('resource_type', '-'):<10} {entry.get('url', '')}")
    attach_text("\n".join(lines) or "No responses captured", name=name)


# ================================================================================
# Report Metadata
# ================================================================================

# Failure buckets shown on the Allure "Categories" tab
DEFAULT_CATEGORIES: List[Dict[str, Any]] = [
    {
        "name": "Element not found (markup drift)",
        "matchedStatuses": ["failed", "broken"],
        "messageRegex": ".*ElementNotFoundError.*|.*All locators failed.*",
    },
    {
        "name": "Element not actionable",
        "matchedStatuses": ["failed", "broken"],
        "messageRegex": ".*ElementNotActionableError.*|.*not clickable.*|.*not editable.*",
    },
    {
        "name": "Input rejected or transformed",
        "matchedStatuses": ["failed", "broken"],
        "messageRegex": ".*ValueMismatchError.*|.*Value mismatch after fill.*",
    },
    {
        "name": "Timeouts",
        "matchedStatuses": ["failed", "broken"],
        "messageRegex": ".*[Tt]imeout.*",
    },
    {
        "name": "Assertion failures",
        "matchedStatuses": ["failed"],
    },
]


def write_environment_properties(results_dir: Path, values: Dict[str, Any]) -> Path:
    """
    Write ``environment.properties`` for the report's Environment widget.

    Returns:
        Path to the written file
    """
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    path = results_dir / "environment.properties"
    lines = [f"{key}={value}" for key, value in values.items() if value is not None]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def write_categories(results_dir: Path, categories: Optional[List[Dict[str, Any]]] = None) -> Path:
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    path = results_dir / "categories.json"
    path.write_text(json.dumps(categories or DEFAULT_CATEGORIES, indent=2), encoding="utf-8")
    return path


# ================================================================================
# Report Processing
# ================================================================================

@dataclass
class TestResultSummary:
    """Summary of test execution results."""
    __test__ = False

    total: int = 0
    passed: int = 0
    failed: int = 0
    broken: int = 0
    skipped: int = 0
    unknown: int = 0
    duration_ms: int = 0
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def pass_rate(self) -> float:
        """Pass rate percentage over executed (non-skipped) tests."""
        executed = self.total - self.skipped
        if executed <= 0:
            return 0.0
        return (self.passed / executed) * 100

    @property
    def successful(self) -> bool:
        return self.failed == 0 and self.broken == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "broken": self.broken,
            "skipped": self.skipped,
            "unknown": self.unknown,
            "pass_rate": f"{self.pass_rate:.2f}%",
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp,
        }


class AllureReportProcessor:
    """
    Processes Allure results and generates reports.

    Retried tests leave one result file per attempt; only the latest
    attempt of each test (by ``historyId``) counts towards the summary.
    """

    def __init__(
        self,
        results_dir: Path,
        report_dir: Optional[Path] = None,
        history_dir: Optional[Path] = None
    ):
        """
        Initialize processor.

        Args:
            results_dir: Allure results directory
            report_dir: Output report directory
            history_dir: History data directory
        """
        self.results_dir = Path(results_dir)
        self.report_dir = Path(report_dir or self.results_dir.parent / "allure-report")
        self.history_dir = Path(history_dir or self.results_dir.parent / "allure-history")

    def parse_results(self) -> List[Dict[str, Any]]:
        """
        Parse Allure result files, keeping the latest attempt per test.

        Returns:
            List of test result dictionaries
        """
        latest: Dict[str, Dict[str, Any]] = {}

        for result_file in self.results_dir.glob("*-result.json"):
            try:
                with open(result_file, encoding="utf-8") as f:
                    result = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Failed to parse {result_file}: {e}")
                continue

            key = result.get("historyId") or result.get("uuid") or result_file.name
            previous = latest.get(key)
            if previous is None or result.get("stop", 0) >= previous.get("stop", 0):
                latest[key] = result

        return list(latest.values())

    def generate_summary(self) -> TestResultSummary:
        results = self.parse_results()
        summary = TestResultSummary()
        summary.total = len(results)

        for result in results:
            status = result.get("status", "unknown")
            if status == "passed":
                summary.passed += 1
            elif status == "failed":
                summary.failed += 1
            elif status == "broken":
                summary.broken += 1
            elif status == "skipped":
                summary.skipped += 1
            else:
                summary.unknown += 1

            summary.duration_ms += result.get("stop", 0) - result.get("start", 0)

        return summary

    def failures(self) -> List[Dict[str, str]]:
        """Name and first message line of every failed or broken test."""
        failed = []
        for result in self.parse_results():
            if result.get("status") not in ("failed", "broken"):
                continue
            message = (result.get("statusDetails") or {}).get("message", "")
            failed.append({
                "name": result.get("fullName") or result.get("name", "<unknown>"),
                "status": result["status"],
                "message": message.strip().splitlines()[0] if message.strip() else "",
            })
        return failed

    def copy_history(self):
        """Copy history from previous report to results."""
        history_source = self.report_dir / "history"
        history_dest = self.results_dir / "history"

        if history_source.exists():
            if history_dest.exists():
                shutil.rmtree(history_dest)
            shutil.copytree(history_source, history_dest)
            logger.info("Copied history from previous report")

    def generate_report(self) -> bool:
        """
        Generate Allure HTML report.

        Returns:
            True if successful
        """
        self.copy_history()

        cmd = [
            "allure", "generate",
            str(self.results_dir),
            "-o", str(self.report_dir),
            "--clean"
        ]

        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError:
            logger.error("Allure command not found. Install allure-commandline.")
            return False

        if result.returncode == 0:
            logger.info(f"Report generated at {self.report_dir}")
            return True
        logger.error(f"Report generation failed: {result.stderr}")
        return False

    def save_history(self):
        """Save current history for future reports."""
        history_source = self.report_dir / "history"

        if history_source.exists():
            self.history_dir.mkdir(parents=True, exist_ok=True)

            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            shutil.copytree(history_source, self.history_dir / timestamp)

            current_dir = self.history_dir / "current"
            if current_dir.exists():
                shutil.rmtree(current_dir)
            shutil.copytree(history_source, current_dir)

            logger.info(f"History saved to {self.history_dir}")

    def print_summary(self):
        """Print summary to console."""
        summary = self.generate_summary()

        print("\n" + "=" * 60)
        print("GALERÍA MEXICANA E2E SUMMARY")
        print("=" * 60)
        print(f"Total Tests:    {summary.total}")
        print(f"Passed:         {summary.passed} ✅")
        print(f"Failed:         {summary.failed} ❌")
        print(f"Broken:         {summary.broken} ⚠️")
        print(f"Skipped:        {summary.skipped} ⏭️")
        print(f"Pass Rate:      {summary.pass_rate:.2f}%")
        print(f"Duration:       {summary.duration_ms / 1000:.2f}s")
        for failure in self.failures():
            print(f"  ❌ {failure['name']}: {failure['message']}")
        print("=" * 60 + "\n")


# ================================================================================
# Convenience Functions
# ================================================================================

def generate_allure_report(
    results_dir: str,
    output_dir: Optional[str] = None,
    open_report: bool = False
) -> bool:
    """
    Generate Allure report from results.

    Args:
        results_dir: Path to allure-results directory
        output_dir: Optional output directory
        open_report: Whether to open report in browser

    Returns:
        True if successful
    """
    processor = AllureReportProcessor(
        Path(results_dir),
        Path(output_dir) if output_dir else None
    )

    success = processor.generate_report()

    if success:
        processor.print_summary()
        processor.save_history()

        if open_report:
            subprocess.run(["allure", "open", str(processor.report_dir)])

    return success


__all__ = [
    "AllureReportProcessor",
    "DEFAULT_CATEGORIES",
    "TestResultSummary",
    "attach_html",
    "attach_json",
    "attach_png",
    "attach_response_log",
    "attach_text",
    "generate_allure_report",
    "write_categories",
    "write_environment_properties",
]
