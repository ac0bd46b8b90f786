#!/usr/bin/env python3
# ================================================================================
# Test Runner Script
# ================================================================================
#
# Main entry point for running the Galería Mexicana storefront suites.
# Wraps pytest with browser project selection, retries, CI defaults,
# a storefront pre-flight check and Allure report generation.
#
# Features:
#   - Run a single suite (homepage, tequila, cart, ...) or everything
#   - Run against one or more browser projects (desktop, mobile, tablet)
#   - Re-run failed tests with pytest's --last-failed
#   - CI mode (retries, single worker, JUnit XML)
#   - Debug mode (Playwright inspector)
#
# Usage:
#   python run_tests.py --suite cart --project chromium
#   python run_tests.py --suite e2e --mobile --retries 1
#   python run_tests.py --suite all --ci
#
# ================================================================================

import argparse
import os
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional

import httpx
from loguru import logger

from storefront_suite.ui_testing.framework.browser_manager import MOBILE_PROJECTS, PROJECTS
from storefront_tools.common import get_config, init_logger
from storefront_tools.report_tools.allure_utils import generate_allure_report


ROOT_DIR = Path(__file__).parent
UI_TESTS = "storefront_suite/ui_testing/tests"

SUITE_PATHS: Dict[str, List[str]] = {
    "homepage": [f"{UI_TESTS}/test_homepage.py"],
    "tequila": [f"{UI_TESTS}/test_tequila.py"],
    "cart": [f"{UI_TESTS}/test_cart.py"],
    "accessibility": [f"{UI_TESTS}/test_cross_browser_accessibility.py"],
    "performance": [f"{UI_TESTS}/test_performance_seo.py"],
    "interaction": [f"{UI_TESTS}/test_interaction_layer_browser.py"],
    "unit": ["storefront_suite/unit"],
    "e2e": [UI_TESTS],
    "all": ["storefront_suite"],
}

# Suites that drive a real browser against the running storefront
APP_SUITES = {"homepage", "tequila", "cart", "accessibility", "performance", "e2e", "all"}

BROWSER_SUITES = APP_SUITES | {"interaction"}

CI_RETRIES = 2


def check_app_running(base_url: str, timeout: float = 5.0) -> bool:
    """
    Probe the storefront before launching browsers.

    Returns:
        True if the base URL answered with a non-5xx status
    """
    try:
        response = httpx.get(base_url, timeout=timeout, follow_redirects=True)
    except httpx.HTTPError as e:
        logger.error(f"❌ Storefront not reachable at {base_url}: {e}")
        return False

    if response.status_code >= 500:
        logger.error(f"❌ Storefront at {base_url} answered {response.status_code}")
        return False
    logger.info(f"✅ Storefront is running at {base_url} ({response.status_code})")
    return True


class TestRunner:
    """
    Orchestrates pytest runs for the storefront suites.

    This class handles:
    - Suite and browser project selection
    - Retry of failed tests via --last-failed
    - CI and debug presets
    - Report generation
    """

    __test__ = False

    def __init__(
        self,
        suite: str = "all",
        projects: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
        parallel: int = 1,
        headed: bool = False,
        debug: bool = False,
        ci: bool = False,
        retries: Optional[int] = None,
        allure_report: bool = True,
        skip_app_check: bool = False,
        verbose: bool = False,
    ):
        """
        Initialize test runner.

        Args:
            suite: Key of SUITE_PATHS
            projects: Browser projects; defaults to browser.project from config
            tags: Pytest markers, OR-ed together
            parallel: Number of xdist workers
            headed: Show the browser window
            debug: Playwright inspector (implies headed, one worker)
            ci: CI preset (retries, one worker, JUnit XML)
            retries: Re-runs of failed tests; CI defaults to 2
            allure_report: Collect Allure results and build the HTML report
            skip_app_check: Do not probe the storefront before running
            verbose: Verbose pytest output
        """
        if suite not in SUITE_PATHS:
            raise ValueError(f"Unknown suite '{suite}'. Available: {', '.join(SUITE_PATHS)}")
        for project in projects or []:
            if project not in PROJECTS:
                raise ValueError(f"Unknown browser project '{project}'. Available: {', '.join(PROJECTS)}")

        self.suite = suite
        self.projects = list(projects or [get_config("browser.project", "chromium")])
        self.tags = tags or []
        self.debug = debug
        self.ci = ci
        self.headed = headed or debug
        self.parallel = 1 if (debug or ci) else parallel
        self.retries = retries if retries is not None else (CI_RETRIES if ci else 0)
        self.allure_report = allure_report
        self.skip_app_check = skip_app_check
        self.verbose = verbose

        self.root_dir = ROOT_DIR
        self.artifacts_dir = self.root_dir / get_config("artifacts.dir", "test-results")
        self.allure_results = self.artifacts_dir / "allure-results"
        self.allure_report_dir = self.artifacts_dir / "allure-report"

    @property
    def needs_app(self) -> bool:
        return self.suite in APP_SUITES

    def run(self) -> int:
        """
        Execute the test run.

        Returns:
            Exit code (0 for success, non-zero for failure)
        """
        logger.info("=" * 60)
        logger.info("Starting Galería Mexicana E2E Test Execution")
        logger.info("=" * 60)
        logger.info(f"Suite: {self.suite}")
        logger.info(f"Tags: {self.tags or 'All'}")
        logger.info(f"Parallel Workers: {self.parallel}")
        if self.suite in BROWSER_SUITES:
            logger.info(f"Projects: {', '.join(self.projects)}")
            logger.info(f"Headed: {self.headed}")
        logger.info(f"Retries: {self.retries}")
        logger.info("=" * 60)

        self._prepare_environment()

        if self.needs_app and not self.skip_app_check:
            base_url = get_config("storefront.base_url", "http://localhost:3000")
            if not check_app_running(base_url):
                logger.error("Start the storefront or pass --skip-app-check")
                return 1

        exit_code = 0
        projects = self.projects if self.suite in BROWSER_SUITES else self.projects[:1]
        for project in projects:
            project_code = self.run_project(project)
            exit_code = exit_code or project_code

        if self.allure_report:
            self._generate_allure_report()

        self._print_summary(exit_code)
        return exit_code

    def run_project(self, project: str) -> int:
        """Run the suite for one project, then re-run failures up to ``retries`` times."""
        exit_code = self._execute(self.build_pytest_command(project))

        attempt = 0
        while exit_code != 0 and attempt < self.retries:
            attempt += 1
            logger.warning(f"🔁 Retry {attempt}/{self.retries} of failed tests ({project})")
            exit_code = self._execute(self.build_pytest_command(project, last_failed=True))
        return exit_code

    def _execute(self, cmd: List[str]) -> int:
        logger.info(f"Executing: {' '.join(cmd)}")
        return subprocess.run(cmd, cwd=str(self.root_dir), env=self.environment()).returncode

    def environment(self) -> Dict[str, str]:
        env = dict(os.environ)
        if self.ci:
            env["CI"] = "1"
        if self.debug:
            env["PWDEBUG"] = "1"
        return env

    def _prepare_environment(self) -> None:
        self.artifacts_dir.mkdir(parents=True, exist_ok=True)
        if self.allure_report:
            self.allure_results.mkdir(parents=True, exist_ok=True)
        logger.debug("Environment prepared")

    def build_pytest_command(self, project: str, last_failed: bool = False) -> List[str]:
        """Build the pytest command with all options."""
        cmd = [sys.executable, "-m", "pytest", *SUITE_PATHS[self.suite]]

        if self.tags:
            cmd.extend(["-m", " or ".join(self.tags)])

        if self.parallel > 1:
            cmd.extend(["-n", str(self.parallel)])

        if self.suite in BROWSER_SUITES:
            cmd.append(f"--project={project}")
            if self.headed:
                cmd.append("--headed")

        if self.allure_report:
            cmd.extend(["--alluredir", str(self.allure_results)])

        if self.ci:
            junit_name = "junit.xml" if len(self.projects) == 1 else f"junit-{project}.xml"
            cmd.append(f"--junitxml={self.artifacts_dir / junit_name}")

        if last_failed:
            cmd.append("--last-failed")

        cmd.append("-v" if self.verbose else "-q")
        return cmd

    def _generate_allure_report(self) -> None:
        logger.info("Generating Allure report...")
        generate_allure_report(str(self.allure_results), str(self.allure_report_dir))

    def _print_summary(self, exit_code: int) -> None:
        logger.info("=" * 60)
        if exit_code == 0:
            logger.info("✅ TEST EXECUTION COMPLETED SUCCESSFULLY")
        else:
            logger.error(f"❌ TEST EXECUTION FAILED (exit code: {exit_code})")

        if self.allure_report:
            logger.info(f"📊 Report available at: {self.allure_report_dir}")

        logger.info("=" * 60)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Galería Mexicana Storefront Test Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Cart suite on desktop Chrome
  python run_tests.py --suite cart --project chromium

  # Everything on both phones, retrying failures once
  python run_tests.py --suite e2e --mobile --retries 1

  # P0 smoke tests in parallel
  python run_tests.py --suite e2e --tags P0 smoke --parallel 4

  # Step through the tequila page in the Playwright inspector
  python run_tests.py --suite tequila --debug
        """
    )

    parser.add_argument(
        "--suite",
        choices=list(SUITE_PATHS),
        default="all",
        help="Test suite to run (default: all)"
    )

    parser.add_argument(
        "--project",
        action="append",
        choices=list(PROJECTS),
        dest="projects",
        help="Browser project; repeat for several (default: browser.project from config)"
    )

    parser.add_argument(
        "--mobile",
        action="store_true",
        help=f"Run on the mobile projects ({', '.join(MOBILE_PROJECTS)})"
    )

    parser.add_argument(
        "--headed",
        action="store_true",
        help="Run browser with a visible window"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Open the Playwright inspector (PWDEBUG=1, headed, single worker)"
    )

    parser.add_argument(
        "--ci",
        action="store_true",
        help=f"CI mode: CI=1, {CI_RETRIES} retries, single worker, JUnit XML"
    )

    parser.add_argument(
        "--retries",
        type=int,
        default=None,
        help="Re-run failed tests N times with --last-failed"
    )

    parser.add_argument(
        "--tags",
        nargs="+",
        default=[],
        help="Pytest markers to filter tests (e.g., P0 smoke cart)"
    )

    parser.add_argument(
        "--parallel", "-n",
        type=int,
        default=1,
        help="Number of parallel workers (default: 1)"
    )

    parser.add_argument(
        "--no-allure",
        action="store_true",
        help="Disable Allure results and report generation"
    )

    parser.add_argument(
        "--skip-app-check",
        action="store_true",
        help="Do not check that the storefront is running first"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    init_logger()

    projects = list(args.projects or [])
    if args.mobile:
        projects.extend(p for p in MOBILE_PROJECTS if p not in projects)

    runner = TestRunner(
        suite=args.suite,
        projects=projects or None,
        tags=args.tags,
        parallel=args.parallel,
        headed=args.headed,
        debug=args.debug,
        ci=args.ci,
        retries=args.retries,
        allure_report=not args.no_allure,
        skip_app_check=args.skip_app_check,
        verbose=args.verbose,
    )
    return runner.run()


if __name__ == "__main__":
    sys.exit(main())
