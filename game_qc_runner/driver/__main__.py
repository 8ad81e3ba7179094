"""Test driver process spawned once per run by the job runner."""

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from playwright.async_api import async_playwright

from game_qc_runner.aggregator import ResultAggregator
from game_qc_runner.bridge.bridge import HostPageBridge
from game_qc_runner.bridge.playwright import PlaywrightHarness
from game_qc_runner.driver.report import (
    FAILURE_DUMP_NAME,
    write_artifacts,
    write_report,
)
from game_qc_runner.driver.suite import (
    SuiteResult,
    SuiteSettings,
    record_harness_error,
    run_suite,
)
from game_qc_runner.models.summary import Summary

log = logging.getLogger("game_qc_runner.driver")


def finish(run_dir: Path, aggregator: ResultAggregator, result: SuiteResult) -> Summary:
    """Record artifacts, finalize the run and write its report files."""
    artifacts = dict(result.artifacts)
    if result.failure_dump is not None:
        artifacts[FAILURE_DUMP_NAME] = result.failure_dump
    for name, relative in write_artifacts(run_dir, artifacts).items():
        aggregator.add_artifact(name, relative)
    if aggregator.warnings:
        warnings_path = run_dir / "warnings.txt"
        warnings_path.write_text("\n".join(aggregator.warnings), encoding="utf-8")
        aggregator.add_artifact("warnings", warnings_path.name)

    summary = aggregator.finalize()
    write_report(run_dir, summary)
    return summary


async def drive(
    hub_url: str,
    game_url: str,
    run_dir: Path,
    run_id: str,
    settings: SuiteSettings,
) -> Summary:
    """Run the suite in a fresh browser; a summary is written even if the browser fails."""
    aggregator = ResultAggregator(run_id=run_id, game_url=game_url, hub_url=hub_url)
    result = SuiteResult()
    try:
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch()
            try:
                page = await browser.new_page()
                await page.goto(hub_url)
                bridge = HostPageBridge(harness=PlaywrightHarness(page=page))
                result = await run_suite(bridge, aggregator, game_url, settings)
            finally:
                await browser.close()
    except Exception as exc:  # noqa: BLE001
        log.error("Browser harness for run %s failed: %s", run_id, exc, exc_info=exc)
        record_harness_error(aggregator, exc)
    return finish(run_dir, aggregator, result)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the game conformance suite once")
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of workers; only 1 is supported since runs share one harness page",
    )
    parser.add_argument("--ready-timeout-ms", type=float, default=20_000)
    parser.add_argument("--complete-timeout-ms", type=float, default=20_000)
    args = parser.parse_args(argv)
    if args.workers != 1:
        parser.error("--workers must be 1")
    return args


def main(argv: Sequence[str] | None = None) -> None:
    """Driver entry point; reads its targets from the environment."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        hub_url = os.environ["HUB_URL"]
        game_url = os.environ["GAME_URL"]
    except KeyError as exc:
        log.error("Missing required environment variable %s", exc)
        sys.exit(1)
    run_dir = Path(os.environ.get("RUN_DIR", "."))
    run_id = os.environ.get("RUN_ID", run_dir.name)

    settings = SuiteSettings(
        ready_timeout_ms=args.ready_timeout_ms,
        complete_timeout_ms=args.complete_timeout_ms,
    )
    summary = asyncio.run(drive(hub_url, game_url, run_dir, run_id, settings))
    log.info("Driver finished run %s: %s", run_id, summary.status)
    print(f"status={summary.status}")
    sys.exit(0 if summary.status == "pass" else 1)


if __name__ == "__main__":  # pragma: no cover
    main()
