"""CLI entry point for the game QC runner."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from aiohttp import web

from game_qc_runner.callback import CallbackDispatcher
from game_qc_runner.config import RunnerConfig
from game_qc_runner.job_runner import JobRunner
from game_qc_runner.pipeline import RunOutcome, RunPipeline, SubmissionError
from game_qc_runner.publishers.loading import load_publisher_manifest
from game_qc_runner.release.machine import ReleaseStateMachine
from game_qc_runner.release.store import InMemoryVersionStore
from game_qc_runner.server.app import create_app

STATUS_SYMBOLS = {
    "pass": "✅",
    "fail": "❌",
    "infra_error": "❗",
}


def log_run_summary(log: logging.Logger, outcome: RunOutcome) -> None:
    """Log a formatted summary of one run's checks."""
    summary = outcome.summary
    log.info("=" * 80)
    log.info(
        "%s Run %s: %s (%sms)",
        STATUS_SYMBOLS.get(summary.status, "?"),
        outcome.run_id,
        summary.status,
        summary.run.duration_ms,
    )
    log.info("=" * 80)

    for check in summary.checks:
        log.info("%s %s [%s]", "✅" if check.ok else "❌", check.id, check.severity)
        if check.message:
            log.info("  Message: %s", check.message)
    for warning in summary.warnings:
        log.info("⚠️ %s", warning)
    if outcome.report_url:
        log.info("Report URL: %s", outcome.report_url)


def publisher_settings(config: RunnerConfig) -> dict[str, Any]:
    """Publisher config, pointing local artifacts at this runner by default."""
    settings = dict(config.publisher_config)
    if config.publisher == "local":
        settings.setdefault("base_url", f"{config.base_url()}/artifacts")
    return settings


@asynccontextmanager
async def build_pipeline(config: RunnerConfig) -> AsyncGenerator[RunPipeline, None]:
    """Assemble the pipeline with the configured publisher for its lifetime."""
    log = logging.getLogger("game_qc_runner")
    log.info("Loading publisher: %s", config.publisher)
    manifest = load_publisher_manifest(config.publisher)
    publisher_config = manifest.config_cls(**publisher_settings(config))

    async with manifest.publisher_factory(publisher_config) as publisher:
        pipeline = RunPipeline(
            runs_root=config.runs_root.resolve(),
            hub_url=config.hub_url(),
            job_runner=JobRunner(command=config.driver_command),
            publisher=publisher,
            callback=CallbackDispatcher(url=config.callback_url, secret=config.hmac_secret),
            allowlist=config.allowlist_domains,
        )
        try:
            yield pipeline
        finally:
            await pipeline.drain()


@asynccontextmanager
async def serving(app: web.Application, port: int) -> AsyncGenerator[None, None]:
    """Serve ``app`` on ``port`` for the duration of the block."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, port=port)
    await site.start()
    try:
        yield
    finally:
        await runner.cleanup()


async def run_once(config: RunnerConfig, game_url: str, meta: dict[str, Any] | None) -> int:
    """Run one build and print the submission response; returns the exit code.

    The harness page is served while the run lasts so the driver can load it.
    """
    log = logging.getLogger("game_qc_runner")
    async with build_pipeline(config) as pipeline, serving(create_app(pipeline), config.port):
        try:
            outcome = await pipeline.run(game_url, meta)
        except SubmissionError as exc:
            log.error("Submission rejected: %s", exc)
            print(json.dumps({"error": str(exc)}))
            return 2

    log_run_summary(log, outcome)
    print(json.dumps(outcome.to_wire(), indent=2))
    return 0 if outcome.status == "pass" else 1


async def serve(config: RunnerConfig) -> None:
    """Serve the HTTP surface until cancelled."""
    log = logging.getLogger("game_qc_runner")
    async with build_pipeline(config) as pipeline:
        app = create_app(pipeline, ReleaseStateMachine(store=InMemoryVersionStore()))
        async with serving(app, config.port):
            log.info("Runner listening on :%d (runs root %s)", config.port, pipeline.runs_root)
            await asyncio.Event().wait()


def apply_overrides(config: RunnerConfig, args: argparse.Namespace) -> RunnerConfig:
    """CLI flags take precedence over the environment."""
    updates: dict[str, Any] = {}
    if args.port is not None:
        updates["port"] = args.port
    if args.runs_root is not None:
        updates["runs_root"] = args.runs_root
    if args.publisher is not None:
        updates["publisher"] = args.publisher
    if args.publisher_config is not None:
        updates["publisher_config"] = json.loads(args.publisher_config)
    return config.model_copy(update=updates)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run automated QC against game builds")
    parser.add_argument("--port", type=int, default=None, help="HTTP port (env PORT)")
    parser.add_argument(
        "--runs-root",
        type=Path,
        default=None,
        help="Directory holding one sub-directory per run (env RUNS_ROOT)",
    )
    parser.add_argument(
        "--publisher",
        default=None,
        help="Artifact publisher key (gcs, local) (env PUBLISHER)",
    )
    parser.add_argument(
        "--publisher-config",
        default=None,
        help="JSON configuration for the publisher (env PUBLISHER_CONFIG)",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("serve", help="Serve the submission and release API")
    run_parser = commands.add_parser("run", help="Run one build and print the result")
    run_parser.add_argument("--game-url", required=True, help="URL of the game build")
    run_parser.add_argument("--meta", default=None, help="JSON metadata echoed in the callback")

    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    config = apply_overrides(RunnerConfig.from_env(), args)

    if args.command == "serve":
        asyncio.run(serve(config))
        return

    meta = json.loads(args.meta) if args.meta else None
    sys.exit(asyncio.run(run_once(config, args.game_url, meta)))


if __name__ == "__main__":  # pragma: no cover
    main()
