"""HTTP surface: run submission, health and read-only artifacts."""

import json
import logging
from pathlib import Path

from aiohttp import web

from game_qc_runner.pipeline import RunPipeline, SubmissionError, new_run_id
from game_qc_runner.release.machine import ReleaseStateMachine
from game_qc_runner.server import release
from game_qc_runner.server.keys import PIPELINE_KEY

log = logging.getLogger(__name__)

PUBLIC_DIR = Path(__file__).parent.parent / "public"


async def submit_run(request: web.Request) -> web.Response:
    """``POST /run`` with ``{gameUrl, meta?}``."""
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return web.json_response({"error": "Request body must be JSON"}, status=400)
    if not isinstance(body, dict):
        return web.json_response({"error": "Request body must be a JSON object"}, status=400)

    pipeline = request.app[PIPELINE_KEY]
    run_id = new_run_id()
    try:
        outcome = await pipeline.run(body.get("gameUrl"), body.get("meta"), run_id=run_id)
    except SubmissionError as exc:
        return web.json_response({"error": str(exc)}, status=400)
    except Exception as exc:  # noqa: BLE001
        log.error("Run %s failed unexpectedly: %s", run_id, exc, exc_info=exc)
        return web.json_response({"runId": run_id, "error": str(exc)}, status=500)

    return web.json_response(outcome.to_wire())


async def healthz(request: web.Request) -> web.Response:
    return web.Response(text="ok")


async def hub_page(request: web.Request) -> web.FileResponse:
    return web.FileResponse(PUBLIC_DIR / "hub.html")


def create_app(
    pipeline: RunPipeline,
    machine: ReleaseStateMachine | None = None,
) -> web.Application:
    """Build the runner's web application.

    Release routes are only mounted when a state machine is supplied.
    """
    app = web.Application()
    app[PIPELINE_KEY] = pipeline

    pipeline.runs_root.mkdir(parents=True, exist_ok=True)
    app.router.add_post("/run", submit_run)
    app.router.add_get("/healthz", healthz)
    app.router.add_get("/hub.html", hub_page)
    app.router.add_static("/artifacts", pipeline.runs_root, show_index=False)

    if machine is not None:
        release.setup_routes(app, machine)

    async def drain_callbacks(app: web.Application) -> None:
        await pipeline.drain()

    app.on_cleanup.append(drain_callbacks)
    return app
