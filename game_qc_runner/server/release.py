"""Release lifecycle routes under ``/versions/{id}``."""

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import Any

from aiohttp import web
from pydantic import BaseModel, Field, ValidationError

from game_qc_runner.checks.qc_report import completion_stats, qc_report_from_summary
from game_qc_runner.driver.report import ARTIFACTS_DIRNAME
from game_qc_runner.models.base import WireModel
from game_qc_runner.pipeline import SubmissionError
from game_qc_runner.release.errors import (
    ForbiddenActionError,
    GateFailedError,
    IncompleteSubmissionError,
    InvalidTransitionError,
    StaleVersionError,
    TransitionError,
    VersionNotFoundError,
)
from game_qc_runner.release.machine import ReleaseStateMachine
from game_qc_runner.release.models import GameVersion, ManualValidation, SelfQAChecklist
from game_qc_runner.release.permissions import Actor
from game_qc_runner.release.transitions import valid_actions
from game_qc_runner.server.keys import MACHINE_KEY, PIPELINE_KEY

log = logging.getLogger(__name__)

type Handler = Callable[[web.Request], Awaitable[web.Response]]

ERROR_STATUS: Mapping[type[TransitionError], int] = {
    VersionNotFoundError: 404,
    ForbiddenActionError: 403,
    InvalidTransitionError: 409,
    StaleVersionError: 409,
    IncompleteSubmissionError: 400,
    GateFailedError: 400,
}


class ActorBody(BaseModel):
    id: str
    roles: list[str] = Field(default_factory=list)

    def to_actor(self) -> Actor:
        return Actor(id=self.id, roles=tuple(self.roles))


class TransitionRequest(WireModel):
    actor: ActorBody


class SubmitRequest(TransitionRequest):
    checklist: SelfQAChecklist | None = None


class DecisionRequest(TransitionRequest):
    decision: str
    note: str = ""
    manual_validation: ManualValidation | None = None


class RunQCRequest(TransitionRequest):
    game_url: str | None = None
    meta: dict[str, Any] | None = None


class CreateVersionRequest(WireModel):
    id: str
    game_id: str
    version: str
    entry_url: str | None = None


def error_response(exc: TransitionError) -> web.Response:
    """Structured error body naming what blocked the transition."""
    body: dict[str, Any] = {"error": str(exc), "code": exc.code}
    if isinstance(exc, GateFailedError):
        body["gates"] = list(exc.gates)
    if isinstance(exc, IncompleteSubmissionError):
        body["missing"] = list(exc.missing)
    if isinstance(exc, InvalidTransitionError):
        body["validActions"] = list(exc.valid_actions)
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    return web.json_response(body, status=status)


def version_response(version: GameVersion, **extra: Any) -> web.Response:
    return web.json_response(
        {"versionId": version.id, "status": version.status, "revision": version.revision, **extra}
    )


async def parse_body[T: BaseModel](request: web.Request, model: type[T]) -> T:
    try:
        data = await request.json()
    except json.JSONDecodeError as exc:
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "Request body must be JSON", "code": "validation"}),
            content_type="application/json",
        ) from exc
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise web.HTTPBadRequest(
            text=json.dumps({"error": str(exc), "code": "validation"}),
            content_type="application/json",
        ) from exc


def transition_route(
    run: Callable[[ReleaseStateMachine, str, Any], Awaitable[GameVersion]],
    model: type[TransitionRequest] = TransitionRequest,
) -> Handler:
    """Wrap a state machine call as a route, mapping its errors to responses."""

    async def handler(request: web.Request) -> web.Response:
        body = await parse_body(request, model)
        try:
            version = await run(request.app[MACHINE_KEY], request.match_info["id"], body)
        except TransitionError as exc:
            return error_response(exc)
        return version_response(version)

    return handler


def read_complete_stats(run_dir: Path) -> Mapping[str, Any]:
    path = run_dir / ARTIFACTS_DIRNAME / "completePayload.json"
    if not path.is_file():
        return {}
    try:
        return completion_stats(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError) as exc:
        log.warning("Ignoring unreadable COMPLETE payload %s: %s", path, exc)
        return {}


async def run_qc(request: web.Request) -> web.Response:
    """Run the automated suite for a version and apply its verdict.

    A version still in ``uploaded`` is claimed for QC first.
    """
    body = await parse_body(request, RunQCRequest)
    machine = request.app[MACHINE_KEY]
    pipeline = request.app[PIPELINE_KEY]
    version_id = request.match_info["id"]
    actor = body.actor.to_actor()

    try:
        version = await machine.get(version_id)
        if not actor.has("games:review"):
            raise ForbiddenActionError("run_qc", "games:review")
        if version.status == "uploaded":
            version = await machine.start_qc(version_id, actor)
        if version.status != "qc_processing":
            raise InvalidTransitionError("run_qc", version.status, valid_actions(version.status))
    except TransitionError as exc:
        return error_response(exc)

    try:
        outcome = await pipeline.run(body.game_url or version.entry_url, body.meta)
    except SubmissionError as exc:
        return web.json_response({"error": str(exc), "code": "validation"}, status=400)

    report = qc_report_from_summary(
        outcome.summary,
        version_id=version_id,
        report_url=outcome.report_url,
        stats=read_complete_stats(outcome.local_path),
    )
    try:
        version = await machine.apply_run_verdict(version_id, outcome.summary, report)
    except TransitionError as exc:
        return error_response(exc)
    return version_response(
        version,
        runId=outcome.run_id,
        runStatus=outcome.status,
        reportId=report.id,
        reportUrl=outcome.report_url,
    )


async def create_version(request: web.Request) -> web.Response:
    body = await parse_body(request, CreateVersionRequest)
    machine = request.app[MACHINE_KEY]
    if await machine.store.get_version(body.id) is not None:
        return web.json_response(
            {"error": f"Game version already exists: {body.id}", "code": "conflict"}, status=409
        )
    version = GameVersion(
        id=body.id, game_id=body.game_id, version=body.version, entry_url=body.entry_url
    )
    await machine.store.add_version(version)
    return version_response(version)


async def get_version(request: web.Request) -> web.Response:
    machine = request.app[MACHINE_KEY]
    version_id = request.match_info["id"]
    try:
        version = await machine.get(version_id)
    except TransitionError as exc:
        return error_response(exc)
    trail = await machine.store.audit_trail(version_id)
    return web.json_response(
        {
            "version": version.model_dump(mode="json"),
            "audit": [record.model_dump(mode="json") for record in trail],
        }
    )


def setup_routes(app: web.Application, machine: ReleaseStateMachine) -> None:
    app[MACHINE_KEY] = machine
    app.router.add_post("/versions", create_version)
    app.router.add_get("/versions/{id}", get_version)
    app.router.add_post(
        "/versions/{id}/submit-qc",
        transition_route(
            lambda m, vid, b: m.submit_to_qc(vid, b.actor.to_actor(), b.checklist),
            SubmitRequest,
        ),
    )
    app.router.add_post(
        "/versions/{id}/start-qc",
        transition_route(lambda m, vid, b: m.start_qc(vid, b.actor.to_actor())),
    )
    app.router.add_post("/versions/{id}/run-qc", run_qc)
    app.router.add_post(
        "/versions/{id}/qc-decision",
        transition_route(
            lambda m, vid, b: m.record_qc_decision(
                vid,
                b.actor.to_actor(),
                decision=b.decision,
                note=b.note,
                manual=b.manual_validation,
            ),
            DecisionRequest,
        ),
    )
    for action in ("approve", "publish", "archive", "republish"):
        app.router.add_post(
            f"/versions/{{id}}/{action}",
            transition_route(
                lambda m, vid, b, action=action: getattr(m, action)(vid, b.actor.to_actor())
            ),
        )
