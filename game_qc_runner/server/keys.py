"""Application keys shared by the route modules."""

from aiohttp import web

from game_qc_runner.pipeline import RunPipeline
from game_qc_runner.release.machine import ReleaseStateMachine

PIPELINE_KEY = web.AppKey("pipeline", RunPipeline)
MACHINE_KEY = web.AppKey("machine", ReleaseStateMachine)
