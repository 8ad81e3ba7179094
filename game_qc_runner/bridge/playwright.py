"""Harness backed by the static hub page driven through Playwright."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import Frame, Page
from pydantic import TypeAdapter

from game_qc_runner.bridge.base import DriverCall, Harness
from game_qc_runner.bridge.models import HarnessState, LogEntry

log = logging.getLogger(__name__)

GAME_FRAME_SELECTOR = "iframe#game-frame"
DRIVER_METHODS = (
    "setTotal",
    "makeWrong",
    "makeCorrect",
    "useHint",
    "startQ",
    "finishQ",
    "finish",
)

_entries_adapter = TypeAdapter(list[LogEntry])

_PROBE_SCRIPT = """(methods) => {
  const spy = window.__irukaSpy;
  const drv = window.__irukaTest;
  const probe = {};
  for (const m of methods) probe[m] = !!drv && typeof drv[m] === "function";
  return {
    spy_present: !!spy,
    driver_present: !!drv,
    driver_methods: probe,
    spy_summary: spy && typeof spy.getSummary === "function" ? spy.getSummary() : {},
  };
}"""

_DRIVE_SCRIPT = """(calls) => {
  const drv = window.__irukaTest;
  if (!drv) return;
  for (const c of calls) {
    try { if (typeof drv[c.method] === "function") drv[c.method](...c.args); } catch (e) {}
  }
}"""


@dataclass(kw_only=True)
class PlaywrightHarness(Harness):
    """Harness implemented by ``hub.html`` (``window.__hubTest``) in a browser page."""

    page: Page = field(repr=False)

    async def _hub(self, expression: str, arg: Any = None) -> Any:
        return await self.page.evaluate(expression, arg)

    async def _game_frame(self) -> Frame:
        handle = await self.page.wait_for_selector(GAME_FRAME_SELECTOR)
        if handle is None or (frame := await handle.content_frame()) is None:
            raise RuntimeError("Harness page has no game frame")
        return frame

    async def load_game(self, url: str) -> None:
        await self._hub(
            "(url) => { window.__hubTest.setOriginAny(); window.__hubTest.setGameUrl(url); }",
            url,
        )

    async def post_message(self, msg: Mapping[str, Any]) -> None:
        await self._hub("(msg) => window.__hubTest.post(msg)", dict(msg))

    async def read_logs(self) -> Sequence[LogEntry]:
        raw = await self._hub("() => window.__hubTest.getLogs()")
        return _entries_adapter.validate_python(raw or [])

    async def last_seq(self) -> int:
        return int(await self._hub("() => window.__hubTest.lastSeq()") or 0)

    async def clear_logs(self) -> None:
        await self._hub("() => window.__hubTest.clearLogs()")

    async def probe(self) -> HarnessState:
        frame = await self._game_frame()
        raw = await frame.evaluate(_PROBE_SCRIPT, list(DRIVER_METHODS))
        return HarnessState.model_validate(raw)

    async def reset_spy(self) -> None:
        frame = await self._game_frame()
        await frame.evaluate("() => window.__irukaSpy && window.__irukaSpy.reset()")

    async def drive(self, calls: Sequence[DriverCall]) -> None:
        frame = await self._game_frame()
        await frame.evaluate(
            _DRIVE_SCRIPT,
            [{"method": c.method, "args": list(c.args)} for c in calls],
        )

    async def dump_artifacts(self) -> Mapping[str, Any]:
        dump: dict[str, Any] = dict(await self._hub("() => window.__hubTest.dumpArtifacts()") or {})
        try:
            frame = await self._game_frame()
            dump["spyRecords"] = await frame.evaluate(
                "() => window.__irukaSpy && window.__irukaSpy.getRecords ? window.__irukaSpy.getRecords() : null"
            )
        except Exception as exc:  # noqa: BLE001
            log.warning("Could not collect spy records: %s", exc)
        return dump
