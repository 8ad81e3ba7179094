"""The fixed graph of release statuses."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Literal

from game_qc_runner.release.models import VersionStatus
from game_qc_runner.release.permissions import Permission

type Action = Literal[
    "submit",
    "start_qc",
    "pass_qc",
    "fail_qc",
    "approve",
    "publish",
    "archive",
    "republish",
]


@dataclass(frozen=True, kw_only=True)
class Transition:
    """Edges sharing one action and target status."""

    sources: frozenset[VersionStatus]
    target: VersionStatus
    permission: Permission


TRANSITIONS: Mapping[Action, Transition] = {
    "submit": Transition(
        sources=frozenset(["draft", "qc_failed"]), target="uploaded", permission="games:submit"
    ),
    "start_qc": Transition(
        sources=frozenset(["uploaded"]), target="qc_processing", permission="games:review"
    ),
    "pass_qc": Transition(
        sources=frozenset(["qc_processing"]), target="qc_passed", permission="games:review"
    ),
    "fail_qc": Transition(
        sources=frozenset(["qc_processing"]), target="qc_failed", permission="games:review"
    ),
    "approve": Transition(
        sources=frozenset(["qc_passed"]), target="approved", permission="games:approve"
    ),
    "publish": Transition(
        sources=frozenset(["approved"]), target="published", permission="games:publish"
    ),
    "archive": Transition(
        sources=frozenset(["published"]), target="archived", permission="games:publish"
    ),
    "republish": Transition(
        sources=frozenset(["archived"]), target="published", permission="games:republish"
    ),
}


def valid_actions(status: VersionStatus) -> Sequence[Action]:
    """Actions with an edge leaving ``status``, in declaration order."""
    return [action for action, t in TRANSITIONS.items() if status in t.sources]


def can_transition(status: VersionStatus, action: Action) -> bool:
    return status in TRANSITIONS[action].sources
