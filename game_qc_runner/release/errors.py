"""Errors raised by the release state machine.

Every error leaves the version exactly as it was.
"""

from collections.abc import Sequence


class TransitionError(Exception):
    """Base class for rejected transitions."""

    code = "transition_error"


class VersionNotFoundError(TransitionError):
    """Raised when the version does not exist."""

    code = "not_found"

    def __init__(self, version_id: str) -> None:
        super().__init__(f"Game version not found: {version_id}")
        self.version_id = version_id


class InvalidTransitionError(TransitionError):
    """Raised when the action has no edge from the current status."""

    code = "invalid_transition"

    def __init__(self, action: str, status: str, valid_actions: Sequence[str]) -> None:
        super().__init__(
            f'Cannot {action} from status "{status}". '
            f"Valid actions from this status: {', '.join(valid_actions) or 'none'}"
        )
        self.action = action
        self.status = status
        self.valid_actions = tuple(valid_actions)


class ForbiddenActionError(TransitionError):
    """Raised when the actor lacks the permission an action requires."""

    code = "forbidden"

    def __init__(self, action: str, permission: str) -> None:
        super().__init__(f"Forbidden: {action} requires permission '{permission}'")
        self.action = action
        self.permission = permission


class IncompleteSubmissionError(TransitionError):
    """Raised when self-QA attestations are missing at submission."""

    code = "incomplete_submission"

    def __init__(self, missing: Sequence[str]) -> None:
        super().__init__(f"Self-QA checklist incomplete: {', '.join(missing)}")
        self.missing = tuple(missing)


class GateFailedError(TransitionError):
    """Raised when QC gates reject a pass; ``gates`` names each failed gate."""

    code = "gate_failed"

    def __init__(self, gates: Sequence[str]) -> None:
        super().__init__(f"QC gates failed: {', '.join(gates)}")
        self.gates = tuple(gates)


class StaleVersionError(TransitionError):
    """Raised when the version changed between read and write."""

    code = "stale_version"

    def __init__(self, version_id: str) -> None:
        super().__init__(f"Game version {version_id} was modified concurrently")
        self.version_id = version_id
