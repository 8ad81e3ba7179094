"""Role based permissions for release actions."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Literal

type Permission = Literal[
    "games:view",
    "games:submit",
    "games:review",
    "games:approve",
    "games:publish",
    "games:republish",
]

ROLE_PERMISSIONS: Mapping[str, frozenset[Permission]] = {
    "dev": frozenset(["games:view", "games:submit"]),
    "qc": frozenset(["games:view", "games:review"]),
    "cto": frozenset(["games:view", "games:approve"]),
    "ceo": frozenset(["games:view", "games:approve"]),
    "admin": frozenset(
        [
            "games:view",
            "games:submit",
            "games:review",
            "games:approve",
            "games:publish",
            "games:republish",
        ]
    ),
}

SYSTEM_ACTOR_ID = "system:qc-runner"


@dataclass(frozen=True, kw_only=True)
class Actor:
    """Whoever requests a transition: a person or the automated pipeline."""

    id: str
    roles: Sequence[str] = field(default_factory=tuple)

    def has(self, permission: Permission) -> bool:
        return any(permission in ROLE_PERMISSIONS.get(role, ()) for role in self.roles)


SYSTEM_ACTOR = Actor(id=SYSTEM_ACTOR_ID, roles=("qc",))
