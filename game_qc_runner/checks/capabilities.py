"""Normalisation of capabilities announced in the READY handshake."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

CAPABILITY_ALIASES: Mapping[str, str] = {
    "hints": "hint",
    "timers": "timer",
    "timing": "timer",
    "save-load": "save_load",
    "save/load": "save_load",
    "set-state": "set_state",
}


@dataclass(frozen=True, kw_only=True)
class Capabilities:
    """Capabilities claimed by a game, as sent and after normalisation."""

    raw: Any
    normalized: Sequence[str]

    @property
    def declared(self) -> bool:
        """Whether the game sent a capability list at all."""
        return isinstance(self.raw, list)

    def __contains__(self, capability: object) -> bool:
        return capability in self.normalized


def normalize_capabilities(raw: Any) -> Capabilities:
    """Lower-case, trim and de-alias a raw capability list."""
    items = raw if isinstance(raw, list) else []
    normalized: list[str] = []
    for item in items:
        if not isinstance(item, str) or not (cap := item.strip().lower()):
            continue
        cap = CAPABILITY_ALIASES.get(cap, cap)
        if cap not in normalized:
            normalized.append(cap)
    return Capabilities(raw=raw, normalized=tuple(normalized))
