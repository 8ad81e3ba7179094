"""Make arbitrary game payloads safe to store as artifacts."""

import json
import re
from typing import Any

MAX_ARTIFACT_CHARS = 20_000
SECRET_KEY_PATTERN = re.compile(r"token|secret|password", re.IGNORECASE)


def sanitize_for_artifact(value: Any, max_chars: int = MAX_ARTIFACT_CHARS) -> Any:
    """Redact secret-looking keys, break cycles and truncate large payloads."""
    seen: set[int] = set()

    def walk(item: Any) -> Any:
        if not isinstance(item, dict | list | tuple):
            return item
        if id(item) in seen:
            return "[Circular]"
        seen.add(id(item))
        try:
            if isinstance(item, dict):
                return {
                    str(k): "[REDACTED]" if SECRET_KEY_PATTERN.search(str(k)) else walk(v)
                    for k, v in item.items()
                }
            return [walk(v) for v in item]
        finally:
            seen.discard(id(item))

    cleaned = walk(value)
    try:
        encoded = json.dumps(cleaned)
    except (TypeError, ValueError):
        return {"unserializable": True}
    if len(encoded) <= max_chars:
        return cleaned
    return {"truncated": True, "preview": encoded[:max_chars] + "…"}
