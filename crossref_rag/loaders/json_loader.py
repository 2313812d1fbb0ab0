from __future__ import annotations

"""JSON loader that flattens objects into `key: value` lines."""

import json


class JSONLoaderError(RuntimeError):
    """Raised when JSON content cannot be parsed."""
    pass


def _as_text(value: object) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return json.dumps(value)


def load_json_bytes(data: bytes) -> str:
    """Render top-level object fields one per line; anything else pretty-printed."""
    try:
        parsed = json.loads(data.decode("utf-8", errors="ignore"))
    except json.JSONDecodeError as exc:
        raise JSONLoaderError(f"Invalid JSON: {exc.msg}") from exc
    if isinstance(parsed, dict):
        return "\n".join(f"{key}: {_as_text(value)}" for key, value in parsed.items())
    return json.dumps(parsed, indent=2, ensure_ascii=False)
