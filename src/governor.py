"""Size guard that replaces oversized payloads with a navigation hint."""

import json
from typing import Any, Optional

DEFAULT_MAX_SIZE_KB = 50


def serialize(data: Any) -> str:
    """Render a payload the way tools return it."""
    return json.dumps(data, indent=2, ensure_ascii=False)


def find_largest_array(data: Any) -> Optional[tuple[str, list]]:
    """
    The payload itself if it is a list, else the list property of an object
    with the most items. Only one level is searched.
    """
    if isinstance(data, list):
        return "", data
    if not isinstance(data, dict):
        return None

    best: Optional[tuple[str, list]] = None
    for key, val in data.items():
        if isinstance(val, list) and (best is None or len(val) > len(best[1])):
            best = (key, val)
    return best


def size_diagnostic(data: Any, size: int) -> dict:
    """Describe an oversized payload so the caller can narrow the request."""
    size_kb = size // 1024
    found = find_largest_array(data)
    if found is None or not found[1]:
        return {
            "error": "response too large",
            "originalSizeKB": size_kb,
            "hint": "Use the fields parameter to select only the properties you need.",
        }

    path, items = found
    first = items[0]
    # Document order, so the examples name the leading fields
    available = list(first.keys()) if isinstance(first, dict) else []
    prefix = f"{path}." if path else ""

    examples = []
    if available:
        examples.append(",".join(prefix + name for name in available[:2]))
        examples.append(",".join(prefix + name for name in available[:4]))
    examples = list(dict.fromkeys(examples))

    return {
        "error": "response too large",
        "originalSizeKB": size_kb,
        "itemCount": len(items),
        "fieldPath": path,
        "availableFields": available,
        "examples": [f"fields={e}" for e in examples],
        "hint": "Re-issue the request with fields, filter, or limit to reduce the response size.",
    }


def govern(data: Any, max_size_kb: int = DEFAULT_MAX_SIZE_KB) -> tuple[Any, bool]:
    """
    Pass a payload through when it fits, else return a diagnostic.

    Returns (payload, replaced).
    """
    size = len(serialize(data).encode("utf-8"))
    if size <= max_size_kb * 1024:
        return data, False
    return size_diagnostic(data, size), True
