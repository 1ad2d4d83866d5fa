"""
Response shaping for decoded JSON payloads.

Three optional directives reduce a payload before it is returned to the
caller:

    fields  comma-separated dot-notation paths to keep ("id,title,statistics.sizeOnDisk")
    filter  "field:op:value" with op one of contains, eq, ne, gt, lt
    limit   maximum number of array items

Arrays are filtered, then limited, then projected. Objects that wrap a list
(e.g. ``{"records": [...], "page": 1}``) are drilled into when a requested
field names the list property.
"""

import json
from typing import Any, Optional, Union

FILTER_OPS = ("contains", "eq", "ne", "gt", "lt")

_MISSING = object()

Limit = Optional[Union[int, str]]


def parse_fields(fields: Optional[str]) -> list[str]:
    """Split a comma-separated fields string, dropping blanks."""
    if not fields:
        return []
    return [f.strip() for f in fields.split(",") if f.strip()]


# --- Projection ---


def _merge_picked(existing: Any, new: Any) -> Any:
    """Combine two picks of the same value without touching either input."""
    if isinstance(existing, dict) and isinstance(new, dict):
        merged = dict(existing)
        for key, val in new.items():
            merged[key] = _merge_picked(merged[key], val) if key in merged else val
        return merged
    if isinstance(existing, list) and isinstance(new, list) and len(existing) == len(new):
        return [_merge_picked(prev, item) for prev, item in zip(existing, new)]
    return new


def pick_fields(obj: dict, fields: list[str]) -> dict:
    """
    Keep only the requested fields of an object.

    Dot paths recurse into nested objects, and into each object of a nested
    list. Picks under the same parent are merged at every depth, so
    ``records.id,records.title`` yields one object per record and
    ``a.b.c,a.b.d`` keeps both leaves. Missing keys are skipped.
    """
    result: dict = {}
    whole = set()
    for field in fields:
        key, _, rest = field.partition(".")
        if key not in obj:
            continue
        val = obj[key]
        if not rest:
            result[key] = val
            whole.add(key)
            continue
        if key in whole:
            continue

        if isinstance(val, dict):
            picked = pick_fields(val, [rest])
        elif isinstance(val, list):
            picked = [pick_fields(item, [rest]) if isinstance(item, dict) else item for item in val]
        else:
            continue
        result[key] = _merge_picked(result[key], picked) if key in result else picked
    return result


def project(items: list, fields: list[str]) -> list:
    """Apply pick_fields to every object in a list; other items pass through."""
    return [pick_fields(item, fields) if isinstance(item, dict) else item for item in items]


# --- Filtering ---


def get_nested_field(obj: dict, field: str) -> Any:
    """Value at a dot path, or the _MISSING sentinel."""
    key, _, rest = field.partition(".")
    if key not in obj:
        return _MISSING
    val = obj[key]
    if not rest:
        return val
    if isinstance(val, dict):
        return get_nested_field(val, rest)
    return _MISSING


def format_value(value: Any) -> str:
    """Render a JSON value as comparison text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, separators=(",", ":"))


def _to_float(text: str) -> Optional[float]:
    try:
        return float(text)
    except ValueError:
        return None


def match_filter(value: Any, op: str, expected: str) -> bool:
    """Check one field value against a filter operation."""
    text = format_value(value)

    if op == "contains":
        return expected.lower() in text.lower()
    if op == "eq":
        return text.lower() == expected.lower()
    if op == "ne":
        return text.lower() != expected.lower()
    if op in ("gt", "lt"):
        left, right = _to_float(text), _to_float(expected)
        if left is None or right is None:
            return False
        return left > right if op == "gt" else left < right
    return False


def parse_filter(filter_str: Optional[str]) -> Optional[tuple[str, str, str]]:
    """Split "field:op:value"; None when the filter is malformed."""
    if not filter_str:
        return None
    parts = filter_str.split(":", 2)
    if len(parts) != 3:
        return None
    field, op, value = parts
    if not field or op not in FILTER_OPS:
        return None
    return field, op, value


def apply_filter(items: list, filter_str: Optional[str]) -> list:
    """
    Keep the objects whose field matches the filter.

    A malformed filter is ignored and the list is returned unchanged. Items
    that are not objects, or where the field is missing or null, never match.
    """
    parsed = parse_filter(filter_str)
    if parsed is None:
        return items
    field, op, value = parsed

    result = []
    for item in items:
        if not isinstance(item, dict):
            continue
        field_val = get_nested_field(item, field)
        if field_val is _MISSING or field_val is None:
            continue
        if match_filter(field_val, op, value):
            result.append(item)
    return result


# --- Limiting ---


def parse_limit(limit: Limit) -> Optional[int]:
    if limit is None or isinstance(limit, bool):
        return None
    if isinstance(limit, int):
        n = limit
    else:
        try:
            n = int(str(limit).strip())
        except ValueError:
            return None
    return n if n > 0 else None


def apply_limit(items: list, limit: Limit) -> list:
    """First N items when 0 < N < len(items); otherwise unchanged."""
    n = parse_limit(limit)
    if n is not None and n < len(items):
        return items[:n]
    return items


# --- Entry point ---


def shape_array(items: list, fields: list[str], filter_str: Optional[str], limit: Limit) -> list:
    """filter -> limit -> projection."""
    items = apply_filter(items, filter_str)
    items = apply_limit(items, limit)
    if fields:
        items = project(items, fields)
    return items


def shape_response(
    data: Any,
    fields: Optional[str] = None,
    filter: Optional[str] = None,
    limit: Limit = None,
) -> Any:
    """Apply fields/filter/limit directives to a decoded JSON payload."""
    field_list = parse_fields(fields)

    if isinstance(data, list):
        return shape_array(data, field_list, filter, limit)

    if not isinstance(data, dict):
        return data

    # Fields whose first segment names a list property drill into that list
    drilled: dict[str, list[str]] = {}
    for field in field_list:
        key, _, rest = field.partition(".")
        if isinstance(data.get(key), list):
            sub = drilled.setdefault(key, [])
            if rest:
                sub.append(rest)

    if drilled:
        top = [f for f in field_list if f.partition(".")[0] not in drilled]
        result = pick_fields(data, top)
        for key, sub in drilled.items():
            result[key] = shape_array(data[key], sub, filter, limit)
        return result

    if parse_filter(filter) is not None or parse_limit(limit) is not None:
        data = {
            key: shape_array(val, [], filter, limit) if isinstance(val, list) else val
            for key, val in data.items()
        }

    if field_list:
        return pick_fields(data, field_list)
    return data
