"""Parse raw navigation feed messages into path/value pairs.

Accepted formats (JSON):
    delta:  {"updates": [{"values": [{"path": ..., "value": ...}, ...]}, ...]}
    single: {"path": ..., "value": ...}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

_counters: dict[str, int] = {
    "deltas_parsed": 0,
    "values_parsed": 0,
    "parse_errors": 0,
}


def get_parser_counters() -> dict[str, int]:
    """Return a copy of parser diagnostic counters."""
    return dict(_counters)


@dataclass
class PathValue:
    """A single path/value update from the feed."""

    path: str
    value: Any


def _parse_value(entry: Any) -> Optional[PathValue]:
    if not isinstance(entry, dict) or not isinstance(entry.get("path"), str):
        logger.warning("Malformed delta value (missing path): %.100s", entry)
        _counters["parse_errors"] += 1
        return None
    _counters["values_parsed"] += 1
    return PathValue(path=entry["path"], value=entry.get("value"))


def parse_delta_obj(data: Any) -> Optional[list[PathValue]]:
    """Extract path/value pairs from a decoded delta or single-value message.

    Args:
        data: The decoded JSON object.

    Returns:
        List of PathValue on success, None if the message has no usable shape.
    """
    if not isinstance(data, dict):
        _counters["parse_errors"] += 1
        logger.warning("Ignoring non-object delta: %.100s", data)
        return None

    values: list[PathValue] = []
    if "updates" in data:
        updates = data["updates"]
        if not isinstance(updates, list):
            _counters["parse_errors"] += 1
            logger.warning("Delta 'updates' is not a list")
            return None
        for update in updates:
            entries = update.get("values", []) if isinstance(update, dict) else []
            for entry in entries:
                pv = _parse_value(entry)
                if pv is not None:
                    values.append(pv)
    elif "path" in data:
        pv = _parse_value(data)
        if pv is None:
            return None
        values.append(pv)
    else:
        _counters["parse_errors"] += 1
        logger.warning("Unrecognised delta shape: %.100s", data)
        return None

    _counters["deltas_parsed"] += 1
    return values


def parse_delta(raw_json: str) -> Optional[list[PathValue]]:
    """Parse a navigation delta from its JSON text.

    Args:
        raw_json: The raw JSON payload (UTF-8 decoded).

    Returns:
        List of PathValue on success, None on parse failure.
    """
    try:
        data = json.loads(raw_json)
    except (json.JSONDecodeError, TypeError):
        _counters["parse_errors"] += 1
        logger.exception("Failed to parse navigation delta")
        return None
    return parse_delta_obj(data)
