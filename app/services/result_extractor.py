"""
Extract reply text from a Temporal worker result.

Workers answer in one of two conventions, and both must keep working:
- an array of stages: [{ "stageName": ..., "data": { "response" | "result" | "reply": ... } }, ...]
- a flat object: { "reply" | "response" | "result": ... }
Plain strings pass through. The shape is classified first, then the matching
rule in REPLY_RULES runs; rules are tried in table order.
"""

import json
from enum import Enum
from typing import Any, Callable

NO_RESPONSE = "No response."

STAGE_FIELDS = ("response", "result", "reply")
FLAT_FIELDS = ("reply", "response", "result")


class ReplyShape(str, Enum):
    EMPTY = "empty"
    TEXT = "text"
    STAGES = "stages"
    FLAT = "flat"
    OTHER = "other"


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and value.get("response") is not None:
        return _stringify(value["response"])
    return _dumps(value)


def _first_field(obj: Any, fields: tuple[str, ...]) -> Any:
    if not isinstance(obj, dict):
        return None
    for field in fields:
        value = obj.get(field)
        if value is not None:
            return value
    return None


def classify(result: Any) -> ReplyShape:
    if result is None:
        return ReplyShape.EMPTY
    if isinstance(result, str):
        return ReplyShape.TEXT
    if isinstance(result, (list, tuple)) and len(result) > 0:
        return ReplyShape.STAGES
    if isinstance(result, dict):
        return ReplyShape.FLAT
    return ReplyShape.OTHER


def _from_stages(result: Any) -> str:
    first = result[0]
    data = first.get("data") if isinstance(first, dict) else None
    text = _first_field(data if data is not None else first, STAGE_FIELDS)
    return _dumps(result) if text is None else _stringify(text)


def _from_flat(result: Any) -> str:
    text = _first_field(result, FLAT_FIELDS)
    return _dumps(result) if text is None else _stringify(text)


REPLY_RULES: list[tuple[ReplyShape, Callable[[Any], str]]] = [
    (ReplyShape.EMPTY, lambda _result: NO_RESPONSE),
    (ReplyShape.TEXT, lambda result: result),
    (ReplyShape.STAGES, _from_stages),
    (ReplyShape.FLAT, _from_flat),
    (ReplyShape.OTHER, _dumps),
]


def extract_reply(result: Any) -> str:
    """Normalize any worker result into reply text. Total: never raises for JSON-like input."""
    shape = classify(result)
    for rule_shape, rule in REPLY_RULES:
        if rule_shape is shape:
            return rule(result)
    return _dumps(result)
