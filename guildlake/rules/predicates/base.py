"""Evaluator protocol and parameter parsing shared by every predicate family."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Callable, Mapping, Protocol

from ...errors import PredicateParameterError
from ..context import RuleContext

Clock = Callable[[], datetime]


class PredicateEvaluator(Protocol):
    def handles(self, predicate_type: str) -> bool:
        ...

    async def evaluate(
        self, predicate_type: str, ctx: RuleContext, params: Mapping[str, Any]
    ) -> bool:
        ...


class TableEvaluator:
    """Evaluator whose supported predicate types are the keys of ``table``."""

    table: Mapping[str, Any] = {}

    def handles(self, predicate_type: str) -> bool:
        return predicate_type in self.table


def parse_params(predicate_type: str, raw: str | Mapping[str, Any] | None) -> dict[str, Any]:
    """Decode a predicate's JSON parameters into a dict.

    Blank parameters mean "no parameters". Anything that is not a JSON object
    raises :class:`PredicateParameterError`.
    """
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    text = str(raw).strip()
    if not text:
        return {}
    try:
        value = json.loads(text)
    except ValueError as exc:
        raise PredicateParameterError(predicate_type, f"invalid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise PredicateParameterError(predicate_type, "parameters must be a JSON object")
    return value


def require(predicate_type: str, params: Mapping[str, Any], key: str) -> Any:
    if key not in params or params[key] is None:
        raise PredicateParameterError(predicate_type, f"missing parameter '{key}'")
    return params[key]


def as_number(predicate_type: str, key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise PredicateParameterError(predicate_type, f"'{key}' must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise PredicateParameterError(predicate_type, f"'{key}' must be a number") from exc


def as_int(predicate_type: str, key: str, value: Any) -> int:
    number = as_number(predicate_type, key, value)
    if number != int(number):
        raise PredicateParameterError(predicate_type, f"'{key}' must be an integer")
    return int(number)


def as_bool(predicate_type: str, key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    raise PredicateParameterError(predicate_type, f"'{key}' must be a boolean")


def as_ext_id(predicate_type: str, key: str, value: Any) -> str:
    """External ids arrive as JSON numbers or strings; compare them as text."""
    if isinstance(value, bool) or value is None:
        raise PredicateParameterError(predicate_type, f"'{key}' must be an id")
    text = str(value).strip()
    if not text.isdigit():
        raise PredicateParameterError(predicate_type, f"'{key}' must be an id")
    return text


def reference_time(ctx: RuleContext, clock: Clock) -> datetime:
    """Return the current time, or the event's own time for historic replays."""
    if ctx.is_historic and ctx.created_at is not None:
        return ctx.created_at
    return clock()
