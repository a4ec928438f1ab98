"""Exact, case-insensitive and prefix matches on string context fields.

Every predicate in this family fails when its field is absent, negated ones
included: ``NOT_IN_CHANNEL`` is false for an event that has no channel.
"""
from __future__ import annotations

from typing import Any, Callable, Mapping, NamedTuple

from ..context import RuleContext
from .base import TableEvaluator, as_ext_id, require


def _extension(filename: str) -> str:
    _, dot, ext = filename.rpartition(".")
    return ext.lower() if dot else ""


def _text_param(predicate_type: str, key: str, value: Any) -> str:
    return str(value).strip()


def _extension_param(predicate_type: str, key: str, value: Any) -> str:
    return str(value).strip().lstrip(".").lower()


class StringRule(NamedTuple):
    field: str
    param: str | None
    parse: Callable[[str, str, Any], str] | None
    match: Callable[[str, str | None], bool]


def _equals(actual: str, expected: str | None) -> bool:
    return actual == expected


def _not_equals(actual: str, expected: str | None) -> bool:
    return actual != expected


def _equals_ignore_case(actual: str, expected: str | None) -> bool:
    return expected is not None and actual.lower() == expected.lower()


def _extension_is(actual: str, expected: str | None) -> bool:
    return _extension(actual) == expected


def _prefix(prefix: str) -> Callable[[str, str | None], bool]:
    def match(actual: str, _expected: str | None) -> bool:
        return actual.lower().startswith(prefix)

    return match


STRING_PREDICATES: dict[str, StringRule] = {
    "IN_CHANNEL": StringRule("channel_ext_id", "channel_ext_id", as_ext_id, _equals),
    "NOT_IN_CHANNEL": StringRule("channel_ext_id", "channel_ext_id", as_ext_id, _not_equals),
    "CHANNEL_TYPE_IS": StringRule("channel_type", "type", _text_param, _equals_ignore_case),
    "IN_CATEGORY": StringRule("category_ext_id", "category_ext_id", as_ext_id, _equals),
    "MESSAGE_TYPE_IS": StringRule("message_type", "type", _text_param, _equals_ignore_case),
    "IN_VOICE_CHANNEL": StringRule(
        "voice_channel_ext_id", "channel_ext_id", as_ext_id, _equals
    ),
    "ATTACHMENT_EXTENSION_IS": StringRule(
        "attachment_filename", "extension", _extension_param, _extension_is
    ),
    "ATTACHMENT_CONTENT_TYPE_IS": StringRule(
        "attachment_content_type", "content_type", _text_param, _equals_ignore_case
    ),
    "ATTACHMENT_IS_IMAGE": StringRule("attachment_content_type", None, None, _prefix("image/")),
    "ATTACHMENT_IS_VIDEO": StringRule("attachment_content_type", None, None, _prefix("video/")),
    "ATTACHMENT_IS_AUDIO": StringRule("attachment_content_type", None, None, _prefix("audio/")),
}


class StringMatchEvaluator(TableEvaluator):
    table = STRING_PREDICATES

    async def evaluate(
        self, predicate_type: str, ctx: RuleContext, params: Mapping[str, Any]
    ) -> bool:
        rule = self.table[predicate_type]
        expected = None
        if rule.param is not None:
            raw = require(predicate_type, params, rule.param)
            expected = rule.parse(predicate_type, rule.param, raw)
        actual = ctx.string_field(rule.field)
        if actual is None:
            return False
        return rule.match(actual, expected)
