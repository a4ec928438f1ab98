from __future__ import annotations

from typing import Any, Mapping

from ..context import RuleContext
from .base import TableEvaluator, as_bool

# predicate type -> (context field, expected value)
BOOLEAN_PREDICATES: dict[str, tuple[str, bool]] = {
    "AUTHOR_NOT_BOT": ("author_is_bot", False),
    "IS_REPLY": ("is_reply", True),
    "IS_NOT_REPLY": ("is_reply", False),
    "HAS_ATTACHMENT": ("has_attachments", True),
    "NO_ATTACHMENT": ("has_attachments", False),
    "IS_NOT_TTS": ("is_tts", False),
    "HAS_EMBED": ("has_embed", True),
    "HAS_POLL": ("has_poll", True),
    "HAS_STICKER": ("has_stickers", True),
    "IS_VOICE_MESSAGE": ("is_voice_message", True),
    "NOT_MENTIONS_EVERYONE": ("mention_everyone", False),
    "MEMBER_IS_BOOSTING": ("member_is_boosting", True),
    "IS_PINNED": ("is_pinned", True),
}


class BooleanFieldEvaluator(TableEvaluator):
    """Compare one boolean context field against an expected value.

    ``{"expected": false}`` flips the default. An unset field never matches.
    """

    table = BOOLEAN_PREDICATES

    async def evaluate(
        self, predicate_type: str, ctx: RuleContext, params: Mapping[str, Any]
    ) -> bool:
        field, expected = self.table[predicate_type]
        if "expected" in params:
            expected = as_bool(predicate_type, "expected", params["expected"])
        actual = ctx.boolean_field(field)
        if actual is None:
            return False
        return actual == expected
