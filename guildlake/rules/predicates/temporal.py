from __future__ import annotations

from typing import Any, Mapping

from ...errors import PredicateParameterError
from ...util import utcnow
from ..context import RuleContext
from .base import Clock, TableEvaluator, as_int, reference_time, require

DAY_NAMES = (
    "MONDAY",
    "TUESDAY",
    "WEDNESDAY",
    "THURSDAY",
    "FRIDAY",
    "SATURDAY",
    "SUNDAY",
)

TEMPORAL_PREDICATES = frozenset(
    {
        "HOUR_OF_DAY_BETWEEN",
        "DAY_OF_WEEK_IS",
        "DURING_SEASON",
        "NOT_DURING_SEASON",
        "SEASON_ACTIVE",
    }
)


def hour_in_range(hour: int, start: int, end: int) -> bool:
    """``start <= hour < end`` in UTC hours, wrapping past midnight when start > end."""
    if start <= end:
        return start <= hour < end
    return hour >= start or hour < end


def _day_index(predicate_type: str, value: Any) -> int:
    name = str(value).strip().upper()
    for index, day in enumerate(DAY_NAMES):
        if name == day or (len(name) >= 3 and day.startswith(name)):
            return index
    raise PredicateParameterError(predicate_type, f"unknown day '{value}'")


class TemporalEvaluator(TableEvaluator):
    """Time-of-day, day-of-week and season checks.

    Live events are judged against the clock, historic replays against the
    event's own timestamp.
    """

    table = TEMPORAL_PREDICATES

    def __init__(self, store, clock: Clock = utcnow) -> None:
        self.store = store
        self.clock = clock

    async def evaluate(
        self, predicate_type: str, ctx: RuleContext, params: Mapping[str, Any]
    ) -> bool:
        now = reference_time(ctx, self.clock)

        if predicate_type == "HOUR_OF_DAY_BETWEEN":
            start = as_int(predicate_type, "from", require(predicate_type, params, "from"))
            end = as_int(predicate_type, "to", require(predicate_type, params, "to"))
            if not (0 <= start <= 23 and 0 <= end <= 24):
                raise PredicateParameterError(predicate_type, "hours must be within 0-24")
            return hour_in_range(now.hour, start, end)

        if predicate_type == "DAY_OF_WEEK_IS":
            day = _day_index(predicate_type, require(predicate_type, params, "day"))
            return now.weekday() == day

        if predicate_type == "SEASON_ACTIVE":
            return await self.store.seasons.count_active_seasons(now) > 0

        season_id = as_int(predicate_type, "season_id", require(predicate_type, params, "season_id"))
        active = await self.store.seasons.count_active_season(season_id, now) > 0
        return active if predicate_type == "DURING_SEASON" else not active
