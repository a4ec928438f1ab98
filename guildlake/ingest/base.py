from __future__ import annotations

import logging
from typing import Callable

from ..rules.context import RuleContext
from ..store import EntityStore
from ..util import utcnow

Publish = Callable[[RuleContext], object]

log = logging.getLogger(f"guildlake.{__name__}")


class IngestHandler:
    """Common wiring for the live handlers.

    ``publish`` receives a context only after the triggering transaction has
    committed. ``None`` disables rule evaluation for this handler.
    """

    def __init__(self, store: EntityStore, publish: Publish | None = None, clock=utcnow) -> None:
        self.store = store
        self._publish = publish
        self.clock = clock

    def publish(self, ctx: RuleContext) -> None:
        if self._publish is None:
            return
        log.debug("Publishing %s event %s", ctx.event_type, ctx.event_id)
        self._publish(ctx)
