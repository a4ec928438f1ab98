"""Hand-off between ingestion and rule evaluation.

Ingestion publishes a :class:`RuleContext` after its transaction commits and
returns at once; a single worker task drains the queue into the engine.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging

from .context import RuleContext
from .engine import RuleEngine

log = logging.getLogger(f"guildlake.{__name__}")


class RuleEvaluationQueue:
    def __init__(self, engine: RuleEngine, maxsize: int = 1000) -> None:
        self.engine = engine
        self._queue: asyncio.Queue[RuleContext] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="guildlake-rule-worker")
        log.info("Rule evaluation worker started")

    def publish(self, ctx: RuleContext) -> bool:
        """Enqueue without waiting. A full queue drops the context."""
        try:
            self._queue.put_nowait(ctx)
        except asyncio.QueueFull:
            log.warning(
                "Rule queue full (%d); dropping %s event %s",
                self._queue.maxsize,
                ctx.event_type,
                ctx.event_id,
            )
            return False
        return True

    async def _run(self) -> None:
        while True:
            ctx = await self._queue.get()
            try:
                await self.engine.evaluate(ctx)
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception(
                    "Rule evaluation failed for %s event %s", ctx.event_type, ctx.event_id
                )
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until everything published so far has been evaluated."""
        await self._queue.join()

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        log.info("Rule evaluation worker stopped")
