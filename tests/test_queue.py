import asyncio
import logging

from guildlake.rules.context import RuleContext
from guildlake.rules.queue import RuleEvaluationQueue
from guildlake.store.models import EventType


class DummyEngine:
    def __init__(self, fail_on=()):
        self.seen = []
        self.fail_on = set(fail_on)

    async def evaluate(self, ctx):
        self.seen.append(ctx.event_id)
        if ctx.event_id in self.fail_on:
            raise RuntimeError("engine broke")
        return []


def _ctx(event_id):
    return RuleContext(EventType.MESSAGE_CREATE, event_id, 1)


def test_worker_drains_in_order():
    async def run_test():
        engine = DummyEngine()
        queue = RuleEvaluationQueue(engine, maxsize=10)
        queue.start()
        assert queue.running
        for event_id in (1, 2, 3):
            assert queue.publish(_ctx(event_id))
        await queue.join()
        assert engine.seen == [1, 2, 3]
        await queue.stop()
        assert not queue.running

    asyncio.run(run_test())


def test_worker_survives_engine_exception(caplog):
    async def run_test():
        engine = DummyEngine(fail_on={1})
        queue = RuleEvaluationQueue(engine)
        queue.start()
        queue.publish(_ctx(1))
        queue.publish(_ctx(2))
        await queue.join()
        assert engine.seen == [1, 2]
        assert queue.running
        await queue.stop()

    asyncio.run(run_test())
    assert "Rule evaluation failed for MESSAGE_CREATE event 1" in caplog.text


def test_full_queue_drops(caplog):
    async def run_test():
        queue = RuleEvaluationQueue(DummyEngine(), maxsize=1)
        with caplog.at_level(logging.WARNING):
            assert queue.publish(_ctx(1)) is True
            assert queue.publish(_ctx(2)) is False
        assert queue.pending == 1
        assert "Rule queue full (1); dropping MESSAGE_CREATE event 2" in caplog.text

    asyncio.run(run_test())


def test_stop_without_start_is_noop():
    async def run_test():
        queue = RuleEvaluationQueue(DummyEngine())
        await queue.stop()
        assert not queue.running

    asyncio.run(run_test())
