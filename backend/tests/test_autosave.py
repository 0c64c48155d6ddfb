"""
Tests for debounced and explicit answer saves.
"""

import asyncio

from assessment_portal.answers import TextAnswer
from assessment_portal.autosave import SaveCoordinator


class Recorder:
    def __init__(self, fail=False, delay=0.0):
        self.saved = []
        self.fail = fail
        self.delay = delay

    async def __call__(self, key, value):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("backend down")
        self.saved.append((key, value.text))


class TestDebounce:
    async def test_only_latest_value_is_saved(self):
        rec = Recorder()
        saves = SaveCoordinator(rec, delay=0.05)
        saves.schedule("task_101_0", TextAnswer(text="a"))
        saves.schedule("task_101_0", TextAnswer(text="ab"))
        saves.schedule("task_101_0", TextAnswer(text="abc"))
        await asyncio.sleep(0.2)
        assert rec.saved == [("task_101_0", "abc")]
        assert not saves.has_pending()

    async def test_keys_are_independent(self):
        rec = Recorder()
        saves = SaveCoordinator(rec, delay=0.02)
        saves.schedule("task_101_0", TextAnswer(text="a"))
        saves.schedule("task_102_1", TextAnswer(text="b"))
        await asyncio.sleep(0.1)
        assert sorted(rec.saved) == [("task_101_0", "a"), ("task_102_1", "b")]

    async def test_save_now_cancels_pending(self):
        rec = Recorder()
        saves = SaveCoordinator(rec, delay=0.05)
        saves.schedule("task_101_0", TextAnswer(text="draft"))
        assert await saves.save_now("task_101_0", TextAnswer(text="final"))
        await asyncio.sleep(0.1)
        assert rec.saved == [("task_101_0", "final")]


class TestAcknowledged:
    async def test_acknowledged_value_is_not_reposted(self):
        rec = Recorder()
        saves = SaveCoordinator(rec, delay=0.01)
        value = TextAnswer(text="done")
        assert await saves.save_now("task_101_0", value)
        assert await saves.save_now("task_101_0", value)
        saves.schedule("task_101_0", value)
        await asyncio.sleep(0.05)
        assert rec.saved == [("task_101_0", "done")]
        assert saves.acknowledged("task_101_0") == value

    async def test_preloaded_value_is_not_reposted(self):
        rec = Recorder()
        saves = SaveCoordinator(rec)
        saves.mark_acknowledged("task_101_0", TextAnswer(text="from server"))
        assert await saves.save_now("task_101_0", TextAnswer(text="from server"))
        assert rec.saved == []

    async def test_failure_is_reported_not_raised(self):
        saves = SaveCoordinator(Recorder(fail=True))
        assert await saves.save_now("task_101_0", TextAnswer(text="x")) is False
        assert saves.acknowledged("task_101_0") is None


class TestDrain:
    async def test_drain_drops_pending_and_waits_for_inflight(self):
        rec = Recorder(delay=0.05)
        saves = SaveCoordinator(rec, delay=10)
        saves.schedule("task_101_0", TextAnswer(text="never sent"))
        inflight = asyncio.create_task(saves.save_now("task_102_1", TextAnswer(text="sent")))
        await asyncio.sleep(0.01)
        await saves.drain()
        assert rec.saved == [("task_102_1", "sent")]
        assert not saves.has_pending()
        assert await inflight
