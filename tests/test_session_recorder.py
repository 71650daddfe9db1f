"""Unit tests for SessionRecorder."""

from unittest.mock import AsyncMock

import pytest
from tests.helpers import FakeClock, make_protocol, run_seconds

from calories import estimate_calories
from models import FinalizedLog
from session_engine import SessionEngine
from session_recorder import SessionRecorder


async def finished_engine(protocol, clock):
    """Run a protocol's timed steps to FINISHED on a fake clock."""
    engine = SessionEngine(protocol.exercises, clock=clock, interval=None)
    await engine.start()
    while not engine.done:
        if engine.timer.armed:
            await run_seconds(engine, clock, 1)
        else:
            clock.advance(30)
            await engine.next()
    return engine


@pytest.fixture
def protocol():
    return make_protocol(
        [
            {"name": "Bench Press", "reps": 8, "sets": 3, "weight": 60.0, "rest": 90},
            {"name": "Jump Rope", "type": "Cardio", "duration": 120},
        ],
        name="Push Day",
    )


@pytest.fixture
def history():
    h = AsyncMock()
    h.save = AsyncMock(return_value={"id": "log1"})
    return h


class TestFinalize:
    @pytest.mark.asyncio
    async def test_builds_log_from_final_counters(self, protocol, history):
        clock = FakeClock()
        engine = await finished_engine(protocol, clock)
        recorder = SessionRecorder(history)
        log = recorder.finalize(engine, protocol, weight_kg=80)
        assert isinstance(log, FinalizedLog)
        assert log.name == "Push Day"
        assert log.protocol_id == protocol.id
        assert log.total_elapsed_seconds == int(clock() - engine.started_at)
        assert log.cumulative_work_seconds == 3 * 30 + 120
        assert log.estimated_calories == estimate_calories("Strength", engine.cumulative_work_seconds, 80)
        assert log.total_elapsed_seconds > log.cumulative_work_seconds

    @pytest.mark.asyncio
    async def test_exercises_are_static_plan(self, protocol, history):
        engine = await finished_engine(protocol, FakeClock())
        log = SessionRecorder(history).finalize(engine, protocol)
        bench, rope = log.exercises
        assert (bench.name, bench.reps, bench.sets, bench.weight_kg, bench.duration_seconds) == (
            "Bench Press",
            8,
            3,
            60.0,
            None,
        )
        assert (rope.type, rope.duration_seconds, rope.sets) == ("Cardio", 120, 1)

    @pytest.mark.asyncio
    async def test_finalize_is_idempotent(self, protocol, history):
        engine = await finished_engine(protocol, FakeClock())
        recorder = SessionRecorder(history)
        first = recorder.finalize(engine, protocol, weight_kg=80)
        assert recorder.finalize(engine, protocol, weight_kg=100, name="Other") is first

    @pytest.mark.asyncio
    async def test_blank_protocol_name_gets_suggestion(self, history):
        protocol = make_protocol([{"name": "A"}], name="  ")
        engine = await finished_engine(protocol, FakeClock())
        log = SessionRecorder(history).finalize(engine, protocol)
        assert len(log.name.split(" ")) == 2

    @pytest.mark.asyncio
    async def test_unfinished_engine_rejected(self, protocol, history):
        engine = SessionEngine(protocol.exercises, interval=None)
        with pytest.raises(ValueError):
            SessionRecorder(history).finalize(engine, protocol)

    def test_log_is_frozen(self):
        log = FinalizedLog(
            name="x", date="2026-01-01T00:00:00", total_elapsed_seconds=1, cumulative_work_seconds=1, estimated_calories=0
        )
        with pytest.raises(Exception):
            log.name = "y"


class TestSubmit:
    @pytest.mark.asyncio
    async def test_success_releases_log(self, protocol, history):
        engine = await finished_engine(protocol, FakeClock())
        recorder = SessionRecorder(history)
        log = recorder.finalize(engine, protocol)
        assert await recorder.submit() is True
        history.save.assert_awaited_once_with(log)
        assert recorder.submitted
        assert recorder.pending is None
        assert recorder.saved == {"id": "log1"}
        # Submitting again is a no-op
        assert await recorder.submit() is True
        history.save.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_retains_log_for_retry(self, protocol, history):
        history.save.side_effect = [ConnectionError("offline"), {"id": "log2"}]
        engine = await finished_engine(protocol, FakeClock())
        recorder = SessionRecorder(history)
        log = recorder.finalize(engine, protocol, weight_kg=75)

        assert await recorder.submit() is False
        assert recorder.last_error == "offline"
        assert recorder.pending is log

        assert await recorder.submit() is True
        assert history.save.await_args_list[0].args[0] is history.save.await_args_list[1].args[0]
        assert recorder.last_error is None

    @pytest.mark.asyncio
    async def test_rename_keeps_metrics(self, protocol, history):
        history.save.side_effect = [OSError("disk full"), {"id": "log3"}]
        engine = await finished_engine(protocol, FakeClock())
        recorder = SessionRecorder(history)
        original = recorder.finalize(engine, protocol)
        assert await recorder.submit("Morning Push") is False
        renamed = recorder.pending
        assert renamed.name == "Morning Push"
        assert renamed.model_dump(exclude={"name"}) == original.model_dump(exclude={"name"})
        assert await recorder.submit() is True
        assert history.save.await_args.args[0].name == "Morning Push"

    @pytest.mark.asyncio
    async def test_submit_without_finalize(self, history):
        with pytest.raises(ValueError):
            await SessionRecorder(history).submit()

    def test_history_payload_shape(self):
        log = FinalizedLog(
            name="Leg Day",
            date="2026-01-01T00:00:00",
            total_elapsed_seconds=1800,
            cumulative_work_seconds=1200,
            estimated_calories=123,
        )
        payload = log.to_history_payload()
        assert payload["duration_seconds"] == 1800
        assert payload["calories_burned"] == 123
        assert payload["type"] == "Protocol"
        assert payload["exercises"] == []
