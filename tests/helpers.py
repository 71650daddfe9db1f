"""Shared test helpers for workout session tests."""

from models import ExerciseStep, Protocol


def make_steps(steps=None):
    """Factory for exercise step lists."""
    if steps is None:
        steps = [
            {"name": "Squats", "type": "Strength", "duration": 30, "sets": 2, "rest": 10},
            {"name": "Push Ups", "type": "Strength", "reps": 15, "sets": 1},
            {"name": "Plank", "type": "Strength", "duration": 45},
        ]
    return [ExerciseStep(**s) for s in steps]


def make_protocol(steps=None, name="Test Workout", category="Strength", protocol_id="p1"):
    """Factory for creating test protocols."""
    return Protocol(id=protocol_id, name=name, category=category, exercises=make_steps(steps))


class FakeClock:
    """Fake monotonic clock for testing wall-clock timing in SessionEngine.

    Pass as ``clock=`` and advance with ``clock.advance(seconds)``.
    """

    def __init__(self, start=0.0):
        self._now = start

    def __call__(self):
        return self._now

    def advance(self, seconds):
        self._now += seconds


async def run_seconds(engine, clock, seconds):
    """Drive an externally-ticked engine forward ``seconds`` one at a time."""
    for _ in range(seconds):
        clock.advance(1)
        await engine.timer.tick()


class DictProtocols:
    """In-memory protocol provider."""

    def __init__(self, *protocols):
        self._by_id = {p.id: p for p in protocols}

    def get(self, protocol_id):
        return self._by_id.get(protocol_id)
