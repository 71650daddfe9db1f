"""
Guided workout session engine.

Drives one pass over a protocol's exercise list:

    PREPARE (5s) -> WORK -> [REST] -> WORK (next set) ... -> FINISHED

Every "step complete" event -- countdown expiry, skip(), or an explicit
next() from the user -- goes through step_complete(), which is the only
place phase/exercise/set change. REST follows every set whose exercise
has rest configured, including the last set of an exercise.

This module has NO dependencies on server.py, FastAPI, or storage.
Callbacks (on_update, on_alert, on_finish) are passed in by the caller.
"""

import logging
import time

from workout_timer import CountdownTimer

log = logging.getLogger("workout")

PREPARE = "PREPARE"
WORK = "WORK"
REST = "REST"
FINISHED = "FINISHED"

PREPARE_SECONDS = 5


class ProtocolNotFound(LookupError):
    """The requested protocol does not exist (e.g. deleted meanwhile)."""


class EmptyProtocol(ValueError):
    """A protocol with no exercises cannot be run."""


def format_clock(seconds):
    """Countdown display text, e.g. 75 -> "1:15"."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{secs:02d}"


class SessionEngine:
    """State machine for one guided workout attempt."""

    def __init__(
        self,
        steps,
        *,
        clock=time.monotonic,
        interval=1.0,
        prepare_seconds=PREPARE_SECONDS,
        on_update=None,
        on_alert=None,
        on_finish=None,
    ):
        self.steps = list(steps)
        if not self.steps:
            raise EmptyProtocol("Protocol has no exercises")
        self._clock = clock
        self.prepare_seconds = prepare_seconds
        self.timer = CountdownTimer(interval=interval)
        self.phase = PREPARE
        self.exercise_index = 0
        self.set_number = 1
        self.cumulative_work_seconds = 0.0
        self.started_at = clock()
        self.finished_at = None
        self.cancelled = False
        self.work_started_at = None
        self._work_paused = 0.0
        self._paused_at = None
        self._on_update = on_update
        self._on_alert = on_alert
        self._on_finish = on_finish

    @property
    def current_step(self):
        return self.steps[self.exercise_index]

    @property
    def remaining_seconds(self):
        return self.timer.remaining

    @property
    def manual(self):
        """WORK phase with no countdown; waits for next()."""
        return self.phase == WORK and self.current_step.is_manual

    @property
    def paused(self):
        return self.timer.paused

    @property
    def done(self):
        return self.phase == FINISHED or self.cancelled

    @property
    def label(self):
        if self.phase == PREPARE:
            return "GET READY"
        if self.phase == REST:
            return "REST"
        if self.phase == FINISHED:
            return "WORKOUT COMPLETE"
        return f"EXERCISE {self.exercise_index + 1}/{len(self.steps)}"

    @property
    def up_next(self):
        """Name of the exercise the next WORK phase will run, if any."""
        if self.phase == FINISHED:
            return None
        if self.phase == PREPARE:
            return self.current_step.name
        if self.set_number < self.current_step.sets:
            return self.current_step.name
        if self.exercise_index + 1 < len(self.steps):
            return self.steps[self.exercise_index + 1].name
        return None

    def live_work_seconds(self):
        """Cumulative work time including the WORK phase in progress. Read-only."""
        return self.cumulative_work_seconds + self._current_work_elapsed()

    def to_dict(self):
        step = self.current_step
        countdown = not self.done and self.timer.armed
        reps = step.reps or 0
        return {
            "type": "workout",
            "phase": self.phase,
            "label": self.label,
            "exercise_index": self.exercise_index,
            "exercise_count": len(self.steps),
            "exercise": step.name,
            "exercise_type": step.type,
            "set_number": self.set_number,
            "sets": step.sets,
            "set_text": f"Set {self.set_number} / {step.sets}",
            "remaining_seconds": self.remaining_seconds,
            "clock": format_clock(self.remaining_seconds) if countdown else None,
            "manual": self.manual,
            "reps_text": f"{reps} REPS" if reps > 0 else "NO REPS",
            "up_next": self.up_next,
            "paused": self.paused,
            "cumulative_work_seconds": round(self.live_work_seconds(), 1),
            "finished": self.phase == FINISHED,
            "cancelled": self.cancelled,
        }

    async def start(self):
        """Begin the PREPARE countdown."""
        if self.done:
            return
        log.info(f"Session started: {len(self.steps)} exercise(s)")
        self.timer.start(self.prepare_seconds, self.step_complete, self._on_tick)
        self._signal()
        await self._broadcast()

    async def next(self):
        """Explicit user "done" for the current phase."""
        if self.done:
            return
        await self.step_complete()

    async def skip(self):
        """End the current countdown now, as if it reached zero."""
        if self.done:
            return
        if not await self.timer.skip():
            await self.step_complete()

    async def pause(self):
        if self.done or not self.timer.armed or self.timer.paused:
            return False
        self.timer.pause()
        if self.phase == WORK:
            self._paused_at = self._clock()
        await self._broadcast()
        return True

    async def resume(self):
        if self.done or not self.timer.paused:
            return False
        self.timer.resume()
        if self._paused_at is not None:
            self._work_paused += self._clock() - self._paused_at
            self._paused_at = None
        await self._broadcast()
        return True

    async def toggle_pause(self):
        if self.timer.paused:
            await self.resume()
        else:
            await self.pause()
        return self.paused

    def cancel(self):
        """Abandon the session: stop the countdown, no further transitions."""
        if self.done:
            return
        self.timer.cancel()
        self.cancelled = True
        log.info(f"Session abandoned at exercise {self.exercise_index + 1}, set {self.set_number}")

    async def step_complete(self):
        """Apply one "step complete" event to the current phase."""
        if self.done:
            return
        step = self.current_step
        if self.phase == PREPARE:
            await self._enter_work()
        elif self.phase == WORK:
            self._accumulate_work()
            if step.rest_seconds > 0:
                await self._enter(REST, step.rest_seconds)
            elif self.set_number < step.sets:
                self.set_number += 1
                await self._enter_work()
            else:
                await self._advance_exercise()
        elif self.phase == REST:
            if self.set_number < step.sets:
                self.set_number += 1
                await self._enter_work()
            else:
                await self._advance_exercise()

    async def _advance_exercise(self):
        if self.exercise_index < len(self.steps) - 1:
            self.exercise_index += 1
            self.set_number = 1
            await self._enter_work()
        else:
            await self._finish()

    async def _enter_work(self):
        self.work_started_at = self._clock()
        self._work_paused = 0.0
        self._paused_at = None
        await self._enter(WORK, self.current_step.duration or 0)

    async def _enter(self, phase, duration):
        self.phase = phase
        self.timer.start(duration, self.step_complete, self._on_tick)
        log.debug(f"{phase}: exercise {self.exercise_index + 1} set {self.set_number} ({duration}s)")
        self._signal()
        await self._broadcast()

    async def _finish(self):
        self.timer.cancel()
        self.phase = FINISHED
        self.finished_at = self._clock()
        log.info(f"Session finished: {self.cumulative_work_seconds:.0f}s of work")
        self._signal()
        await self._broadcast()
        if self._on_finish:
            await self._on_finish()

    def _current_work_elapsed(self):
        if self.phase != WORK or self.work_started_at is None:
            return 0.0
        now = self._clock()
        paused = self._work_paused
        if self._paused_at is not None:
            paused += now - self._paused_at
        return max(0.0, now - self.work_started_at - paused)

    def _accumulate_work(self):
        self.cumulative_work_seconds += self._current_work_elapsed()
        self.work_started_at = None
        self._work_paused = 0.0
        self._paused_at = None

    def _signal(self):
        """Best-effort phase-change alert (haptics, beep)."""
        if not self._on_alert:
            return
        try:
            self._on_alert(self.phase)
        except Exception:
            log.debug("on_alert callback error", exc_info=True)

    async def _on_tick(self, remaining):
        await self._broadcast()

    async def _broadcast(self):
        """Best-effort state push to the update listener."""
        if not self._on_update:
            return
        try:
            await self._on_update(self.to_dict())
        except Exception:
            log.debug("on_update callback error", exc_info=True)
