"""
Builds and submits the record of a finished guided session.

The FinalizedLog is built exactly once from the engine's final counters.
A failed submission keeps it untouched for retry; nothing is recomputed.
"""

import logging
import time

from calories import estimate_calories
from models import FinalizedLog, LogExercise
from name_generator import suggest_name
from session_engine import FINISHED

log = logging.getLogger("workout")


class SessionRecorder:
    def __init__(self, history):
        self.history = history
        self.log = None
        self.submitted = False
        self.saved = None
        self.last_error = None

    @property
    def pending(self):
        """The finalized log awaiting a successful submission, if any."""
        return None if self.submitted else self.log

    def finalize(self, engine, protocol, weight_kg=None, name=None):
        """Build the FinalizedLog for a finished engine. Idempotent."""
        if self.log is not None or self.submitted:
            return self.log
        if engine.phase != FINISHED:
            raise ValueError("Session has not finished")
        work_seconds = engine.cumulative_work_seconds
        default_name = protocol.name.strip() or suggest_name("Protocol")
        self.log = FinalizedLog(
            name=name or default_name,
            protocol_id=protocol.id,
            date=time.strftime("%Y-%m-%dT%H:%M:%S"),
            total_elapsed_seconds=int(engine.finished_at - engine.started_at),
            cumulative_work_seconds=int(work_seconds),
            estimated_calories=estimate_calories(protocol.category, work_seconds, weight_kg),
            exercises=tuple(LogExercise.from_step(step) for step in engine.steps),
        )
        log.info(
            f"Session finalized: {self.log.name!r}, {self.log.total_elapsed_seconds}s total, "
            f"{self.log.estimated_calories} kcal"
        )
        return self.log

    async def submit(self, name=None):
        """Hand the log to history persistence. Returns True on success.

        ``name`` renames the log before the first successful submission.
        """
        if self.submitted:
            return True
        if self.log is None:
            raise ValueError("No finalized session to submit")
        if name and name != self.log.name:
            self.log = self.log.model_copy(update={"name": name})
        try:
            saved = await self.history.save(self.log)
        except Exception as e:
            self.last_error = str(e) or type(e).__name__
            log.error(f"History submission failed: {self.last_error}")
            return False
        self.submitted = True
        self.saved = saved
        self.last_error = None
        self.log = None
        log.info("Session saved to history")
        return True
