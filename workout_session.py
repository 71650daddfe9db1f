"""
WorkoutSession — owns one guided session and its collaborators.

Invariant: at most one SessionEngine is live, and every exit path
(finish, abandon, error) cancels both tick sources -- the engine's
countdown and the live calorie readout.

This module has NO dependencies on server.py or FastAPI.
Collaborators (protocols, profile, history) and callbacks are passed in.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager

from calories import DEFAULT_WEIGHT_KG, estimate_calories
from session_engine import WORK, EmptyProtocol, ProtocolNotFound, SessionEngine
from session_recorder import SessionRecorder

log = logging.getLogger("workout")


class UnsavedSession(RuntimeError):
    """A finished session's log is still waiting to be saved or discarded."""


class WorkoutSession:
    """Runs guided sessions for protocols from ``protocols``.

    ``protocols.get(id)`` returns a Protocol or None, ``profile.weight_kg()``
    returns kg or None, and ``await history.save(log)`` stores a FinalizedLog.
    """

    def __init__(self, protocols, profile, history, *, on_update=None, on_alert=None, clock=time.monotonic, interval=1.0):
        self.protocols = protocols
        self.profile = profile
        self.history = history
        self._on_update = on_update
        self._on_alert = on_alert
        self._clock = clock
        self.interval = interval
        self.engine = None
        self.protocol = None
        self.recorder = None
        self.weight_kg = DEFAULT_WEIGHT_KG
        self.live_calories = 0
        self.active = False
        self.end_reason = None
        self.wall_started_at = ""
        self._calorie_task = None

    async def start(self, protocol_id):
        """Start a guided session.

        Raises ProtocolNotFound / EmptyProtocol, or UnsavedSession while the
        previous session's log has neither been saved nor discarded.
        """
        if self.recorder and self.recorder.pending is not None:
            raise UnsavedSession(f"Unsaved session {self.recorder.pending.name!r}: save or discard it first")
        if self.active:
            await self.abandon("restart")
        protocol = self.protocols.get(protocol_id)
        if protocol is None:
            raise ProtocolNotFound(f"Protocol {protocol_id} not found")
        if not protocol.exercises:
            raise EmptyProtocol(f"Protocol {protocol.name!r} has no exercises")

        self.weight_kg = self._read_weight()
        self.protocol = protocol
        self.recorder = SessionRecorder(self.history)
        self.engine = SessionEngine(
            protocol.exercises,
            clock=self._clock,
            interval=self.interval,
            on_update=self._broadcast,
            on_alert=self._on_alert,
            on_finish=self._on_finished,
        )
        self.active = True
        self.end_reason = None
        self.live_calories = 0
        self.wall_started_at = time.strftime("%Y-%m-%dT%H:%M:%S")
        log.info(f"Guided session started: {protocol.name}")
        try:
            await self.engine.start()
        except Exception:
            self._teardown()
            self.engine.cancel()
            self.active = False
            self.end_reason = "error"
            raise
        if self.interval is not None and self.active:
            self._calorie_task = asyncio.create_task(self._calorie_loop(self.engine))

    async def next(self):
        if self.active:
            await self.engine.next()

    async def skip(self):
        if self.active:
            await self.engine.skip()

    async def toggle_pause(self):
        if self.active:
            return await self.engine.toggle_pause()
        return False

    async def abandon(self, reason="user_abandon"):
        """Stop the session mid-flight. Nothing is submitted."""
        if not self.active:
            return
        self._teardown()
        self.engine.cancel()
        self.active = False
        self.end_reason = reason
        self.engine = None
        self.recorder = None
        self.live_calories = 0
        log.info(f"Session abandoned: {reason}")
        await self._broadcast(self.to_dict())

    async def save(self, name=None):
        """Submit the finished session's log; safe to retry on failure."""
        if not self.recorder or self.recorder.pending is None:
            return {"ok": False, "error": "No finished session to save"}
        ok = await self.recorder.submit(name)
        if not ok:
            return {"ok": False, "error": self.recorder.last_error, "log": self.recorder.pending.model_dump()}
        return {"ok": True, "entry": self.recorder.saved}

    async def discard(self):
        """Drop a finished session's unsaved log on the user's say-so."""
        if self.active or not self.recorder or self.recorder.pending is None:
            return False
        log.info(f"Unsaved session discarded: {self.recorder.pending.name}")
        self.recorder = None
        await self._broadcast(self.to_dict())
        return True

    @asynccontextmanager
    async def guided(self, protocol_id):
        """Scope a session: abandoned on any exit that didn't finish it."""
        await self.start(protocol_id)
        try:
            yield self.engine
        finally:
            if self.active:
                await self.abandon("scope_exit")

    def update_calories(self):
        """Recompute the live calorie readout from the engine's counters."""
        engine = self.engine
        if engine is None or self.protocol is None:
            return self.live_calories
        self.live_calories = estimate_calories(self.protocol.category, engine.live_work_seconds(), self.weight_kg)
        return self.live_calories

    def to_dict(self):
        d = {
            "type": "session",
            "active": self.active,
            "protocol_id": self.protocol.id if self.protocol else None,
            "protocol_name": self.protocol.name if self.protocol else None,
            "wall_started_at": self.wall_started_at,
            "live_calories": self.live_calories,
            "end_reason": self.end_reason,
            "workout": self.engine.to_dict() if self.engine else None,
        }
        pending = self.recorder.pending if self.recorder else None
        d["pending_log"] = pending.model_dump() if pending else None
        d["save_error"] = self.recorder.last_error if self.recorder else None
        return d

    async def _on_finished(self):
        self._teardown()
        self.update_calories()
        self.recorder.finalize(self.engine, self.protocol, self.weight_kg)
        self.active = False
        self.end_reason = "completed"
        await self._broadcast(self.to_dict())

    def _read_weight(self):
        try:
            weight = self.profile.weight_kg() if self.profile else None
        except (OSError, ValueError) as e:
            log.warning(f"Profile unavailable, using {DEFAULT_WEIGHT_KG} kg: {e}")
            weight = None
        return weight or DEFAULT_WEIGHT_KG

    def _teardown(self):
        task = self._calorie_task
        self._calorie_task = None
        if task and task is not asyncio.current_task():
            task.cancel()

    async def _calorie_loop(self, engine):
        try:
            while self.engine is engine and not engine.done:
                await asyncio.sleep(self.interval)
                if self.engine is not engine or engine.done:
                    break
                if engine.phase == WORK:
                    self.update_calories()
                    await self._broadcast({"type": "calories", "live_calories": self.live_calories})
        except asyncio.CancelledError:
            pass

    async def _broadcast(self, msg):
        if not self._on_update:
            return
        try:
            await self._on_update(msg)
        except Exception:
            log.debug("on_update callback error", exc_info=True)
