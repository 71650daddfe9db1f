"""
Restartable countdown timer for guided workout phases.

One countdown at a time: start() re-arms and fully replaces any pending
countdown, so a completion can never fire twice or stack. A duration of 0
(or None) is manual mode -- nothing counts down and completion only comes
from the caller.

With ``interval=None`` no background task is created and the owner drives
the countdown by awaiting tick() itself.
"""

import asyncio
import logging

log = logging.getLogger("workout.timer")


class CountdownTimer:
    def __init__(self, interval=1.0):
        self.interval = interval
        self.duration = 0
        self.remaining = 0
        self.paused = False
        self._armed = False
        self._generation = 0
        self._task = None
        self._on_complete = None
        self._on_tick = None

    @property
    def manual(self):
        return self.duration <= 0

    @property
    def armed(self):
        """True while a countdown is pending completion."""
        return self._armed

    def start(self, duration, on_complete, on_tick=None):
        self.cancel()
        self.duration = max(0, int(duration or 0))
        self.remaining = self.duration
        self.paused = False
        self._on_complete = on_complete
        self._on_tick = on_tick
        if self.duration > 0:
            self._armed = True
            log.debug(f"Countdown armed: {self.duration}s")
            if self.interval is not None:
                self._task = asyncio.create_task(self._tick_loop(self._generation))

    def cancel(self):
        """Drop the pending countdown without firing completion."""
        self._generation += 1
        self._armed = False
        self.paused = False
        self._on_complete = None
        self._on_tick = None
        self._cancel_task()

    def pause(self):
        if self._armed:
            self.paused = True

    def resume(self):
        if self._armed:
            self.paused = False

    def toggle_pause(self):
        if self.paused:
            self.resume()
        else:
            self.pause()
        return self.paused

    async def skip(self):
        """Complete the countdown now. Returns False if nothing is armed."""
        if not self._armed:
            return False
        self._cancel_task()
        await self._fire()
        return True

    async def tick(self):
        """Advance one second. Returns True if this tick completed the countdown."""
        if not self._armed or self.paused:
            return False
        self.remaining -= 1
        if self.remaining > 0:
            if self._on_tick:
                await self._on_tick(self.remaining)
            return False
        self.remaining = 0
        await self._fire()
        return True

    async def _fire(self):
        self._armed = False
        self.paused = False
        # The completion usually re-arms us from inside the running task;
        # forget the handle so start() doesn't cancel the caller.
        self._task = None
        on_complete = self._on_complete
        self._on_complete = None
        self._on_tick = None
        if on_complete:
            await on_complete()

    def _cancel_task(self):
        task = self._task
        self._task = None
        if task and task is not asyncio.current_task():
            task.cancel()

    async def _tick_loop(self, generation):
        try:
            while self._armed and self._generation == generation:
                await asyncio.sleep(self.interval)
                if self._generation != generation:
                    break
                await self.tick()
        except asyncio.CancelledError:
            pass
