from __future__ import annotations

"""Countdown: one-second ticks on a threading.Timer.

``tick()`` advances the countdown by one step and may be called directly
(tests, or a host that owns its own clock). After ``cancel()`` no callback
fires again, and ``on_time_up`` fires at most once.
"""

import threading
from typing import Callable, Optional


class Countdown:
    def __init__(
        self,
        duration: int,
        on_update: Optional[Callable[[int], None]] = None,
        on_time_up: Optional[Callable[[], None]] = None,
        *,
        interval: float = 1.0,
    ) -> None:
        self.remaining = max(0, int(duration))
        self.on_update = on_update
        self.on_time_up = on_time_up
        self.interval = float(interval)
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._running = False
        self._cancelled = False
        self._finished = self.remaining == 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def finished(self) -> bool:
        return self._finished

    def start(self) -> None:
        """Start (or resume after pause) the background ticking."""
        with self._lock:
            if self._running or self._cancelled or self._finished:
                return
            self._running = True
            self._arm()

    def pause(self) -> None:
        with self._lock:
            self._running = False
            if self._timer:
                self._timer.cancel()
                self._timer = None

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            self._running = False
            if self._timer:
                self._timer.cancel()
                self._timer = None

    def _arm(self) -> None:
        self._timer = threading.Timer(self.interval, self._on_fire)
        self._timer.daemon = True
        self._timer.start()

    def _on_fire(self) -> None:
        self.tick()
        with self._lock:
            if self._running and not self._cancelled and not self._finished:
                self._arm()

    def tick(self) -> int:
        """Advance one second; returns the new remaining time."""
        with self._lock:
            if self._cancelled or self._finished:
                return self.remaining
            if self.remaining <= 1:
                self.remaining = 0
                self._finished = True
                self._running = False
                time_up = True
            else:
                self.remaining -= 1
                time_up = False
            remaining = self.remaining
        if self._cancelled:
            return remaining
        if time_up:
            if self.on_time_up:
                self.on_time_up()
        elif self.on_update:
            self.on_update(remaining)
        return remaining
