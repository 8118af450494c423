"""V2X-CPM periodic trigger.

A cancellable, self-rescheduling periodic task. Each tick first arms the
next timer and then runs the callback synchronously, so a slow or failing
callback never costs future ticks. A tick that fires while the previous
callback is still running is skipped, so callbacks never overlap. Timers
are created through a factory (``threading.Timer`` by default) so the task
does not depend on one execution engine.

Author: Dr. Mladen Mešter — Nexellum d.o.o.
License: AGPL-3.0-or-later
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional

from .cpm_logging import get_logger

logger = get_logger("v2x_cpm.scheduler")

TimerFactory = Callable[[float, Callable[[], None]], Any]


def daemon_timer(interval: float, function: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


def _log_tick_error(exc: BaseException) -> None:
    logger.error("periodic callback failed: %s", exc, exc_info=exc)


class PeriodicTask:
    """Periodic callback with a replaceable interval.

    Args:
        interval_s: Seconds between ticks
        callback: Invoked once per tick
        timer_factory: ``factory(interval, fn)`` returning an object with
            ``start()`` and ``cancel()``
        on_error: Receives any exception raised by ``callback``

    Example::

        task = PeriodicTask(1.0, app.send)
        task.start()
        task.set_interval(0.1)   # effective from the next tick
        task.cancel()
    """

    def __init__(self, interval_s: float, callback: Callable[[], Any],
                 timer_factory: TimerFactory = daemon_timer,
                 on_error: Optional[Callable[[BaseException], None]] = None):
        if interval_s <= 0:
            raise ValueError(f"interval must be positive, got {interval_s}")
        self._interval = float(interval_s)
        self._callback = callback
        self._timer_factory = timer_factory
        self._on_error = on_error or _log_tick_error
        self._lock = threading.Lock()
        self._timer = None
        self._token = 0
        self._busy = threading.Lock()
        self.ticks = 0
        self.overruns = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        with self._lock:
            return self._timer is not None

    def start(self) -> None:
        with self._lock:
            self._cancel_locked()
            self._schedule_locked()

    def set_interval(self, interval_s: float) -> None:
        """Cancel the pending trigger and re-arm with the new interval."""
        if interval_s <= 0:
            raise ValueError(f"interval must be positive, got {interval_s}")
        with self._lock:
            self._interval = float(interval_s)
            self._cancel_locked()
            self._schedule_locked()

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self) -> None:
        self._token += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_locked(self) -> None:
        token = self._token
        self._timer = self._timer_factory(self._interval, lambda: self._on_timer(token))
        self._timer.start()

    def _on_timer(self, token: int) -> None:
        with self._lock:
            # Stale timer from before a cancel / set_interval
            if token != self._token:
                return
            self._schedule_locked()
        if not self._busy.acquire(blocking=False):
            self.overruns += 1
            logger.warning("periodic tick skipped, previous callback still running")
            return
        try:
            self.ticks += 1
            self._callback()
        except Exception as exc:
            self._on_error(exc)
        finally:
            self._busy.release()
