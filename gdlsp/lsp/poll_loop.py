"""Reference-counted QTimer loop that drives socket polling."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator

from PySide6.QtCore import QObject, QTimer

DEFAULT_TICK_INTERVAL_MS = 100


class PollLoop(QObject):
    """Runs ``tick`` every ``interval_ms`` while at least one activation is held.

    ``enable``/``disable`` must be balanced by the caller. An extra ``disable``
    leaves the loop stopped until enough ``enable`` calls bring the count back
    above zero. When ``tick`` returns False the loop stops without scheduling
    another tick.
    """

    def __init__(
        self,
        tick: Callable[[], bool],
        *,
        interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._tick = tick
        self._count = 0
        self._in_tick = False
        self._enabled_during_tick = False
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(max(1, int(interval_ms)))
        self._timer.timeout.connect(self.run_tick)

    @property
    def count(self) -> int:
        return self._count

    def interval_ms(self) -> int:
        return int(self._timer.interval())

    def set_interval_ms(self, interval_ms: int) -> None:
        self._timer.setInterval(max(1, int(interval_ms)))

    def is_active(self) -> bool:
        return self._count > 0 and self._timer.isActive()

    def enable(self) -> None:
        self._count += 1
        if self._in_tick:
            self._enabled_during_tick = True
        elif self._count > 0:
            self._schedule()

    def disable(self) -> None:
        self._count -= 1
        if self._count <= 0:
            self._timer.stop()

    @contextmanager
    def lease(self) -> Iterator[PollLoop]:
        self.enable()
        try:
            yield self
        finally:
            self.disable()

    def stop(self) -> None:
        """Cancel the pending tick without touching the activation count."""
        self._timer.stop()

    def run_tick(self) -> None:
        self._timer.stop()
        self._in_tick = True
        self._enabled_during_tick = False
        try:
            keep_going = bool(self._tick())
        finally:
            self._in_tick = False
        # An enable() from inside a stopping tick (a reconnect) restarts the loop.
        if (keep_going or self._enabled_during_tick) and self._count > 0:
            self._schedule()

    def _schedule(self) -> None:
        # Restarting an active single-shot timer replaces it, so at most one tick is pending.
        if not self._timer.isActive():
            self._timer.start()
