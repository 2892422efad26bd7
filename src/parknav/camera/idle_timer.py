# idle_timer.py
# Single-shot, cancelable timer for the camera's user-idle timeout.

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class IdleTimer:
    """
    Restartable single-shot timer built on threading.Timer.

    start() cancels any pending firing before arming a new one and hands
    the callback a generation token. A callback that fires late (after a
    restart or cancel raced with it) carries an outdated token, so the
    receiver can tell it apart from the current timer via is_current().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0

    def start(self, delay_s: float, callback: Callable[[int], None]) -> int:
        """Arm the timer, replacing any pending one. Returns the new token."""
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            token = self._generation
            timer = threading.Timer(delay_s, self._fire, args=(token, callback))
            timer.daemon = True
            self._timer = timer
            timer.start()
        return token

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()
            self._generation += 1

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._generation

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, token: int, callback: Callable[[int], None]) -> None:
        with self._lock:
            if token != self._generation:
                return
            self._timer = None
        try:
            callback(token)
        except Exception:
            logger.exception("Idle timer callback failed.")
