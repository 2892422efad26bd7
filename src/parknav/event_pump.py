# event_pump.py
# Single worker thread that runs queued events in arrival order.
# Producers (sensor callbacks) post and return immediately; the worker
# executes each event to completion before taking the next one.

import logging
import queue
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

_STOP = object()


class EventPump:
    """
    Fire-and-forget dispatch for sensor events.

    Every start() gets a fresh queue, so a worker that is still draining
    after stop() never competes with its successor.

    Usage:
        pump = EventPump()
        pump.start()
        pump.post(orchestrator.on_position_sample, sample)
        ...
        pump.stop()
    """

    def __init__(self, name: str = "parknav-events") -> None:
        self.name = name
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._queue = queue.Queue()
        self._thread = threading.Thread(
            target=self._worker, args=(self._queue,), name=self.name, daemon=True
        )
        self._thread.start()

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        """Queue `fn(*args)`; never blocks the caller."""
        self._queue.put((fn, args))

    def join(self) -> None:
        """Block until every event posted so far has been handled."""
        self._queue.join()

    def stop(self, timeout: Optional[float] = 2.0) -> None:
        """
        Let the worker finish what is queued, then end it.

        Called from inside a handler (on the worker itself) it only
        schedules the shutdown.
        """
        thread = self._thread
        if thread is None:
            return
        self._thread = None
        self._queue.put(_STOP)
        if thread is not threading.current_thread():
            thread.join(timeout)

    def _worker(self, events: "queue.Queue[Any]") -> None:
        while True:
            item = events.get()
            try:
                if item is _STOP:
                    break
                fn, args = item
                fn(*args)
            except Exception:
                logger.exception("Event handler failed; pump keeps running.")
            finally:
                events.task_done()
