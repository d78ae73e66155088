"""Periodic background refresh owned by a view's lifecycle."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RefreshTicker(Generic[T]):
    """Runs ``refresh`` every ``interval`` seconds and hands results to ``apply``.

    Results are applied only while the ticker is running and only if no
    ``stop`` happened since the refresh began; anything else is dropped.
    In-flight refreshes are not interrupted on stop, their result is ignored.
    A failing refresh is logged and leaves the last applied state as is.
    """

    def __init__(
        self,
        interval: float,
        refresh: Callable[[], T],
        apply: Callable[[T], None],
        name: str = "refresh-ticker",
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Refresh interval must be positive, got {interval}")
        self.interval = interval
        self.name = name
        self._refresh = refresh
        self._apply = apply
        # Reentrant so an apply callback may stop its own ticker.
        self._lock = threading.RLock()
        self._generation = 0
        self._active = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._active

    def start(self) -> None:
        with self._lock:
            if self._active:
                return
            self._active = True
            self._generation += 1
            self._stop_event = threading.Event()
            generation = self._generation
            stop_event = self._stop_event
            self._thread = threading.Thread(
                target=self._run, args=(generation, stop_event), name=self.name, daemon=True
            )
            thread = self._thread
        thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop ticking without waiting for an in-flight refresh.

        A refresh still running is left to finish and its result is dropped.
        Pass ``timeout`` to wait up to that many seconds for the worker thread.
        """
        with self._lock:
            if not self._active:
                return
            self._active = False
            self._generation += 1
            self._stop_event.set()
            thread = self._thread
            self._thread = None
        if timeout is not None and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def tick(self) -> bool:
        """Refresh once in the calling thread; return whether the result was applied."""
        with self._lock:
            generation = self._generation
        return self._tick(generation)

    def _run(self, generation: int, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            self._tick(generation)

    def _tick(self, generation: int) -> bool:
        try:
            result = self._refresh()
        except Exception:  # noqa: BLE001 - a failed refresh must not kill the loop
            logger.exception("Refresh failed, keeping previous state")
            return False

        with self._lock:
            if not self._active or generation != self._generation:
                logger.debug("Discarding stale refresh result from %s", self.name)
                return False
            self._apply(result)
        return True

    def __enter__(self) -> "RefreshTicker[T]":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
