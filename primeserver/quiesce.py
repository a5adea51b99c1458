"""Graceful shutdown on SIGTERM: drain for a while, then shut down, then exit."""

from __future__ import annotations

import logging
import os
import signal
import sys
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def _hard_exit(code: int) -> None:
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except Exception:  # noqa: BLE001 - best effort before exiting
            pass
    os._exit(code)


class Quiescable:
    """Process-wide draining and shutting-down state driven by SIGTERM."""

    _instance: Optional["Quiescable"] = None
    _lock = threading.Lock()

    def __init__(
        self,
        drain_seconds: int = 0,
        shutdown_seconds: int = 0,
        *,
        exit_function: Callable[[int], None] = _hard_exit,
    ) -> None:
        self.drain_seconds = drain_seconds
        self.shutdown_seconds = shutdown_seconds
        self._exit = exit_function
        self._draining = threading.Event()
        self._shutting_down = threading.Event()
        # both unset disables the functionality
        if drain_seconds == 0 and shutdown_seconds == 0:
            return
        signals = {signal.SIGTERM}
        try:
            signal.pthread_sigmask(signal.SIG_BLOCK, signals)
        except (AttributeError, OSError, ValueError):
            logger.error("Could not mask SIGTERM, graceful shutdown disabled")
            return
        threading.Thread(target=self._wait_for_signal, args=(signals,), daemon=True).start()

    @classmethod
    def get(cls, drain_seconds: int = 0, shutdown_seconds: int = 0) -> "Quiescable":
        """Return the process-wide instance, creating it on first use."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = cls(drain_seconds, shutdown_seconds)
            return cls._instance

    @property
    def draining(self) -> bool:
        return self._draining.is_set()

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down.is_set()

    def _wait_for_signal(self, signals: set) -> None:
        try:
            signal.sigwait(signals)
        except (AttributeError, OSError, ValueError):
            logger.error("Could not wait for SIGTERM, graceful shutdown disabled")
            return
        self._quiesce()

    def _quiesce(self) -> None:
        self._draining.set()
        time.sleep(self.drain_seconds)
        self._shutting_down.set()
        time.sleep(self.shutdown_seconds)
        self._exit(0)


def quiesce(drain_seconds: int, shutdown_seconds: int) -> None:
    """Enable graceful shutdown with the given drain and shutdown periods."""
    Quiescable.get(drain_seconds, shutdown_seconds)


def draining() -> bool:
    return Quiescable.get().draining


def shutting_down() -> bool:
    return Quiescable.get().shutting_down