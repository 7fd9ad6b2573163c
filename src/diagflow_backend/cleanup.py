from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock, Timer
from typing import Set

logger = logging.getLogger(__name__)


class ArtifactJanitor:
    """
    Deletes dispatched report artifacts after a grace delay.

    The delay gives the mail transport time to finish reading the attachment.
    Each artifact gets its own daemon timer, so the delay stays fixed no matter
    how many reports are pending. Callers never wait on deletion, and a failed
    deletion is only logged.
    """

    def __init__(self, delay_seconds: float = 5.0) -> None:
        self.delay_seconds = delay_seconds
        self._timers: Set[Timer] = set()
        self._lock = Lock()

    def schedule(self, artifact: Path) -> Timer:
        timer = Timer(self.delay_seconds, self._remove, args=(Path(artifact),))
        timer.daemon = True
        with self._lock:
            self._timers = {pending for pending in self._timers if pending.is_alive()}
            self._timers.add(timer)
        timer.start()
        return timer

    def pending(self) -> int:
        with self._lock:
            return sum(1 for timer in self._timers if timer.is_alive())

    def _remove(self, artifact: Path) -> None:
        try:
            artifact.unlink()
        except FileNotFoundError:
            logger.warning(f"Report {artifact.name} was already removed")
        except OSError as exc:
            logger.warning(f"Could not remove report {artifact.name}: {exc}")
        else:
            logger.info(f"Removed report {artifact.name}")

    def shutdown(self) -> None:
        """Stop pending timers and delete their artifacts right away."""
        with self._lock:
            timers, self._timers = self._timers, set()
        for timer in timers:
            if timer.is_alive():
                timer.cancel()
                self._remove(*timer.args)
