from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from hookprof.exceptions import SessionAlreadyActive

log = logging.getLogger(__name__)


class SessionGuard:
    """Single-flight slot: at most one session per owner at a time."""

    def __init__(self, owner: object | None = None) -> None:
        self._owner = owner
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def acquire(self) -> Iterator[object | None]:
        if not self._lock.acquire(blocking=False):
            log.debug("rejected second session on %r", self._owner)
            raise SessionAlreadyActive(self._owner)
        try:
            yield self._owner
        finally:
            self._lock.release()
