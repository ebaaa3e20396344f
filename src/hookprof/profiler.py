"""Embedding entry point: a callable profiler handle with explicit teardown."""

from __future__ import annotations

import logging
import weakref
from typing import Callable

from hookprof.engine import ProfilerEngine
from hookprof.exceptions import ProfilerDisposed, SessionAlreadyActive
from hookprof.profile_clock import ProfileClock
from hookprof.result import ProfilingResult

log = logging.getLogger(__name__)


def _release_engine(engine: ProfilerEngine) -> None:
    engine.dispose()
    log.debug("profiler engine released")


class Profiler:
    """Profile callables: ``Profiler()(fn)`` returns the plain payload.

    The payload has one ``{"name", "calls", "totalTime", "totalSelfTime"}``
    mapping per function under ``"entries"`` and the session wall time under
    ``"totalTime"``, all times in seconds. :meth:`dispose` releases the engine
    exactly once; it also runs when the handle is garbage collected.
    """

    def __init__(
        self,
        clock: ProfileClock | None = None,
        *,
        natives: bool = True,
    ) -> None:
        self._engine = ProfilerEngine(clock, natives=natives)
        self._finalizer = weakref.finalize(self, _release_engine, self._engine)

    def __call__(self, fn: Callable[..., object], /, *args: object, **kwargs: object) -> dict[str, object]:
        return self.profile(fn, *args, **kwargs).to_payload()

    def profile(self, fn: Callable[..., object], /, *args: object, **kwargs: object) -> ProfilingResult:
        return self._live_engine().run_and_profile(fn, *args, **kwargs)

    @property
    def disposed(self) -> bool:
        return not self._finalizer.alive

    def dispose(self) -> None:
        if self.disposed:
            return
        if self._engine.guard.active:
            raise SessionAlreadyActive(self)
        self._finalizer()

    def __enter__(self) -> "Profiler":
        self._live_engine()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    def _live_engine(self) -> ProfilerEngine:
        if self.disposed:
            raise ProfilerDisposed()
        return self._engine
