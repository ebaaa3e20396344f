"""Call/return state machine turning hook events into per-function timings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, TypeVar

from hookprof.exceptions import NoActiveSession, SessionAlreadyActive
from hookprof.hook import HostHook
from hookprof.identity import FunctionIdentity
from hookprof.invariants import never, require_not_none
from hookprof.naming import NameResolver, resolve_name
from hookprof.profile_clock import MonotonicClock, ProfileClock
from hookprof.result import ProfileEntry, ProfilingResult
from hookprof.session import SessionGuard

log = logging.getLogger(__name__)

_Result = TypeVar("_Result")


@dataclass
class CallFrame:
    """One active invocation on the profiler's stack.

    ``inner_start`` marks the beginning of the current unsuspended self-time
    period; a suspended frame accrues nothing until it is resumed.
    """

    identity: FunctionIdentity
    level: int
    entry: int
    inner_start: int
    suspended: bool = False


class ProfilerEngine:
    def __init__(
        self,
        clock: ProfileClock | None = None,
        *,
        natives: bool = True,
    ) -> None:
        self._clock: ProfileClock = clock if clock is not None else MonotonicClock()
        self.natives = natives
        self.guard = SessionGuard(self)
        self._stack: list[CallFrame] = []
        self._result: ProfilingResult | None = None

    @property
    def clock(self) -> ProfileClock:
        return self._clock

    @property
    def active(self) -> bool:
        return self._result is not None

    @property
    def stack_depth(self) -> int:
        return len(self._stack)

    @property
    def frames(self) -> tuple[CallFrame, ...]:
        return tuple(self._stack)

    def begin_session(self) -> None:
        if self._result is not None:
            raise SessionAlreadyActive(self)
        self._stack = []
        self._result = ProfilingResult()
        log.debug("profiling session started on %r", self)

    def end_session(self) -> ProfilingResult:
        """Close every open frame, deepest first, and hand back the result."""
        result = self._result
        if result is None:
            raise NoActiveSession()
        now = self._clock.get_mark()
        drained = 0
        while self._stack:
            frame = self._stack.pop()
            self._resume(frame, now)
            self._close(result, frame, now)
            drained += 1
        self._result = None
        if drained:
            log.debug("closed %d frame(s) still open at session end", drained)
        log.debug("profiling session ended with %d function(s)", len(result))
        return result

    def abort_session(self) -> None:
        if self._result is not None:
            log.debug("profiling session abandoned with %d open frame(s)", len(self._stack))
        self._stack = []
        self._result = None

    def run_and_profile(
        self,
        fn: Callable[..., _Result],
        /,
        *args: object,
        **kwargs: object,
    ) -> ProfilingResult:
        """Run ``fn`` under the interpreter's profile hook and return its profile.

        Any exception raised by ``fn`` propagates unchanged once the hook is
        removed and the session is discarded.
        """
        with self.guard.acquire():
            self.begin_session()
            hook = HostHook(self, natives=self.natives)
            try:
                started = self._clock.get_mark()
                hook.install()
                try:
                    fn(*args, **kwargs)
                finally:
                    # attribute stores fire no event; disarm before any teardown call
                    hook.armed = False
                    hook.remove()
                elapsed = self._clock.get_mark() - started
            except BaseException:
                self.abort_session()
                raise
            result = self.end_session()
            result.set_total_time(elapsed)
            return result

    def dispose(self) -> None:
        if self.guard.active:
            raise SessionAlreadyActive(self)
        self.abort_session()

    def on_call(
        self,
        identity: FunctionIdentity,
        depth: int,
        name_resolver: NameResolver = resolve_name,
    ) -> None:
        """Record entry into ``identity`` at ``depth``.

        A first sighting resolves the name before anything is mutated; the
        time spent resolving is charged to neither the caller nor the callee.
        """
        result = self._session_result()
        paused = now = self._clock.get_mark()
        entry = result.entries.get(identity)
        needs_name = entry is None or not entry.name_resolved
        name = None
        if needs_name:
            name = name_resolver(identity)
            now = self._clock.get_mark()
        if self._stack:
            self._suspend(result, self._stack[-1], paused)
        if entry is None:
            entry = result.entry_for(identity)
        if needs_name:
            entry.assign_name(name)
        entry.calls += 1
        entry.recursion_depth += 1
        self._stack.append(
            CallFrame(identity=identity, level=depth, entry=now, inner_start=now)
        )

    def on_return(self, depth: int) -> None:
        result = self._session_result()
        now = self._clock.get_mark()
        stack = self._stack
        closed = 0
        orphans = 0
        while stack and stack[-1].level > depth:
            frame = stack.pop()
            self._resume(frame, now)
            self._close(result, frame, now)
            orphans += 1
        while stack and stack[-1].level == depth:
            frame = stack.pop()
            self._resume(frame, now)
            self._close(result, frame, now)
            closed += 1
        if orphans:
            log.debug("reconciled %d orphaned frame(s) above depth %d", orphans, depth)
        if (closed or orphans) and stack:
            self._resume(stack[-1], now)

    def _session_result(self) -> ProfilingResult:
        return require_not_none(
            self._result,
            reason="profiler event delivered outside a session",
        )

    def _entry(self, result: ProfilingResult, frame: CallFrame) -> ProfileEntry:
        entry = result.entries.get(frame.identity)
        if entry is None:
            never("open frame has no profile entry", identity=frame.identity)
        return entry

    def _suspend(self, result: ProfilingResult, frame: CallFrame, now: int) -> None:
        if frame.suspended:
            never("frame suspended twice", identity=frame.identity, level=frame.level)
        entry = self._entry(result, frame)
        entry.total_self_time += max(0, now - frame.inner_start)
        frame.suspended = True

    def _resume(self, frame: CallFrame, now: int) -> None:
        if frame.suspended:
            frame.inner_start = now
            frame.suspended = False

    def _close(self, result: ProfilingResult, frame: CallFrame, now: int) -> None:
        if frame.suspended:
            never("closing a suspended frame", identity=frame.identity, level=frame.level)
        entry = self._entry(result, frame)
        entry.total_self_time += max(0, now - frame.inner_start)
        entry.recursion_depth -= 1
        if entry.recursion_depth < 0:
            never("recursion depth underflow", identity=frame.identity)
        if entry.recursion_depth == 0:
            # only the outermost invocation of a recursive chain counts
            entry.total_time += max(0, now - frame.entry)
