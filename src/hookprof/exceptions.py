"""Exception taxonomy for hookprof."""

from __future__ import annotations

from typing import Mapping


class NeverRaise(RuntimeError):
    """Sentinel exception for code paths that must be unreachable.

    Raising this exception means an engine invariant was broken: the stack
    was driven into a state that the call/return protocol cannot produce.
    It is never caught inside hookprof.
    """

    def __init__(self, message: str, *, env: Mapping[str, object] | None = None):
        super().__init__(message)
        self.reason = message
        self.env = dict(env or {})

    @property
    def env_payload(self) -> dict[str, str]:
        return {str(key): repr(value) for key, value in self.env.items()}


class NeverThrown(NeverRaise):
    """Alias for NeverRaise used by the explicit never() marker."""


class ProfilerError(RuntimeError):
    """Base class for profiler usage errors."""


class SessionAlreadyActive(ProfilerError):
    def __init__(self, owner: object | None = None):
        super().__init__("profiling session already active")
        self.owner = owner


class NoActiveSession(ProfilerError):
    def __init__(self) -> None:
        super().__init__("no profiling session is active")


class ProfilerHookBusy(ProfilerError):
    """Raised when another profile hook already owns the interpreter."""

    def __init__(self, existing: object):
        super().__init__(f"a profile hook is already installed: {existing!r}")
        self.existing = existing


class ProfilerDisposed(ProfilerError):
    def __init__(self) -> None:
        super().__init__("profiler has been disposed")
