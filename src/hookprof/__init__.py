"""hookprof package root."""

from hookprof.engine import CallFrame, ProfilerEngine
from hookprof.exceptions import (
    NeverRaise,
    NeverThrown,
    NoActiveSession,
    ProfilerDisposed,
    ProfilerError,
    ProfilerHookBusy,
    SessionAlreadyActive,
)
from hookprof.identity import FunctionIdentity
from hookprof.invariants import never
from hookprof.naming import FunctionDomain, FunctionName
from hookprof.profiler import Profiler
from hookprof.result import ProfileEntry, ProfileRecord, ProfilingResult

__all__ = [
    "__version__",
    "CallFrame",
    "FunctionDomain",
    "FunctionIdentity",
    "FunctionName",
    "NeverRaise",
    "NeverThrown",
    "NoActiveSession",
    "ProfileEntry",
    "ProfileRecord",
    "Profiler",
    "ProfilerDisposed",
    "ProfilerEngine",
    "ProfilerError",
    "ProfilerHookBusy",
    "ProfilingResult",
    "SessionAlreadyActive",
    "never",
]

__version__ = "0.1.0"
