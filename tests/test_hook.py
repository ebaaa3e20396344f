from __future__ import annotations

import sys

import pytest

from hookprof.engine import ProfilerEngine
from hookprof.exceptions import ProfilerHookBusy
from hookprof.hook import HostHook, frame_depth
from hookprof.identity import FunctionIdentity, identity_for_code
from hookprof.naming import FunctionDomain


def sample_leaf() -> int:
    return sum(range(50))


def sample_middle() -> int:
    return sample_leaf() + sample_leaf()


def sample_outer() -> int:
    return sample_middle()


def sample_countdown(n: int) -> int:
    if n == 0:
        return 0
    return sample_countdown(n - 1)


def sample_boom() -> None:
    raise ValueError("boom")


def sample_catcher() -> int:
    try:
        sample_boom()
    except ValueError:
        return 1
    return 0


def sample_appender() -> list[int]:
    items: list[int] = []
    for index in range(5):
        items.append(index)
    return items


class SampleStack(list):
    def append(self, value) -> None:
        super().append(value)


def sample_stack_pusher() -> SampleStack:
    stack = SampleStack()
    stack.append(1)
    stack.append(2)
    return stack


def sample_sorter() -> list[int]:
    return sorted([3, 1, 2], key=sample_double)


def sample_double(value: int) -> int:
    return value * 2


def _entry(result, fn):
    return result.entries[identity_for_code(fn.__code__)]


class _RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, object, int]] = []

    def on_call(self, identity, depth, name_resolver=None) -> None:
        self.events.append(("call", identity, depth))

    def on_return(self, depth) -> None:
        self.events.append(("return", None, depth))


def test_frame_depth_counts_back_chain() -> None:
    frame = sys._getframe()
    assert frame_depth(frame) == frame_depth(frame.f_back) + 1
    assert frame_depth(None) == 0


def test_profiles_nested_python_calls() -> None:
    engine = ProfilerEngine(natives=False)
    result = engine.run_and_profile(sample_outer)

    outer = _entry(result, sample_outer)
    middle = _entry(result, sample_middle)
    leaf = _entry(result, sample_leaf)
    assert (outer.calls, middle.calls, leaf.calls) == (1, 1, 2)
    for entry in (outer, middle, leaf):
        assert entry.recursion_depth == 0
        assert entry.total_self_time <= entry.total_time
    assert outer.total_time >= middle.total_time >= leaf.total_time
    assert result.total_time is not None
    assert result.total_time >= outer.total_time
    assert outer.name is not None
    assert outer.name.domain is FunctionDomain.PYTHON
    assert outer.name.name == "sample_outer"


def test_profiles_recursion_once_per_chain() -> None:
    engine = ProfilerEngine(natives=False)
    result = engine.run_and_profile(sample_countdown, 6)

    entry = _entry(result, sample_countdown)
    assert entry.calls == 7
    assert entry.recursion_depth == 0
    assert entry.total_time <= result.total_time


def test_caught_exception_unwinds_cleanly() -> None:
    engine = ProfilerEngine(natives=False)
    result = engine.run_and_profile(sample_catcher)

    assert _entry(result, sample_boom).calls == 1
    assert _entry(result, sample_catcher).calls == 1
    assert all(entry.recursion_depth == 0 for entry in result.entries.values())


def test_teardown_is_not_recorded() -> None:
    engine = ProfilerEngine()
    result = engine.run_and_profile(sample_leaf)

    sources = {
        entry.name.source
        for entry in result.entries.values()
        if entry.name is not None
    }
    assert not any(source.endswith(("hook.py", "engine.py", "contextlib.py")) for source in sources)
    assert _entry(result, sample_leaf).calls == 1


def test_bound_builtin_methods_share_one_entry() -> None:
    engine = ProfilerEngine(natives=True)
    result = engine.run_and_profile(sample_appender)

    entry = result.entries[FunctionIdentity(list.append)]
    assert entry.calls == 5
    assert entry.name is not None
    assert entry.name.domain is FunctionDomain.NATIVE
    assert entry.name.name == "list.append"


def test_super_call_into_builtin_keys_on_descriptor() -> None:
    engine = ProfilerEngine(natives=True)
    result = engine.run_and_profile(sample_stack_pusher)

    entry = result.entries[FunctionIdentity(list.append)]
    assert entry.calls == 2
    assert entry.name is not None
    assert entry.name.kind == "method"
    assert entry.name.name == "list.append"
    assert result.entries[identity_for_code(SampleStack.append.__code__)].calls == 2


def test_native_events_can_be_disabled() -> None:
    engine = ProfilerEngine(natives=False)
    result = engine.run_and_profile(sample_appender)

    assert FunctionIdentity(list.append) not in result.entries


def test_callback_from_builtin_sits_below_builtin() -> None:
    sink = _RecordingSink()
    hook = HostHook(sink, natives=True)
    hook.install()
    try:
        sample_sorter()
    finally:
        hook.armed = False
        hook.remove()

    calls = {
        identity.target: depth
        for kind, identity, depth in sink.events
        if kind == "call"
    }
    sorted_depth = calls[sorted]
    double_depth = calls[sample_double.__code__]
    sorter_depth = calls[sample_sorter.__code__]
    assert sorter_depth < sorted_depth < double_depth


def test_builtin_callback_does_not_close_builtin() -> None:
    engine = ProfilerEngine(natives=True)
    result = engine.run_and_profile(sample_sorter)

    assert _entry(result, sample_double).calls == 3
    assert _entry(result, sample_sorter).calls == 1
    assert all(entry.recursion_depth == 0 for entry in result.entries.values())


def sample_ticker():
    yield frame_depth(sys._getframe())
    yield frame_depth(sys._getframe())


def sample_resume_deeper(ticker) -> int:
    return next(ticker)


def sample_resumer() -> list[int]:
    ticker = sample_ticker()
    first = next(ticker)
    second = sample_resume_deeper(ticker)
    return [first, second]


def _python_calls(sink: _RecordingSink, fn) -> list[int]:
    return [
        depth
        for kind, identity, depth in sink.events
        if kind == "call" and identity.target is fn.__code__
    ]


def test_cached_depths_match_frame_chain() -> None:
    sink = _RecordingSink()
    hook = HostHook(sink, natives=False)
    base = frame_depth(sys._getframe())
    hook.install()
    try:
        sample_countdown(20)
    finally:
        hook.armed = False
        hook.remove()

    depths = _python_calls(sink, sample_countdown)
    assert depths == list(range(base + 1, base + 22))
    start = next(
        index for index, (kind, _, _) in enumerate(sink.events) if kind == "call"
    )
    returns = [depth for kind, _, depth in sink.events[start:] if kind == "return"]
    assert returns[:21] == depths[::-1]


def test_resumed_generator_takes_callers_depth() -> None:
    sink = _RecordingSink()
    hook = HostHook(sink, natives=False)
    hook.install()
    try:
        first, second = sample_resumer()
    finally:
        hook.armed = False
        hook.remove()

    ticker_depths = _python_calls(sink, sample_ticker)
    assert first in ticker_depths
    assert second in ticker_depths
    assert second == first + 1


def test_remove_drops_cached_depths() -> None:
    hook = HostHook(_RecordingSink(), natives=False)
    hook.install()
    try:
        sample_outer()
    finally:
        hook.armed = False
        hook.remove()
    assert hook._depths == {}


def test_install_refuses_foreign_hook() -> None:
    def foreign(frame, event, arg):
        return None

    sys.setprofile(foreign)
    try:
        hook = HostHook(_RecordingSink())
        with pytest.raises(ProfilerHookBusy) as excinfo:
            hook.install()
        assert excinfo.value.existing is foreign
        assert hook.installed is False
    finally:
        sys.setprofile(None)


def test_remove_is_idempotent() -> None:
    hook = HostHook(_RecordingSink())
    hook.install()
    hook.remove()
    hook.remove()
    assert sys.getprofile() is None
    assert hook.installed is False
