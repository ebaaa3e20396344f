"""Bridge from the interpreter's profile hook to engine events."""

from __future__ import annotations

import logging
import sys
from types import FrameType
from typing import Protocol

from hookprof.exceptions import ProfilerHookBusy
from hookprof.identity import FunctionIdentity, identity_for_code, identity_for_native
from hookprof.naming import NameResolver, resolve_name

log = logging.getLogger(__name__)


class EventSink(Protocol):
    def on_call(
        self,
        identity: FunctionIdentity,
        depth: int,
        name_resolver: NameResolver = resolve_name,
    ) -> None: ...

    def on_return(self, depth: int) -> None: ...


def frame_depth(frame: FrameType | None) -> int:
    depth = 0
    while frame is not None:
        depth += 1
        frame = frame.f_back
    return depth


class HostHook:
    """Forward ``sys.setprofile`` notifications to an :class:`EventSink`.

    Builtins run without a frame of their own, so the reported depth is the
    Python frame depth plus the number of builtins currently open. That keeps
    a callback invoked from a builtin (``sorted(key=f)``) one level below the
    builtin instead of on the same level.

    Depths of running frames are cached from their caller's entry, so an
    event costs the same at any stack depth. A frame leaves the cache when it
    returns; a resumed generator is re-entered under its new caller.
    """

    def __init__(self, sink: EventSink, *, natives: bool = True) -> None:
        self._sink = sink
        self._natives = natives
        self._open_natives = 0
        self._depths: dict[FrameType, int] = {}
        self.armed = False
        self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        existing = sys.getprofile()
        if existing is not None:
            log.warning("refusing to replace existing profile hook %r", existing)
            raise ProfilerHookBusy(existing)
        log.debug("installing profile hook")
        self._open_natives = 0
        self._depths = {}
        sys.setprofile(self._dispatch)
        self._installed = True
        # events raised while installing belong to the installer, not the session
        self.armed = True

    def remove(self) -> None:
        self.armed = False
        if self._installed:
            sys.setprofile(None)
            self._installed = False
            log.debug("profile hook removed")
        self._depths = {}

    def _depth_of(self, frame: FrameType | None) -> int:
        if frame is None:
            return 0
        depth = self._depths.get(frame)
        if depth is None:
            depth = frame_depth(frame)
            self._depths[frame] = depth
        return depth

    def _dispatch(self, frame: FrameType, event: str, arg: object) -> None:
        if not self.armed:
            return
        if event == "call":
            depth = self._depth_of(frame.f_back) + 1
            self._depths[frame] = depth
            self._sink.on_call(
                identity_for_code(frame.f_code), depth + self._open_natives, resolve_name
            )
        elif event == "return":
            depth = self._depths.pop(frame, None)
            if depth is None:
                depth = frame_depth(frame)
            self._sink.on_return(depth + self._open_natives)
        elif not self._natives:
            return
        elif event == "c_call":
            self._open_natives += 1
            depth = self._depth_of(frame) + self._open_natives
            self._sink.on_call(identity_for_native(arg), depth, resolve_name)
        elif event in ("c_return", "c_exception"):
            depth = self._depth_of(frame) + self._open_natives
            self._open_natives = max(0, self._open_natives - 1)
            self._sink.on_return(depth)
