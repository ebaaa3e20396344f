"""Invariant markers for hookprof."""

from __future__ import annotations

from typing import NoReturn, TypeVar

from hookprof.exceptions import NeverThrown

T = TypeVar("T")


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path as unreachable.

    The env payload travels with the raised exception so a broken stack can
    be diagnosed from the traceback alone.
    """
    raise NeverThrown(reason or "never() marker reached", env=env)


def require_not_none(value: T | None, *, reason: str = "", **env: object) -> T:
    if value is None:
        never(reason or "required value is None", **env)
    return value
