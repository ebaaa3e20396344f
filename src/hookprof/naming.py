"""Human-readable function descriptions.

Names are display data only; the engine keys everything on
:class:`~hookprof.identity.FunctionIdentity` and resolves a name at most once
per identity.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import CodeType, ModuleType
from typing import Callable, Optional

from hookprof.identity import FunctionIdentity

MODULE_CODE_NAME = "<module>"
NATIVE_SOURCE_FALLBACK = "[C]"

NameResolver = Callable[[FunctionIdentity], Optional["FunctionName"]]


class FunctionDomain(str, Enum):
    MAIN = "main chunk"
    PYTHON = "Python"
    NATIVE = "native"


@dataclass(frozen=True)
class FunctionName:
    source: str
    domain: FunctionDomain
    name: str | None = None
    kind: str | None = None
    line: int | None = None

    @property
    def location(self) -> str:
        if self.line is None:
            return self.source
        return f"{self.source}:{self.line}"

    def render(self) -> str:
        if self.domain is FunctionDomain.MAIN:
            return f"main chunk of {self.source} ({self.location})"
        parts: list[str] = []
        if self.name is None:
            parts.append("anonymous")
        if self.kind:
            parts.append(self.kind)
        parts.append(f"{self.domain.value} function")
        if self.name is not None:
            parts.append(self.name)
        parts.append(f"({self.location})")
        return " ".join(parts)

    def __str__(self) -> str:
        return self.render()


def _is_anonymous(co_name: str) -> bool:
    # <lambda>, <genexpr>, <listcomp>, ...
    return co_name.startswith("<") and co_name.endswith(">")


def _code_kind(qualname: str) -> str:
    owner, _, _ = qualname.rpartition(".")
    if not owner:
        return "global"
    if owner.endswith("<locals>"):
        return "local"
    return "method"


def resolve_code_name(code: CodeType) -> FunctionName:
    source = code.co_filename
    if code.co_name == MODULE_CODE_NAME:
        return FunctionName(source=source, domain=FunctionDomain.MAIN)
    qualname = getattr(code, "co_qualname", code.co_name)
    name = None if _is_anonymous(code.co_name) else qualname.replace(".<locals>.", ".")
    return FunctionName(
        source=source,
        domain=FunctionDomain.PYTHON,
        name=name,
        kind=_code_kind(qualname),
        line=code.co_firstlineno,
    )


def _native_module(func: object) -> str | None:
    module = getattr(func, "__module__", None)
    if isinstance(module, str) and module:
        return module
    owner = getattr(func, "__objclass__", None)
    if owner is not None:
        return getattr(owner, "__module__", None)
    return None


def _native_kind(func: object) -> str:
    if getattr(func, "__objclass__", None) is not None:
        return "method"
    owner = getattr(func, "__self__", None)
    if owner is None or isinstance(owner, ModuleType):
        return "global"
    return "method"


def resolve_native_name(func: object) -> FunctionName | None:
    name = getattr(func, "__qualname__", None) or getattr(func, "__name__", None)
    if not isinstance(name, str) or not name:
        return None
    module = _native_module(func)
    source = f"<{module}>" if module else NATIVE_SOURCE_FALLBACK
    return FunctionName(
        source=source,
        domain=FunctionDomain.NATIVE,
        name=name,
        kind=_native_kind(func),
    )


def resolve_name(identity: FunctionIdentity) -> FunctionName | None:
    target = identity.target
    if isinstance(target, CodeType):
        return resolve_code_name(target)
    return resolve_native_name(target)


def render_name(name: FunctionName | None) -> str:
    return "" if name is None else name.render()
