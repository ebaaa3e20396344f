"""Function identity tokens used as aggregation keys."""

from __future__ import annotations

from types import (
    BuiltinFunctionType,
    ClassMethodDescriptorType,
    CodeType,
    MethodDescriptorType,
    ModuleType,
)

_NATIVE_DESCRIPTORS = (MethodDescriptorType, ClassMethodDescriptorType)


class FunctionIdentity:
    """Opaque handle comparing by the identity of the wrapped function value.

    The handle holds a strong reference so the value's ``id`` cannot be
    recycled while a profiling result still refers to it.
    """

    __slots__ = ("_target",)

    def __init__(self, target: object):
        self._target = target

    @property
    def target(self) -> object:
        return self._target

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FunctionIdentity):
            return NotImplemented
        return self._target is other._target

    def __hash__(self) -> int:
        return id(self._target)

    def __repr__(self) -> str:
        return f"FunctionIdentity({type(self._target).__name__}@{id(self._target):#x})"


def identity_for_code(code: CodeType) -> FunctionIdentity:
    return FunctionIdentity(code)


def native_target(func: object) -> object:
    """Return the stable object behind a native callable.

    Bound builtin methods are created afresh on every attribute access
    (``[].append`` twice gives two objects), so they are folded onto the
    unbound descriptor of their owner type. Python overrides met on the way
    up the MRO (a subclass calling ``super().append``) are skipped.
    """
    if not isinstance(func, BuiltinFunctionType):
        return func
    owner = getattr(func, "__self__", None)
    if owner is None or isinstance(owner, ModuleType):
        return func
    owner_types = (owner, type(owner)) if isinstance(owner, type) else (type(owner),)
    for owner_type in owner_types:
        for klass in owner_type.__mro__:
            descriptor = klass.__dict__.get(func.__name__)
            if isinstance(descriptor, _NATIVE_DESCRIPTORS):
                return descriptor
    return func


def identity_for_native(func: object) -> FunctionIdentity:
    return FunctionIdentity(native_target(func))
