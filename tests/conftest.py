from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


import pytest

from hookprof.identity import FunctionIdentity
from hookprof.naming import FunctionDomain, FunctionName
from hookprof.profile_clock import ManualClock


@pytest.fixture(autouse=True)
def _no_leaked_profile_hook():
    yield
    leaked = sys.getprofile()
    sys.setprofile(None)
    assert leaked is None


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def make_identity():
    # the handles keep their targets alive for the length of the test
    def _make(label: str) -> FunctionIdentity:
        return FunctionIdentity(type(label, (), {}))

    return _make


@pytest.fixture
def make_name():
    def _make(label: str, *, line: int = 1) -> FunctionName:
        return FunctionName(
            source="sample.py",
            domain=FunctionDomain.PYTHON,
            name=label,
            kind="global",
            line=line,
        )

    return _make


@pytest.fixture
def static_resolver(make_name):
    def _resolver(identity: FunctionIdentity) -> FunctionName:
        return make_name(identity.target.__name__)

    return _resolver
