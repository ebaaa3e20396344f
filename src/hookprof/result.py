from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from hookprof.identity import FunctionIdentity
from hookprof.invariants import never
from hookprof.naming import FunctionName, render_name
from hookprof.profile_clock import ns_to_seconds
from hookprof.schema import ProfileRecordDTO, ProfileReportDTO


@dataclass
class ProfileEntry:
    calls: int = 0
    total_time: int = 0
    total_self_time: int = 0
    recursion_depth: int = 0
    name: FunctionName | None = None
    name_resolved: bool = False

    def assign_name(self, name: FunctionName | None) -> None:
        # first sighting wins; later frames never overwrite it
        if self.name_resolved:
            return
        self.name_resolved = True
        self.name = name


@dataclass(frozen=True)
class ProfileRecord:
    name: str
    calls: int
    total_time: float
    total_self_time: float

    def as_dto(self) -> ProfileRecordDTO:
        return ProfileRecordDTO(
            name=self.name,
            calls=self.calls,
            totalTime=self.total_time,
            totalSelfTime=self.total_self_time,
        )


@dataclass
class ProfilingResult:
    """Per-function statistics of one session plus its overall wall time."""

    entries: dict[FunctionIdentity, ProfileEntry] = field(default_factory=dict)
    total_time: int | None = None

    def entry_for(self, identity: FunctionIdentity) -> ProfileEntry:
        entry = self.entries.get(identity)
        if entry is None:
            entry = ProfileEntry()
            self.entries[identity] = entry
        return entry

    def set_total_time(self, elapsed_ns: int) -> None:
        if self.total_time is not None:
            never(
                "session total time already set",
                total_time=self.total_time,
                elapsed_ns=elapsed_ns,
            )
        self.total_time = max(0, int(elapsed_ns))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[ProfileRecord]:
        return self.records()

    def records(self) -> Iterator[ProfileRecord]:
        for entry in self.entries.values():
            yield ProfileRecord(
                name=render_name(entry.name),
                calls=entry.calls,
                total_time=ns_to_seconds(entry.total_time),
                total_self_time=ns_to_seconds(entry.total_self_time),
            )

    @property
    def total_seconds(self) -> float | None:
        if self.total_time is None:
            return None
        return ns_to_seconds(self.total_time)

    def to_dto(self) -> ProfileReportDTO:
        return ProfileReportDTO(
            entries=[record.as_dto() for record in self.records()],
            totalTime=self.total_seconds,
        )

    def to_payload(self) -> dict[str, object]:
        return self.to_dto().model_dump()
