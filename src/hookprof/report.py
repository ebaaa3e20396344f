from __future__ import annotations

import json
from enum import Enum
from typing import Callable, Iterable

from hookprof.result import ProfileRecord, ProfilingResult


class SortKey(str, Enum):
    TOTAL = "total"
    SELF = "self"
    CALLS = "calls"
    NAME = "name"


_SORT_KEYS: dict[SortKey, Callable[[ProfileRecord], object]] = {
    SortKey.TOTAL: lambda record: record.total_time,
    SortKey.SELF: lambda record: record.total_self_time,
    SortKey.CALLS: lambda record: record.calls,
    SortKey.NAME: lambda record: record.name,
}


def parse_sort_key(value: SortKey | str) -> SortKey:
    if isinstance(value, SortKey):
        return value
    try:
        return SortKey(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(key.value for key in SortKey)
        raise ValueError(f"sort key must be one of: {allowed}") from None


def rank_records(
    records: Iterable[ProfileRecord],
    *,
    sort: SortKey | str = SortKey.TOTAL,
    descending: bool = True,
) -> list[ProfileRecord]:
    key = _SORT_KEYS[parse_sort_key(sort)]
    # name breaks ties so equal timings render in a stable order
    ordered = sorted(records, key=lambda record: record.name)
    return sorted(ordered, key=key, reverse=descending)


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|")


def render_profile_markdown(
    result: ProfilingResult,
    *,
    sort: SortKey | str = SortKey.TOTAL,
    descending: bool = True,
    max_rows: int = 25,
) -> str:
    lines: list[str] = ["# Profile", ""]
    total = result.total_seconds
    lines.append(f"- functions: `{len(result)}`")
    if total is not None:
        lines.append(f"- total_time_s: `{total:.6f}`")
    lines.append("")
    lines.append("| function | calls | total_s | self_s |")
    lines.append("| --- | ---: | ---: | ---: |")
    rows = rank_records(result.records(), sort=sort, descending=descending)
    limit = max(0, int(max_rows))
    for record in rows[:limit]:
        lines.append(
            "| {name} | {calls} | {total:.6f} | {self_time:.6f} |".format(
                name=_escape_cell(record.name or "?"),
                calls=record.calls,
                total=record.total_time,
                self_time=record.total_self_time,
            )
        )
    if len(rows) > limit:
        lines.append("| ... | ... | ... | ... |")
    lines.append("")
    return "\n".join(lines)


def dump_profile_json(result: ProfilingResult) -> str:
    return json.dumps(result.to_payload(), indent=2, sort_keys=False)
