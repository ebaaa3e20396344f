from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class ProfileRecordDTO(BaseModel):
    name: str
    calls: int = Field(ge=1)
    totalTime: float = Field(ge=0.0)
    totalSelfTime: float = Field(ge=0.0)


class ProfileReportDTO(BaseModel):
    entries: List[ProfileRecordDTO]
    totalTime: Optional[float] = None
