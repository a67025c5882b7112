from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


TagShapeLiteral = Literal["empty", "json_array", "comma_list"]
TagStateLiteral = Literal["none", "override", "reprocess", "failed"]


class Dimensions(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: int = Field(gt=0)
    height: int = Field(gt=0)


class TickSummary(BaseModel):
    tick_id: str
    normalized: int = 0
    selected: int = 0
    updated: int = 0
    failed: int = 0
    errors: int = 0
    aborted: bool = False


class FailedFileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    storage: str
    filename_disk: str | None = None
    type: str | None = None
    tags: str | None = None


class TagInspection(BaseModel):
    raw: str | None = None
    shape: TagShapeLiteral
    tokens: list[Any] = Field(default_factory=list)
    state: TagStateLiteral
    width: int | None = None
    height: int | None = None
    cleared: str | None = None
    failed: str
