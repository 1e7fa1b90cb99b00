from __future__ import annotations

import math
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class CableDetails(BaseModel):
    brand: str | None = None
    color: str | None = None
    category: str | None = None
    length_m: float | None = None

    @field_validator("brand", "color", "category", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("length_m", mode="before")
    @classmethod
    def _parse_length(cls, value):
        if value is None or isinstance(value, bool):
            return None
        try:
            length = float(value if isinstance(value, (int, float)) else str(value).strip())
        except (ValueError, OverflowError):
            return None
        # nan, inf and negative lengths are not measurements
        if not math.isfinite(length) or length < 0:
            return None
        return length

    def as_details(self) -> dict | None:
        data = self.model_dump()
        if all(value is None for value in data.values()):
            return None
        return data


class EndpointDevice(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    device_type: str = Field(min_length=1)
    details: dict = Field(default_factory=dict)


class PositionUpdate(BaseModel):
    """Either a drop-zone id (``cell-3-4``) or explicit grid coordinates."""

    drop_zone: str | None = None
    pos_x: int | None = None
    pos_y: int | None = None

    @model_validator(mode="after")
    def _require_target(self):
        if self.drop_zone is None and (self.pos_x is None or self.pos_y is None):
            raise ValueError("drop_zone or both pos_x and pos_y are required")
        return self


class PositionRead(BaseModel):
    id: int
    pos_x: int | None
    pos_y: int | None


class CropArea(BaseModel):
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class AssistantQuery(BaseModel):
    query: str = Field(min_length=1, max_length=1000)

    @field_validator("query")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("query must not be blank")
        return value


class AssistantReply(BaseModel):
    response: str


class ExportOptions(BaseModel):
    format: Literal["png", "jpeg", "pdf", "svg"] = "png"
    quality: Literal["low", "medium", "high", "ultra"] = "high"
    include_background: bool = True
    include_grid: bool = True
    include_labels: bool = True
    include_metadata: bool = True
    theme: Literal["default", "capacity", "grayscale", "negative"] = "default"
    paper_size: Literal["a4", "a3", "letter", "custom"] = "a4"
    custom_width: float | None = Field(default=None, gt=0)  # mm
    custom_height: float | None = Field(default=None, gt=0)  # mm
    file_name: str | None = None
