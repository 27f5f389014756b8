"""
Typed Pydantic models for the HTTP request/response contracts.

The engine works on frozen dataclasses; these models only exist at the
route boundary, where untrusted JSON comes in and rows go out.
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from annotator.config.constants import DEFAULT_TYPE_COLOR


# =============================================================================
# Label types
# =============================================================================


class LabelTypeCreate(BaseModel):
    """
    Body of POST /label-types.

    ``key`` may be omitted; the route derives it from ``name``. Emptiness and
    uniqueness are left to the registry so its error messages are the ones
    the client sees.
    """

    name: str = ""
    key: Optional[str] = None
    hotkey: str = ""
    color: str = DEFAULT_TYPE_COLOR
    description: Optional[str] = None


class LabelTypePatch(BaseModel):
    """Body of PATCH /label-types/{id}; only the sent fields change."""

    name: Optional[str] = None
    key: Optional[str] = None
    hotkey: Optional[str] = None
    color: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name", "key", "hotkey", "color", mode="before")
    @classmethod
    def reject_null(cls, v):
        # description may be cleared with null; the other fields may not
        if v is None:
            raise ValueError("must not be null")
        return v

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class LabelTypeOut(BaseModel):
    id: int
    project_id: int
    key: str
    name: str
    color: str
    hotkey: str
    description: Optional[str] = None
    created_at: str


# =============================================================================
# Labels
# =============================================================================


class LabelCreate(BaseModel):
    """Body of POST /files/{id}/labels. The value is cut from the file text."""

    label_type_id: int
    start_offset: int = Field(..., ge=0)
    end_offset: int = Field(..., ge=1)

    @model_validator(mode="after")
    def check_span(self) -> "LabelCreate":
        if self.start_offset >= self.end_offset:
            raise ValueError("start_offset must be strictly less than end_offset")
        return self


class LabelIn(BaseModel):
    """One label of a batch save. ``id`` is None for labels not stored yet."""

    id: Optional[int] = Field(None, ge=1)
    label_type_id: int
    start_offset: int = Field(..., ge=0)
    end_offset: int = Field(..., ge=1)
    value: str
    created_by: str = ""
    created_at: Optional[str] = None

    @field_validator("end_offset")
    @classmethod
    def validate_end(cls, v: int, info) -> int:
        start = info.data.get("start_offset")
        if start is not None and v <= start:
            raise ValueError("end_offset must be greater than start_offset")
        return v


class LabelBatch(BaseModel):
    """Body of PUT /files/{id}/labels — the full label set of the file."""

    labels: List[LabelIn]


class LabelOut(BaseModel):
    id: Optional[int] = None
    local_id: Optional[str] = None
    file_id: int
    label_type_id: int
    start_offset: int
    end_offset: int
    value: str
    created_by: str = ""
    created_at: str
    updated_at: str


# =============================================================================
# Files & rendering
# =============================================================================


class DocumentOut(BaseModel):
    id: int
    project_id: int
    name: str
    content: str
    file_type: str
    created_at: str


class SegmentOut(BaseModel):
    kind: str = Field(..., description="'plain' | 'label'")
    start: int
    end: int
    text: str
    label: Optional[LabelOut] = None

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: str) -> str:
        if v not in {"plain", "label"}:
            raise ValueError(f"kind must be 'plain' or 'label', got '{v}'")
        return v


class RenderOut(BaseModel):
    file_id: int
    segments: List[SegmentOut]
    html: Optional[str] = None


class SearchOut(BaseModel):
    query: str
    matches: List[List[int]]
