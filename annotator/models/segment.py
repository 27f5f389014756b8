"""
Segments — contiguous slices of the rendered document, either plain or
carrying exactly one label.
"""
from dataclasses import dataclass
from typing import Union

from annotator.models.label import Label


@dataclass(frozen=True)
class PlainSegment:
    """Unlabeled text slice [start, end)."""

    start: int
    end: int
    text: str

    def __len__(self) -> int:
        return len(self.text)

    def to_dict(self) -> dict:
        return {"kind": "plain", "start": self.start, "end": self.end, "text": self.text}


@dataclass(frozen=True)
class LabelSegment:
    """Labeled text slice [start, end) for one label."""

    start: int
    end: int
    text: str
    label: Label

    def __len__(self) -> int:
        return len(self.text)

    def to_dict(self) -> dict:
        return {
            "kind": "label",
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "label": self.label.to_dict(),
        }


Segment = Union[PlainSegment, LabelSegment]
