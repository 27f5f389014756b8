"""
LabelType — a named, colored, hotkey-bound annotation category of a project.
"""
import re
from dataclasses import dataclass
from typing import Optional

_WHITESPACE_RUN = re.compile(r"\s+")


def derive_key(name: str) -> str:
    """Key suggested for a type name: uppercased, whitespace runs -> '_'."""
    return _WHITESPACE_RUN.sub("_", name.strip()).upper()


@dataclass(frozen=True)
class LabelType:
    """A persisted label type."""

    id: int
    project_id: int
    key: str
    name: str
    color: str              # hex string, e.g. "#EF4444"
    hotkey: str             # single character, stored uppercased
    description: Optional[str] = None
    created_at: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "key": self.key,
            "name": self.name,
            "color": self.color,
            "hotkey": self.hotkey,
            "description": self.description,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class LabelTypeDraft:
    """Fields for a label type that does not exist yet (or a full edit)."""

    key: str
    name: str
    color: str
    hotkey: str
    description: Optional[str] = None

    def normalized(self) -> "LabelTypeDraft":
        """Trimmed copy with key and hotkey uppercased, as stored."""
        return LabelTypeDraft(
            key=self.key.strip().upper(),
            name=self.name.strip(),
            color=self.color.strip(),
            hotkey=self.hotkey.strip().upper(),
            description=self.description or None,
        )

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "name": self.name,
            "color": self.color,
            "hotkey": self.hotkey,
            "description": self.description,
        }
