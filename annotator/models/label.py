"""
Label model — a Label Type assigned to a half-open span of the document text.

Identity is a tagged union: a label is either ``Pending`` (created locally,
no authoritative id yet) or ``Confirmed`` (id assigned by the backend).
Removing or reconciling by identity therefore never hits the wrong
generation of a label.
"""
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

_local_ids = itertools.count(1)


@dataclass(frozen=True)
class Pending:
    """Locally generated identity, awaiting backend confirmation."""

    local_id: str

    @classmethod
    def new(cls) -> "Pending":
        return cls(local_id=f"local-{next(_local_ids)}")

    def __str__(self) -> str:
        return self.local_id


@dataclass(frozen=True)
class Confirmed:
    """Authoritative identity assigned by the backend."""

    server_id: int

    def __str__(self) -> str:
        return str(self.server_id)


LabelIdentity = Union[Pending, Confirmed]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Label:
    """A single span label on one file."""

    identity: LabelIdentity
    file_id: int
    label_type_id: int
    start_offset: int
    end_offset: int
    value: str
    created_by: str = ""
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    @property
    def id(self) -> Optional[int]:
        """Backend id, or None while the label is still pending."""
        if isinstance(self.identity, Confirmed):
            return self.identity.server_id
        return None

    @property
    def is_pending(self) -> bool:
        return isinstance(self.identity, Pending)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "local_id": self.identity.local_id if isinstance(self.identity, Pending) else None,
            "file_id": self.file_id,
            "label_type_id": self.label_type_id,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "value": self.value,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"Label('{self.value}', type={self.label_type_id}, "
            f"[{self.start_offset},{self.end_offset}], {self.identity})"
        )
