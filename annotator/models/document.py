"""
Document — an uploaded plain-text file. Its content is the single source of
truth for every label offset and is never mutated while labeling.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class Document:
    """A text file belonging to a project."""

    id: int
    project_id: int
    name: str
    content: str
    file_type: str = "text/plain"
    created_at: str = ""

    def __len__(self) -> int:
        return len(self.content)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "content": self.content,
            "file_type": self.file_type,
            "created_at": self.created_at,
        }
