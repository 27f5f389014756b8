"""
Persistence Bridge — the only way the labeling engine reaches storage.

One implementation per backend. Implementations translate their own
transport failures into PersistenceError / RecordNotFound; the engine
passes those through to its caller unchanged and never retries.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from annotator.models.document import Document
from annotator.models.label import Label
from annotator.models.label_type import LabelType, LabelTypeDraft


class PersistenceBridge(ABC):
    """Async storage contract consumed by the labeling engine."""

    # --- Label types ---

    @abstractmethod
    async def load_label_types(self, project_id: int) -> List[LabelType]:
        """All label types of a project, in creation order."""

    @abstractmethod
    async def create_label_types(
        self, project_id: int, drafts: Sequence[LabelTypeDraft]
    ) -> List[LabelType]:
        """Bulk create; returns the stored rows with authoritative ids."""

    @abstractmethod
    async def seed_label_types(
        self, project_id: int, drafts: Sequence[LabelTypeDraft]
    ) -> List[LabelType]:
        """
        Atomically create *drafts* if the project has no types yet;
        otherwise create nothing. Returns the project's catalog either way.
        """

    @abstractmethod
    async def update_label_type(self, type_id: int, patch: dict) -> LabelType:
        """Apply *patch* (subset of draft fields) and return the stored row."""

    @abstractmethod
    async def delete_label_type(self, type_id: int) -> None:
        """Remove a label type. Labels referencing it are left alone."""

    # --- Labels ---

    @abstractmethod
    async def load_labels(self, file_id: int) -> List[Label]:
        """All labels of a file, in creation order."""

    @abstractmethod
    async def create_label(
        self,
        file_id: int,
        label_type_id: int,
        start: int,
        end: int,
        value: str,
    ) -> Optional[Label]:
        """
        Create one label. Returns the stored row, or None for a
        fire-and-forget backend that confirms later.
        """

    @abstractmethod
    async def save_labels(self, file_id: int, labels: Sequence[Label]) -> None:
        """
        Store *labels* as the full label set of the file: upsert by id (last
        write wins), drop stored labels not in the set. Pending labels get
        new ids.
        """

    # --- Files ---

    @abstractmethod
    async def load_file(self, file_id: int) -> Document:
        """Load a file; raises RecordNotFound when missing."""

    @abstractmethod
    async def upload_file(self, project_id: int, name: str, content: str) -> Document:
        """Store a new text file for a project."""

    @abstractmethod
    async def list_files(self, project_id: int) -> List[Document]:
        """Files of a project, newest first."""
