"""
Workspace — tracks which document is active and opens labeling sessions.

Every session asks the workspace whether its file is still the active one
before applying a backend result; results for any other file are stale and
dropped.
"""
import logging
from typing import Dict, Optional

from annotator.labeling.errors import StaleResponse
from annotator.labeling.metrics import record_stale_response
from annotator.labeling.registry import LabelTypeRegistry
from annotator.labeling.renderer import LabelingSession
from annotator.persistence.bridge import PersistenceBridge

logger = logging.getLogger(__name__)


class Workspace:
    """Holds the active document and per-project label type registries."""

    def __init__(self, bridge: PersistenceBridge) -> None:
        self._bridge = bridge
        self._registries: Dict[int, LabelTypeRegistry] = {}
        self.active_file_id: Optional[int] = None
        self.session: Optional[LabelingSession] = None

    def registry(self, project_id: int) -> LabelTypeRegistry:
        if project_id not in self._registries:
            self._registries[project_id] = LabelTypeRegistry(self._bridge, project_id)
        return self._registries[project_id]

    def is_active(self, file_id: int) -> bool:
        return self.active_file_id == file_id

    async def open_file(self, file_id: int) -> Optional[LabelingSession]:
        """
        Make *file_id* the active document and load it.

        Returns None if another file was opened while this one loaded.
        """
        self.active_file_id = file_id
        self.session = None

        document = await self._bridge.load_file(file_id)
        registry = self.registry(document.project_id)
        await registry.list_types()
        labels = await self._bridge.load_labels(file_id)

        if not self.is_active(file_id):
            stale = StaleResponse(file_id, "open_file")
            record_stale_response(stale.operation)
            logger.warning("%s", stale)
            return None

        session = LabelingSession(self._bridge, registry, is_active=self.is_active)
        session.load(document, labels)
        self.session = session
        return session

    def close(self) -> None:
        self.active_file_id = None
        self.session = None
