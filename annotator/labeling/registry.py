"""
Label Type Registry — the per-project catalog of annotation categories.

Invariants (case-insensitive, within a project):
    - key is unique
    - hotkey is unique

The catalog is seeded with DEFAULT_LABEL_TYPES the first time a project with
no types is listed. The bridge seeds atomically and returns the stored rows,
so ids are always authoritative and concurrent first loads seed only once.
"""
import logging
import re
from typing import Dict, List, Optional

from annotator.config.constants import DEFAULT_LABEL_TYPES
from annotator.config.schemas import HEX_COLOR_PATTERN
from annotator.labeling.errors import RecordNotFound, ValidationError
from annotator.labeling.metrics import record_type_validation_error, timed_bridge_call
from annotator.models.label_type import LabelType, LabelTypeDraft
from annotator.persistence.bridge import PersistenceBridge

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(HEX_COLOR_PATTERN)


class LabelTypeRegistry:
    """Label types of one project, cached after the first load."""

    def __init__(self, bridge: PersistenceBridge, project_id: int) -> None:
        self.project_id = project_id
        self._bridge = bridge
        self._types: Optional[List[LabelType]] = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @property
    def loaded(self) -> bool:
        return self._types is not None

    @property
    def types(self) -> List[LabelType]:
        """Cached catalog (empty until list_types() ran)."""
        return list(self._types or [])

    async def list_types(self, refresh: bool = False) -> List[LabelType]:
        """Current catalog; seeds the default set for an empty project."""
        if self._types is not None and not refresh:
            return self.types

        with timed_bridge_call("load_label_types"):
            types = await self._bridge.load_label_types(self.project_id)

        if not types:
            drafts = [LabelTypeDraft(**fields) for fields in DEFAULT_LABEL_TYPES]
            with timed_bridge_call("seed_label_types"):
                types = await self._bridge.seed_label_types(self.project_id, drafts)
            logger.debug("Project %s has %d label types after seeding", self.project_id, len(types))

        self._types = list(types)
        return self.types

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, type_id: int) -> Optional[LabelType]:
        for label_type in self._types or []:
            if label_type.id == type_id:
                return label_type
        return None

    def exists(self, type_id: int) -> bool:
        return self.get(type_id) is not None

    def by_hotkey(self, hotkey: str) -> Optional[LabelType]:
        """Exact (case-sensitive) hotkey match."""
        for label_type in self._types or []:
            if label_type.hotkey == hotkey:
                return label_type
        return None

    def search(self, query: str) -> List[LabelType]:
        """Types whose name or key contains *query* (case-insensitive)."""
        needle = query.strip().lower()
        if not needle:
            return self.types
        return [
            t for t in self._types or []
            if needle in t.name.lower() or needle in t.key.lower()
        ]

    def unique_by_key(self) -> List[LabelType]:
        """One type per key: later rows win, first-seen order is kept."""
        by_key: Dict[str, LabelType] = {}
        for label_type in self._types or []:
            by_key[label_type.key] = label_type
        return list(by_key.values())

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, draft: LabelTypeDraft, exclude_id: Optional[int] = None) -> None:
        """
        Raise ValidationError for the first rule *draft* breaks.

        Rule order: name, hotkey, key present; hotkey a single character;
        color a hex string; hotkey unused; key unused. Uniqueness ignores the
        type with id *exclude_id* (the one being edited).
        """
        try:
            if not draft.name.strip():
                raise ValidationError("name", "is required")
            if not draft.hotkey.strip():
                raise ValidationError("hotkey", "is required")
            if not draft.key.strip():
                raise ValidationError("key", "is required")
            if len(draft.hotkey.strip()) != 1:
                raise ValidationError("hotkey", "must be a single character")
            if not _HEX_COLOR.match(draft.color.strip()):
                raise ValidationError("color", "must be a hex color")

            others = [t for t in self._types or [] if t.id != exclude_id]
            hotkey = draft.hotkey.strip().lower()
            if any(t.hotkey.lower() == hotkey for t in others):
                raise ValidationError("hotkey", "already in use")
            key = draft.key.strip().lower()
            if any(t.key.lower() == key for t in others):
                raise ValidationError("key", "already in use")
        except ValidationError as e:
            record_type_validation_error(e.field)
            logger.debug("Label type rejected: %s", e)
            raise

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_type(self, draft: LabelTypeDraft) -> LabelType:
        if self._types is None:
            await self.list_types()

        self.validate(draft)
        with timed_bridge_call("create_label_types"):
            created = await self._bridge.create_label_types(self.project_id, [draft.normalized()])

        label_type = created[0]
        self._types = [*self.types, label_type]
        return label_type

    async def update_type(self, type_id: int, patch: dict) -> LabelType:
        if self._types is None:
            await self.list_types()

        current = self.get(type_id)
        if current is None:
            raise RecordNotFound("label_type", type_id)

        # A null only clears the description; elsewhere it means "unchanged"
        patch = {k: v for k, v in patch.items() if v is not None or k == "description"}
        merged = LabelTypeDraft(
            key=patch.get("key", current.key),
            name=patch.get("name", current.name),
            color=patch.get("color", current.color),
            hotkey=patch.get("hotkey", current.hotkey),
            description=patch.get("description", current.description),
        )
        self.validate(merged, exclude_id=type_id)

        normalized = merged.normalized().to_dict()
        changes = {field: normalized[field] for field in patch if field in normalized}
        with timed_bridge_call("update_label_type"):
            updated = await self._bridge.update_label_type(type_id, changes)

        self._types = [updated if t.id == type_id else t for t in self.types]
        return updated

    async def delete_type(self, type_id: int) -> None:
        """Remove unconditionally; labels using the type are left dangling."""
        with timed_bridge_call("delete_label_type"):
            await self._bridge.delete_label_type(type_id)
        if self._types is not None:
            self._types = [t for t in self._types if t.id != type_id]
