"""
Label Store — the in-memory, insertion-ordered label set of one open document.

Persistence is delegated to the bridge; the store only mutates its list once
the bridge call has returned, so a failed request leaves it untouched.

The derived render sequence walks the text left to right:
    1. Labels sorted by start offset (stable: ties keep insertion order)
    2. A PlainSegment for any gap before the next label
    3. A LabelSegment for every label, overlapping or not (never clipped)
    4. A trailing PlainSegment up to the end of the text
"""
import logging
from typing import Callable, Iterable, List, Optional

from annotator.labeling.errors import InvalidLabelType, OffsetOutOfRange, StaleResponse
from annotator.models.label import Label, LabelIdentity, Pending
from annotator.models.segment import LabelSegment, PlainSegment, Segment
from annotator.persistence.bridge import PersistenceBridge

logger = logging.getLogger(__name__)


class LabelStore:
    """Ordered label collection for a single file."""

    def __init__(
        self,
        file_id: int,
        text: str,
        bridge: PersistenceBridge,
        type_exists: Callable[[int], bool],
        is_active: Optional[Callable[[int], bool]] = None,
        labels: Optional[Iterable[Label]] = None,
    ) -> None:
        self.file_id = file_id
        self.text = text
        self._bridge = bridge
        self._type_exists = type_exists
        self._is_active = is_active or (lambda _file_id: True)
        self._labels: List[Label] = list(labels or [])

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def labels(self) -> List[Label]:
        return list(self._labels)

    def __len__(self) -> int:
        return len(self._labels)

    def get(self, identity: LabelIdentity) -> Optional[Label]:
        for label in self._labels:
            if label.identity == identity:
                return label
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def check_span(self, start: int, end: int) -> None:
        if not (0 <= start < end <= len(self.text)):
            raise OffsetOutOfRange(start, end, len(self.text))

    async def add_label(
        self,
        label_type_id: int,
        start: int,
        end: int,
        value: Optional[str] = None,
    ) -> Label:
        """
        Create a label through the bridge and append it.

        Args:
            label_type_id: Must exist in the project's registry.
            start: Inclusive start offset.
            end: Exclusive end offset.
            value: Covered text; defaults to ``text[start:end]``.

        Returns:
            The confirmed label, or a pending placeholder when the bridge
            accepted the request without returning a row.

        Raises:
            InvalidLabelType: Unknown type id (nothing is sent).
            OffsetOutOfRange: Span outside the text (nothing is sent).
            StaleResponse: The document stopped being active while the
                request was in flight (the result is not applied).
        """
        if not self._type_exists(label_type_id):
            raise InvalidLabelType(label_type_id)
        self.check_span(start, end)
        if value is None:
            value = self.text[start:end]

        created = await self._bridge.create_label(self.file_id, label_type_id, start, end, value)

        if not self._is_active(self.file_id):
            raise StaleResponse(self.file_id, "create_label")

        if created is None:
            label = Label(
                identity=Pending.new(),
                file_id=self.file_id,
                label_type_id=label_type_id,
                start_offset=start,
                end_offset=end,
                value=value,
            )
            logger.debug("Label %s stored as pending placeholder", label.identity)
        else:
            label = created

        self._labels.append(label)
        return label

    def remove_label(self, identity: LabelIdentity) -> Optional[Label]:
        """Remove locally by identity. No backend call; save to persist."""
        for i, label in enumerate(self._labels):
            if label.identity == identity:
                return self._labels.pop(i)
        return None

    def replace_all(self, labels: Iterable[Label]) -> None:
        self._labels = list(labels)

    # ------------------------------------------------------------------
    # Derived view
    # ------------------------------------------------------------------

    def derived_render_sequence(self) -> List[Segment]:
        """Gap-filled segment sequence for rendering."""
        text = self.text
        if not text:
            return []

        # sorted() is stable, so equal starts keep insertion order
        ordered = sorted(self._labels, key=lambda lb: lb.start_offset)

        segments: List[Segment] = []
        cursor = 0
        for label in ordered:
            if label.start_offset > cursor:
                segments.append(PlainSegment(cursor, label.start_offset, text[cursor:label.start_offset]))
            segments.append(
                LabelSegment(
                    label.start_offset,
                    label.end_offset,
                    text[label.start_offset:label.end_offset],
                    label,
                )
            )
            cursor = label.end_offset

        if cursor < len(text):
            segments.append(PlainSegment(cursor, len(text), text[cursor:]))

        return segments
