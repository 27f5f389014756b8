"""
Interactive Renderer — one labeling session per open document.

State machine:
    EMPTY ──load()──▶ LOADED ──pointer-up with a usable range──▶ SELECTING
    SELECTING ──label type chosen (click or hotkey)──▶ LOADED
    SELECTING ──clear_selection() / empty pointer-up──▶ LOADED

Hotkeys are only honoured in SELECTING and act on the session's explicit
selection. The add and save controls share one in-flight slot: while either
request is pending both are disabled, so a save never snapshots the label
set under a create that has not landed yet.
"""
import html
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from annotator.config.constants import HIGHLIGHT_ALPHA_SUFFIX, UNLABELED_COLOR, UNLABELED_NAME
from annotator.labeling.errors import StaleResponse
from annotator.labeling.label_store import LabelStore
from annotator.labeling.metrics import (
    record_label_created,
    record_label_save,
    record_stale_response,
    timed_bridge_call,
)
from annotator.labeling.offset_mapper import map_selection_to_offsets, spans_to_points
from annotator.labeling.registry import LabelTypeRegistry
from annotator.labeling.search import find_matches
from annotator.models.document import Document
from annotator.models.label import Label, LabelIdentity
from annotator.models.rendered import (
    RenderedDocument,
    RenderedElement,
    SelectionPoint,
    TextNode,
    Tooltip,
)
from annotator.models.segment import LabelSegment, Segment
from annotator.persistence.bridge import PersistenceBridge

logger = logging.getLogger(__name__)

ADD_CONTROL = "add_label"
SAVE_CONTROL = "save"


class SessionState(str, Enum):
    EMPTY = "empty"
    LOADED = "loaded"
    SELECTING = "selecting"


@dataclass(frozen=True)
class Selection:
    """An active, non-empty selection of the document text."""

    start: int
    end: int
    text: str


class LabelingSession:
    """Renders one document and dispatches user actions to its LabelStore."""

    def __init__(
        self,
        bridge: PersistenceBridge,
        registry: LabelTypeRegistry,
        is_active: Optional[Callable[[int], bool]] = None,
    ) -> None:
        self._bridge = bridge
        self.registry = registry
        self._is_active = is_active or (lambda _file_id: True)
        self.state = SessionState.EMPTY
        self.document: Optional[Document] = None
        self.store: Optional[LabelStore] = None
        self.selection: Optional[Selection] = None
        self._in_flight: Optional[str] = None
        self._rendered: Optional[RenderedDocument] = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, document: Document, labels: List[Label]) -> None:
        self.document = document
        self.store = LabelStore(
            file_id=document.id,
            text=document.content,
            bridge=self._bridge,
            type_exists=self.registry.exists,
            is_active=self._is_active,
            labels=labels,
        )
        self.selection = None
        self._rendered = None
        self.state = SessionState.LOADED
        logger.debug("Session loaded file %s (%d labels)", document.id, len(labels))

    @property
    def file_id(self) -> Optional[int]:
        return self.document.id if self.document else None

    @property
    def text(self) -> str:
        return self.document.content if self.document else ""

    @property
    def labels(self) -> List[Label]:
        return self.store.labels if self.store is not None else []

    def is_disabled(self, control: str) -> bool:
        """True while any add or save request is pending."""
        return self._in_flight is not None

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def segments(self) -> List[Segment]:
        return self.store.derived_render_sequence() if self.store is not None else []

    def _type_display(self, label: Label) -> Tuple[str, str]:
        label_type = self.registry.get(label.label_type_id)
        if label_type is None:
            return UNLABELED_NAME, UNLABELED_COLOR
        return label_type.name, label_type.color

    def render(self) -> RenderedDocument:
        """Build the node tree for the current label set."""
        rendered = RenderedDocument(text=self.text)
        for segment in self.segments():
            element = RenderedElement(segment=segment)
            element.append(TextNode(segment.text))
            if isinstance(segment, LabelSegment):
                name, color = self._type_display(segment.label)
                element.background = color + HIGHLIGHT_ALPHA_SUFFIX
                element.tooltip = Tooltip(type_name=name, remove_target=str(segment.label.identity))
            rendered.append(element)
        self._rendered = rendered
        return rendered

    def render_html(self) -> str:
        """Render as HTML; whitespace is preserved with pre-wrap."""
        parts = ['<div class="labeler-text" style="white-space: pre-wrap">']
        for element in self.render().elements:
            segment = element.segment
            text = html.escape(segment.text)
            if isinstance(segment, LabelSegment):
                target = html.escape(element.tooltip.remove_target, quote=True)
                parts.append(
                    f'<span class="segment label" style="background-color: {element.background}" '
                    f'data-label-id="{target}" data-start="{segment.start}" data-end="{segment.end}">'
                    f"{text}"
                    f'<span class="label-tooltip">{html.escape(element.tooltip.type_name)}'
                    f'<button type="button" data-remove-label="{target}">&times;</button></span>'
                    f"</span>"
                )
            else:
                parts.append(f'<span class="segment plain">{text}</span>')
        parts.append("</div>")
        return "".join(parts)

    def hotkey_legend(self) -> List[Tuple[str, str]]:
        return [(t.name, t.hotkey) for t in self.registry.unique_by_key()]

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def on_pointer_up(
        self,
        anchor: Optional[SelectionPoint],
        focus: Optional[SelectionPoint],
    ) -> Optional[Selection]:
        """Map the pointer-up selection; arm the label pane if usable."""
        if self.state == SessionState.EMPTY:
            return None

        rendered = self._rendered or self.render()
        span = map_selection_to_offsets(anchor, focus, rendered)
        if span is None:
            self.clear_selection()
            return None

        start, end = span
        self.selection = Selection(start, end, self.text[start:end])
        self.state = SessionState.SELECTING
        logger.debug("Selecting [%d,%d) on file %s", start, end, self.file_id)
        return self.selection

    def select_span(self, start: int, end: int) -> Optional[Selection]:
        """Select a span programmatically (e.g. a search hit)."""
        if self.store is None:
            return None
        self.store.check_span(start, end)
        rendered = self._rendered or self.render()
        anchor, focus = spans_to_points([(start, end)], rendered)[0]
        return self.on_pointer_up(anchor, focus)

    def clear_selection(self) -> None:
        self.selection = None
        if self.state == SessionState.SELECTING:
            self.state = SessionState.LOADED

    def search(self, query: str, regex: bool = False, exact_match: bool = False) -> List[Tuple[int, int]]:
        return find_matches(self.text, query, regex=regex, exact_match=exact_match)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def choose_label_type(self, label_type_id: int) -> Optional[Label]:
        """
        Apply *label_type_id* to the current selection.

        Returns the new label, or None when nothing is selected, the add
        control is busy, or the response turned out to be stale. Errors
        (unknown type, backend failure) propagate and leave the session
        unchanged, selection included.
        """
        if self.state != SessionState.SELECTING or self.selection is None:
            return None
        if self.is_disabled(ADD_CONTROL):
            logger.debug("add_label ignored: %s already in flight", self._in_flight)
            return None

        selection = self.selection
        self._in_flight = ADD_CONTROL
        try:
            with timed_bridge_call("create_label"):
                label = await self.store.add_label(
                    label_type_id, selection.start, selection.end, selection.text
                )
        except StaleResponse as e:
            record_stale_response(e.operation)
            logger.warning("%s", e)
            return None
        except Exception:
            record_label_created("failed")
            raise
        finally:
            self._in_flight = None

        record_label_created("pending" if label.is_pending else "confirmed")
        self.selection = None
        self.state = SessionState.LOADED
        self._rendered = None
        return label

    async def handle_key_press(self, key: str) -> Optional[Label]:
        """Hotkey handler; matches the stored hotkey exactly."""
        if self.state != SessionState.SELECTING:
            return None
        label_type = self.registry.by_hotkey(key)
        if label_type is None:
            return None
        return await self.choose_label_type(label_type.id)

    def remove_label(self, identity: LabelIdentity) -> Optional[Label]:
        """Local removal; persisted by the next save()."""
        if self.store is None:
            return None
        removed = self.store.remove_label(identity)
        if removed is not None:
            self._rendered = None
        return removed

    async def save(self) -> bool:
        """
        Hand the full label list to the backend, then reload it so pending
        labels pick up their authoritative ids.

        Returns False when an add or save is already in flight, or when the
        response was stale. Backend failures propagate with the label set untouched.
        """
        if self.store is None or self.is_disabled(SAVE_CONTROL):
            return False

        file_id = self.store.file_id
        snapshot = self.store.labels
        self._in_flight = SAVE_CONTROL
        try:
            with timed_bridge_call("save_labels"):
                await self._bridge.save_labels(file_id, snapshot)
                reloaded = await self._bridge.load_labels(file_id)
        except Exception:
            record_label_save("failed")
            raise
        finally:
            self._in_flight = None

        if not self._is_active(file_id):
            record_stale_response("save_labels")
            logger.warning("%s", StaleResponse(file_id, "save_labels"))
            return False

        self.store.replace_all(reloaded)
        self._rendered = None
        record_label_save("ok")
        logger.info("Saved %d label(s) for file %s", len(reloaded), file_id)
        return True
