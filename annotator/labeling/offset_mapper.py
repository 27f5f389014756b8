"""
Offset Mapper — translates a selection over the rendered node tree into a
pair of character offsets into the canonical document text.

The rendered text is split across many elements (plain and highlighted), so
an endpoint's intra-node offset only means something relative to its node.
Each endpoint is resolved by walking up to the top-level element that holds
it. An element rendered from a segment starts at that segment's text offset,
so a selection after overlapping labels still maps onto the right text;
elements without a segment start where the previous one ended.
"""
import logging
from typing import List, Optional, Tuple

from annotator.labeling.errors import OffsetOutOfRange
from annotator.models.rendered import (
    RenderedDocument,
    RenderedElement,
    SelectionPoint,
    TextNode,
)

logger = logging.getLogger(__name__)


def _top_level_element(node, container: RenderedDocument) -> Optional[RenderedElement]:
    """Walk up from *node* to the element whose parent is *container*."""
    current = node
    while current is not None and getattr(current, "parent", None) is not container:
        current = getattr(current, "parent", None)
    return current


def _offset_within_element(element: RenderedElement, point: SelectionPoint) -> int:
    """Characters of *element* that precede the endpoint."""
    node = point.node

    if isinstance(node, TextNode):
        before = 0
        for text_node in element.iter_text_nodes():
            if text_node is node:
                return before + min(max(point.offset, 0), len(node.text))
            before += len(text_node.text)
        return before

    # Element endpoint: offset counts child nodes, as in the DOM.
    if node is element or isinstance(node, RenderedElement):
        before = 0
        for text_node in element.iter_text_nodes():
            if _is_descendant(text_node, node):
                break
            before += len(text_node.text)
        children = node.children[: max(point.offset, 0)]
        return before + sum(len(child.text_content) for child in children)

    return 0


def _is_descendant(text_node: TextNode, ancestor: RenderedElement) -> bool:
    current = text_node.parent
    while current is not None:
        if current is ancestor:
            return True
        current = getattr(current, "parent", None)
    return False


def _element_start(rendered: RenderedDocument, target: RenderedElement) -> int:
    """Text offset at which *target* begins."""
    cursor = 0
    for element in rendered.elements:
        start = element.segment.start if element.segment is not None else cursor
        if element is target:
            return start
        cursor = start + len(element.text_content)
    return cursor


def resolve_point(point: SelectionPoint, rendered: RenderedDocument) -> Optional[int]:
    """
    Convert one selection endpoint into an offset into the document text.

    Returns None when the endpoint is not inside *rendered*.
    """
    if point.node is rendered:
        index = max(point.offset, 0)
        if index < len(rendered.elements):
            return _element_start(rendered, rendered.elements[index])
        if rendered.elements:
            last = rendered.elements[-1]
            return _element_start(rendered, last) + len(last.text_content)
        return 0

    target = _top_level_element(point.node, rendered)
    if target is None:
        logger.debug("Selection endpoint outside the rendered document — ignored")
        return None

    if target not in rendered.elements:
        return None
    return _element_start(rendered, target) + _offset_within_element(target, point)


def map_selection_to_offsets(
    anchor: Optional[SelectionPoint],
    focus: Optional[SelectionPoint],
    rendered: RenderedDocument,
) -> Optional[Tuple[int, int]]:
    """
    Map a selection (anchor, focus) to a normalized ``(start, end)`` pair.

    Args:
        anchor: Where the user started the selection.
        focus: Where the user released it (may precede *anchor*).
        rendered: The node tree currently displayed for the document.

    Returns:
        ``(start, end)`` with ``start < end``, or None when nothing usable is
        selected (missing endpoint, collapsed selection, endpoint outside the
        document, whitespace-only content).

    Raises:
        OffsetOutOfRange: If the computed span falls outside the document
            text (e.g. a tree built without segments whose flow is longer
            than the text).
    """
    if anchor is None or focus is None:
        return None

    anchor_offset = resolve_point(anchor, rendered)
    focus_offset = resolve_point(focus, rendered)
    if anchor_offset is None or focus_offset is None:
        return None

    start, end = min(anchor_offset, focus_offset), max(anchor_offset, focus_offset)
    if start == end:
        return None

    length = len(rendered.text)
    if start < 0 or end > length:
        raise OffsetOutOfRange(start, end, length)

    if not rendered.text[start:end].strip():
        logger.debug("Whitespace-only selection [%d,%d) ignored", start, end)
        return None

    return start, end


def spans_to_points(
    spans: List[Tuple[int, int]],
    rendered: RenderedDocument,
) -> List[Tuple[SelectionPoint, SelectionPoint]]:
    """Selection endpoints covering each ``(start, end)`` span (e.g. search hits)."""
    return [
        (rendered.point_at(start, prefer_next=True), rendered.point_at(end, prefer_next=False))
        for start, end in spans
    ]
