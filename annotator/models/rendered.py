"""
Rendered node tree — the in-memory equivalent of the DOM produced by the
renderer: a container holding one top-level element per segment, each
element holding the text nodes that display the segment's slice.

Selection endpoints reference nodes of this tree plus an intra-node offset,
exactly like a browser Selection (anchorNode/anchorOffset).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

from annotator.models.segment import LabelSegment, Segment


@dataclass(eq=False)
class TextNode:
    """Leaf node carrying displayed characters."""

    text: str
    parent: Optional["RenderedElement"] = None

    @property
    def text_content(self) -> str:
        return self.text


@dataclass(frozen=True)
class Tooltip:
    """Hover affordance on a labeled element: type name + remove action."""

    type_name: str
    remove_target: str      # str() of the label identity


@dataclass(eq=False)
class RenderedElement:
    """Element node. Top-level elements map 1:1 to segments."""

    segment: Optional[Segment] = None
    children: List[Union[TextNode, "RenderedElement"]] = field(default_factory=list)
    background: Optional[str] = None
    tooltip: Optional[Tooltip] = None
    parent: Optional[Union["RenderedElement", "RenderedDocument"]] = None

    def append(self, child: Union[TextNode, "RenderedElement"]) -> None:
        child.parent = self
        self.children.append(child)

    @property
    def text_content(self) -> str:
        # Tooltips are not part of the flow text (hidden until hover).
        return "".join(child.text_content for child in self.children)

    @property
    def is_labeled(self) -> bool:
        return isinstance(self.segment, LabelSegment)

    def iter_text_nodes(self) -> Iterator[TextNode]:
        for child in self.children:
            if isinstance(child, TextNode):
                yield child
            else:
                yield from child.iter_text_nodes()


Node = Union[TextNode, RenderedElement, "RenderedDocument"]


@dataclass(frozen=True)
class SelectionPoint:
    """One endpoint of a selection: a node plus an intra-node offset."""

    node: Node
    offset: int


@dataclass(eq=False)
class RenderedDocument:
    """The container element the whole document is rendered into."""

    text: str
    elements: List[RenderedElement] = field(default_factory=list)

    def append(self, element: RenderedElement) -> None:
        element.parent = self
        self.elements.append(element)

    @property
    def text_content(self) -> str:
        return "".join(el.text_content for el in self.elements)

    def point_at(self, offset: int, prefer_next: bool = True) -> SelectionPoint:
        """
        Build the selection endpoint a user would produce by placing the
        caret at text *offset*.

        Elements rendered from a segment start at the segment's offset;
        others continue where the previous element ended. At a boundary
        between two elements, *prefer_next* picks the start of the
        following element instead of the end of the previous one.
        """
        cursor = 0
        last: Optional[TextNode] = None
        for element in self.elements:
            cursor = element.segment.start if element.segment is not None else cursor
            for node in element.iter_text_nodes():
                length = len(node.text)
                inside = cursor <= offset < cursor + length if prefer_next else cursor < offset <= cursor + length
                if inside:
                    return SelectionPoint(node, offset - cursor)
                cursor += length
                last = node
        if last is not None and offset == cursor:
            return SelectionPoint(last, len(last.text))
        if offset == 0:
            return SelectionPoint(self, 0)
        raise ValueError(f"offset {offset} is outside the rendered text (length {cursor})")
