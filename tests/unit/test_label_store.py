"""
Unit tests for the Label Store.
Tests: derived_render_sequence, add_label, remove_label, replace_all.
"""
import asyncio

import pytest

from annotator.labeling.errors import InvalidLabelType, OffsetOutOfRange, StaleResponse
from annotator.labeling.label_store import LabelStore
from annotator.models.label import Confirmed, Label, Pending
from annotator.models.segment import LabelSegment, PlainSegment
from annotator.persistence.redis_bridge import RedisPersistenceBridge

TEXT = "Barack Obama visited Paris."


def _label(label_id, type_id, start, end, text=TEXT):
    return Label(
        identity=Confirmed(label_id),
        file_id=1,
        label_type_id=type_id,
        start_offset=start,
        end_offset=end,
        value=text[start:end],
    )


def _store(bridge, labels=None, text=TEXT, known_types=(1, 2, 3), is_active=None):
    return LabelStore(
        file_id=1,
        text=text,
        bridge=bridge,
        type_exists=lambda type_id: type_id in known_types,
        is_active=is_active,
        labels=labels,
    )


class FireAndForgetBridge(RedisPersistenceBridge):
    """Backend that accepts creates without returning a row."""

    async def create_label(self, file_id, label_type_id, start, end, value):
        return None


class TestDerivedRenderSequence:
    """Tests for derived_render_sequence()."""

    def test_no_labels_single_plain_segment(self, bridge):
        segments = _store(bridge).derived_render_sequence()
        assert segments == [PlainSegment(0, len(TEXT), TEXT)]

    def test_empty_text_no_segments(self, bridge):
        assert _store(bridge, text="").derived_render_sequence() == []

    def test_label_then_trailing_plain(self, bridge):
        segments = _store(bridge, [_label(1, 1, 0, 12)]).derived_render_sequence()

        assert len(segments) == 2
        assert isinstance(segments[0], LabelSegment)
        assert segments[0].text == "Barack Obama"
        assert segments[1] == PlainSegment(12, 27, " visited Paris.")

    def test_gaps_filled_between_labels(self, bridge):
        labels = [_label(2, 3, 21, 26), _label(1, 1, 0, 12)]
        segments = _store(bridge, labels).derived_render_sequence()

        assert [type(s).__name__ for s in segments] == [
            "LabelSegment", "PlainSegment", "LabelSegment", "PlainSegment",
        ]
        assert "".join(s.text for s in segments) == TEXT

    def test_segment_text_matches_slice(self, bridge):
        labels = [_label(1, 1, 0, 6), _label(2, 1, 7, 12), _label(3, 3, 21, 26)]
        for segment in _store(bridge, labels).derived_render_sequence():
            assert segment.text == TEXT[segment.start:segment.end]

    def test_equal_starts_keep_insertion_order(self, bridge):
        first = _label(10, 1, 0, 6)
        second = _label(5, 2, 0, 12)
        segments = _store(bridge, [first, second]).derived_render_sequence()

        labeled = [s.label for s in segments if isinstance(s, LabelSegment)]
        assert labeled == [first, second]

    def test_overlapping_label_emitted_unclipped(self, bridge):
        outer = _label(1, 1, 0, 12)
        inner = _label(2, 2, 7, 12)
        segments = _store(bridge, [outer, inner]).derived_render_sequence()

        assert segments[0] == LabelSegment(0, 12, "Barack Obama", outer)
        assert segments[1] == LabelSegment(7, 12, "Obama", inner)
        assert segments[2] == PlainSegment(12, 27, " visited Paris.")

    def test_partial_overlap_extends_cursor(self, bridge):
        labels = [_label(1, 1, 0, 12), _label(2, 2, 7, 20)]
        segments = _store(bridge, labels).derived_render_sequence()

        assert segments[-1] == PlainSegment(20, 27, TEXT[20:])


class TestAddLabel:
    """Tests for add_label()."""

    def test_add_appends_confirmed_label(self, bridge):
        store = _store(bridge)
        label = asyncio.run(store.add_label(1, 0, 12))

        assert label.id is not None
        assert label.value == "Barack Obama"
        assert store.labels == [label]
        assert store.get(label.identity) is label
        assert store.get(Pending("local-none")) is None

    def test_insertion_order_not_sorted(self, bridge):
        store = _store(bridge)
        late = asyncio.run(store.add_label(3, 21, 26))
        early = asyncio.run(store.add_label(1, 0, 12))
        assert store.labels == [late, early]

    def test_unknown_type_rejected_without_backend_call(self, bridge, redis_stub):
        store = _store(bridge)
        with pytest.raises(InvalidLabelType) as exc_info:
            asyncio.run(store.add_label(99, 0, 12))

        assert exc_info.value.label_type_id == 99
        assert len(store) == 0
        assert redis_stub.keys_matching("test:seq:labels") == []

    @pytest.mark.parametrize("start,end", [(-1, 5), (5, 5), (10, 3), (20, 28)])
    def test_out_of_range_rejected(self, bridge, start, end):
        store = _store(bridge)
        with pytest.raises(OffsetOutOfRange):
            asyncio.run(store.add_label(1, start, end))
        assert len(store) == 0

    def test_fire_and_forget_backend_yields_pending(self, redis_stub):
        store = _store(FireAndForgetBridge(redis_stub, prefix="test"))
        label = asyncio.run(store.add_label(1, 0, 12))

        assert label.is_pending
        assert label.id is None
        assert isinstance(label.identity, Pending)
        assert store.labels == [label]

    def test_stale_response_not_applied(self, bridge):
        store = _store(bridge, is_active=lambda _file_id: False)
        with pytest.raises(StaleResponse):
            asyncio.run(store.add_label(1, 0, 12))
        assert len(store) == 0


class TestRemoveAndReplace:
    """Tests for remove_label() and replace_all()."""

    def test_add_then_remove_restores_sequence(self, bridge):
        # ids above anything the backend sequence hands out in this test
        store = _store(bridge, [_label(101, 1, 0, 6), _label(102, 3, 21, 26)])
        before = store.derived_render_sequence()
        before_labels = store.labels

        added = asyncio.run(store.add_label(2, 7, 12))
        assert store.derived_render_sequence() != before

        store.remove_label(added.identity)
        assert store.derived_render_sequence() == before
        assert store.labels == before_labels

    def test_remove_by_identity_only_matches_same_generation(self, bridge):
        pending = Label(Pending("local-x"), 1, 1, 0, 6, "Barack")
        store = _store(bridge, [pending, _label(1, 1, 7, 12)])

        assert store.remove_label(Confirmed(2)) is None
        assert store.remove_label(Pending("local-x")) is pending
        assert len(store) == 1

    def test_remove_is_local_only(self, bridge):
        store = _store(bridge)
        label = asyncio.run(store.add_label(1, 0, 12))
        store.remove_label(label.identity)

        stored = asyncio.run(bridge.load_labels(1))
        assert [lb.id for lb in stored] == [label.id]

    def test_replace_all(self, bridge):
        store = _store(bridge, [_label(1, 1, 0, 6)])
        replacement = [_label(7, 2, 7, 12)]
        store.replace_all(replacement)
        assert store.labels == replacement
