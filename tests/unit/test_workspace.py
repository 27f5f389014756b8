"""
Unit tests for the Workspace: active document tracking and stale responses.
"""
import asyncio

import pytest

from annotator.labeling.errors import RecordNotFound
from annotator.labeling.renderer import SessionState
from annotator.persistence.redis_bridge import RedisPersistenceBridge


class GatedBridge(RedisPersistenceBridge):
    """Holds create_label / save_labels until the test opens the gate."""

    gate: asyncio.Event = None

    async def create_label(self, file_id, label_type_id, start, end, value):
        await self.gate.wait()
        return await super().create_label(file_id, label_type_id, start, end, value)

    async def save_labels(self, file_id, labels):
        await self.gate.wait()
        return await super().save_labels(file_id, labels)


class TestOpenFile:
    def test_open_loads_session(self, workspace, barack_document):
        session = asyncio.run(workspace.open_file(barack_document.id))

        assert session.state == SessionState.LOADED
        assert session.text == barack_document.content
        assert workspace.is_active(barack_document.id)
        assert workspace.session is session

    def test_open_seeds_registry(self, workspace, barack_document):
        session = asyncio.run(workspace.open_file(barack_document.id))
        assert len(session.registry.types) == 5
        assert workspace.registry(barack_document.project_id) is session.registry

    def test_open_missing_file(self, workspace):
        with pytest.raises(RecordNotFound):
            asyncio.run(workspace.open_file(404))

    def test_open_loads_existing_labels(self, workspace, bridge, barack_document, registry, type_id):
        asyncio.run(bridge.create_label(barack_document.id, type_id("LOC"), 21, 26, "Paris"))
        session = asyncio.run(workspace.open_file(barack_document.id))
        assert [lb.value for lb in session.labels] == ["Paris"]

    def test_close(self, workspace, barack_document):
        asyncio.run(workspace.open_file(barack_document.id))
        workspace.close()
        assert workspace.active_file_id is None
        assert workspace.session is None


class TestStaleResponses:
    """Results for a document that is no longer active are dropped."""

    def _two_documents(self, bridge, barack_document):
        other = asyncio.run(bridge.upload_file(1, "other.txt", "Angela Merkel met Macron."))
        return barack_document, other

    def test_create_response_for_switched_file_dropped(self, redis_stub, bridge, registry, barack_document, type_id):
        from annotator.labeling.workspace import Workspace

        first_doc, second_doc = self._two_documents(bridge, barack_document)
        gated = GatedBridge(redis_stub, prefix="test")
        workspace = Workspace(gated)

        async def scenario():
            gated.gate = asyncio.Event()
            first = await workspace.open_file(first_doc.id)
            first.select_span(0, 12)
            pending = asyncio.create_task(first.choose_label_type(type_id("PER")))
            await asyncio.sleep(0)

            await workspace.open_file(second_doc.id)
            gated.gate.set()
            return first, await pending

        first, result = asyncio.run(scenario())

        assert result is None
        assert first.labels == []
        assert workspace.is_active(second_doc.id)
        assert workspace.session.labels == []

    def test_save_response_for_switched_file_dropped(self, redis_stub, bridge, registry, barack_document, type_id):
        from annotator.labeling.workspace import Workspace

        first_doc, second_doc = self._two_documents(bridge, barack_document)
        asyncio.run(bridge.create_label(first_doc.id, type_id("PER"), 0, 12, "Barack Obama"))
        gated = GatedBridge(redis_stub, prefix="test")
        workspace = Workspace(gated)

        async def scenario():
            gated.gate = asyncio.Event()
            first = await workspace.open_file(first_doc.id)
            before = first.labels
            pending = asyncio.create_task(first.save())
            await asyncio.sleep(0)

            await workspace.open_file(second_doc.id)
            gated.gate.set()
            return first, before, await pending

        first, before, saved = asyncio.run(scenario())

        assert saved is False
        assert first.labels == before
