"""
Redis Persistence Bridge — stores label types, labels and files as JSON rows.

Key scheme
----------
  {prefix}:seq:{kind}                       – INCR id allocation per kind
  {prefix}:project:{project_id}:label_types – hash  type_id → row
  {prefix}:label_type:{type_id}:project     – owning project id
  {prefix}:project:{project_id}:files       – list of file ids (newest first)
  {prefix}:file:{file_id}                   – file row
  {prefix}:file:{file_id}:labels            – hash  label_id → row

Rows are validated on the way back in (see annotator.persistence.rows).
Redis failures surface as PersistenceError; missing records as RecordNotFound.
"""
from __future__ import annotations

import json
import logging
import mimetypes
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

import redis.asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from annotator.config.settings import BRIDGE_TIMEOUT_SECONDS, REDIS_KEY_PREFIX, REDIS_URL
from annotator.labeling.errors import PersistenceError, RecordNotFound
from annotator.models.document import Document
from annotator.models.label import Label, utc_now_iso
from annotator.models.label_type import LabelType, LabelTypeDraft
from annotator.persistence.bridge import PersistenceBridge
from annotator.persistence.rows import (
    document_from_row,
    label_from_row,
    label_to_row,
    label_type_from_row,
)

logger = logging.getLogger(__name__)

# Fields a label-type patch may touch.
PATCHABLE_TYPE_FIELDS = ("key", "name", "color", "hotkey", "description")


@contextmanager
def _backend_errors(operation: str) -> Iterator[None]:
    """Translate Redis failures into PersistenceError for *operation*."""
    try:
        yield
    except RedisError as exc:
        logger.error("Redis %s failed: %s", operation, exc)
        raise PersistenceError(operation, str(exc)) from exc


def _decode_hash(raw: Dict[str, str]) -> List[dict]:
    """Hash values as rows, ordered by integer id."""
    return [json.loads(raw[k]) for k in sorted(raw, key=int)]


class RedisPersistenceBridge(PersistenceBridge):
    """PersistenceBridge backed by a ``redis.asyncio.Redis`` client."""

    def __init__(self, client: Any, prefix: str = REDIS_KEY_PREFIX) -> None:
        self._client = client
        self._prefix = prefix

    def _key(self, *parts: Any) -> str:
        return ":".join([self._prefix, *(str(p) for p in parts)])

    async def _next_id(self, kind: str) -> int:
        return int(await self._client.incr(self._key("seq", kind)))

    # ------------------------------------------------------------------
    # Label types
    # ------------------------------------------------------------------

    async def load_label_types(self, project_id: int) -> List[LabelType]:
        with _backend_errors("load_label_types"):
            raw = await self._client.hgetall(self._key("project", project_id, "label_types"))
        return [label_type_from_row(row) for row in _decode_hash(raw or {})]

    async def create_label_types(
        self, project_id: int, drafts: Sequence[LabelTypeDraft]
    ) -> List[LabelType]:
        created: List[LabelType] = []
        with _backend_errors("create_label_types"):
            for draft in drafts:
                type_id = await self._next_id("label_types")
                row = {
                    "id": type_id,
                    "project_id": project_id,
                    **draft.to_dict(),
                    "created_at": utc_now_iso(),
                }
                await self._client.hset(
                    self._key("project", project_id, "label_types"),
                    str(type_id),
                    json.dumps(row),
                )
                await self._client.set(self._key("label_type", type_id, "project"), str(project_id))
                created.append(label_type_from_row(row))

        logger.info("Created %d label type(s) for project %s", len(created), project_id)
        return created

    async def seed_label_types(
        self, project_id: int, drafts: Sequence[LabelTypeDraft]
    ) -> List[LabelType]:
        """
        Create *drafts* only if the project has no label types yet.

        The emptiness check and the writes run under WATCH / MULTI on the
        project's type hash, so of two concurrent seeders exactly one writes
        and the other gets the stored catalog back.
        """
        hash_key = self._key("project", project_id, "label_types")
        rows: List[dict] = []

        with _backend_errors("seed_label_types"):
            try:
                async with self._client.pipeline(transaction=True) as pipe:
                    await pipe.watch(hash_key)
                    if await pipe.hlen(hash_key):
                        rows = []
                    else:
                        for draft in drafts:
                            rows.append({
                                "id": await self._next_id("label_types"),
                                "project_id": project_id,
                                **draft.to_dict(),
                                "created_at": utc_now_iso(),
                            })
                        pipe.multi()
                        pipe.hset(hash_key, mapping={str(row["id"]): json.dumps(row) for row in rows})
                        for row in rows:
                            pipe.set(self._key("label_type", row["id"], "project"), str(project_id))
                        await pipe.execute()
            except WatchError:
                logger.info("Project %s was seeded concurrently; reloading", project_id)
                rows = []

        if not rows:
            return await self.load_label_types(project_id)

        logger.info("Seeded %d label type(s) for project %s", len(rows), project_id)
        return [label_type_from_row(row) for row in rows]

    async def _owning_project(self, type_id: int) -> int:
        project_id = await self._client.get(self._key("label_type", type_id, "project"))
        if project_id is None:
            raise RecordNotFound("label_type", type_id)
        return int(project_id)

    async def update_label_type(self, type_id: int, patch: dict) -> LabelType:
        with _backend_errors("update_label_type"):
            project_id = await self._owning_project(type_id)
            hash_key = self._key("project", project_id, "label_types")
            raw = await self._client.hget(hash_key, str(type_id))
            if raw is None:
                raise RecordNotFound("label_type", type_id)

            row = json.loads(raw)
            row.update({k: v for k, v in patch.items() if k in PATCHABLE_TYPE_FIELDS})
            await self._client.hset(hash_key, str(type_id), json.dumps(row))

        logger.info("Updated label type %s (fields=%s)", type_id, sorted(patch))
        return label_type_from_row(row)

    async def delete_label_type(self, type_id: int) -> None:
        with _backend_errors("delete_label_type"):
            project_id = await self._owning_project(type_id)
            await self._client.hdel(self._key("project", project_id, "label_types"), str(type_id))
            await self._client.delete(self._key("label_type", type_id, "project"))
        logger.info("Deleted label type %s", type_id)

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    async def load_labels(self, file_id: int) -> List[Label]:
        with _backend_errors("load_labels"):
            raw = await self._client.hgetall(self._key("file", file_id, "labels"))
        return [label_from_row(row) for row in _decode_hash(raw or {})]

    async def create_label(
        self,
        file_id: int,
        label_type_id: int,
        start: int,
        end: int,
        value: str,
    ) -> Optional[Label]:
        timestamp = utc_now_iso()
        with _backend_errors("create_label"):
            label_id = await self._next_id("labels")
            row = {
                "id": label_id,
                "file_id": file_id,
                "label_type_id": label_type_id,
                "start_offset": start,
                "end_offset": end,
                "value": value,
                "created_by": "",
                "created_at": timestamp,
                "updated_at": timestamp,
            }
            await self._client.hset(self._key("file", file_id, "labels"), str(label_id), json.dumps(row))

        logger.info("Created label %s on file %s [%d,%d)", label_id, file_id, start, end)
        return label_from_row(row)

    async def save_labels(self, file_id: int, labels: Sequence[Label]) -> None:
        """
        Upsert every label by id and drop stored rows absent from *labels*.

        *labels* is the full current set of the document, so a label removed
        locally disappears from storage on the next save. Only ids already
        stored for this file are kept; any other id is treated as pending and
        gets a fresh one. Writes and deletions go through one transaction.
        """
        hash_key = self._key("file", file_id, "labels")
        timestamp = utc_now_iso()

        with _backend_errors("save_labels"):
            existing = await self._client.hgetall(hash_key) or {}

            mapping: Dict[str, str] = {}
            for label in labels:
                label_id = label.id
                if label_id is None or str(label_id) not in existing:
                    if label_id is not None:
                        logger.warning("Label id %s is not stored for file %s; assigning a new id", label_id, file_id)
                    label_id = await self._next_id("labels")
                row = label_to_row(label, label_id)
                row["file_id"] = file_id
                row["updated_at"] = timestamp
                mapping[str(label_id)] = json.dumps(row)

            stale_ids = [k for k in existing if k not in mapping]
            async with self._client.pipeline(transaction=True) as pipe:
                if mapping:
                    pipe.hset(hash_key, mapping=mapping)
                if stale_ids:
                    pipe.hdel(hash_key, *stale_ids)
                await pipe.execute()

        logger.info(
            "Saved %d label(s) for file %s (%d removed)", len(mapping), file_id, len(stale_ids)
        )

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def load_file(self, file_id: int) -> Document:
        with _backend_errors("load_file"):
            raw = await self._client.get(self._key("file", file_id))
        if raw is None:
            raise RecordNotFound("file", file_id)
        return document_from_row(json.loads(raw))

    async def upload_file(self, project_id: int, name: str, content: str) -> Document:
        file_type, _ = mimetypes.guess_type(name)
        with _backend_errors("upload_file"):
            file_id = await self._next_id("files")
            row = {
                "id": file_id,
                "project_id": project_id,
                "name": name,
                "content": content,
                "file_type": file_type or "text/plain",
                "created_at": utc_now_iso(),
            }
            await self._client.set(self._key("file", file_id), json.dumps(row))
            await self._client.lpush(self._key("project", project_id, "files"), str(file_id))

        logger.info("Uploaded file %s '%s' (%d chars) to project %s", file_id, name, len(content), project_id)
        return document_from_row(row)

    async def list_files(self, project_id: int) -> List[Document]:
        with _backend_errors("list_files"):
            file_ids = await self._client.lrange(self._key("project", project_id, "files"), 0, -1)
        return [await self.load_file(int(fid)) for fid in file_ids]


def build_redis_bridge(url: Optional[str] = None, prefix: Optional[str] = None) -> RedisPersistenceBridge:
    """
    Build a RedisPersistenceBridge on a new ``redis.asyncio`` client.

    Falls back to REDIS_URL / REDIS_KEY_PREFIX from settings.
    """
    target_url = url or REDIS_URL
    client = aioredis.Redis.from_url(
        target_url,
        decode_responses=True,
        socket_timeout=BRIDGE_TIMEOUT_SECONDS,
    )
    logger.debug("Redis client created for URL: %s", target_url)
    return RedisPersistenceBridge(client, prefix=prefix or REDIS_KEY_PREFIX)
