"""Document store capability and its in-memory and Redis adapters."""

# purpose: isolate the remote document store behind a small async capability interface
# inputs: document paths, partial records for merge-writes, full records for collection writes
# outputs: point reads, fire-and-forget writes and full-snapshot streams
# status: pilot

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
from contextlib import suppress
from typing import Any, Awaitable, Callable, Optional, Protocol

import redis.asyncio as redis

from .config import StoreConfig
from .errors import ListenerError, MalformedDocument, WriteFailure
from .streams import Stream

_logger = logging.getLogger(__name__)

Record = dict[str, Any]


def settings_path(app_id: str, principal_id: str) -> str:
    return f"artifacts/{app_id}/users/{principal_id}/settings/theme"


def inspections_path(app_id: str) -> str:
    return f"artifacts/{app_id}/public/data/inspections"


def _split(path: str) -> tuple[str, str]:
    parent, _, doc_id = path.rpartition("/")
    return parent, doc_id


class DocumentStore(Protocol):
    async def get_document(self, path: str) -> Optional[Record]: ...

    async def set_document_merge(self, path: str, partial: Record) -> None: ...

    async def subscribe_document(self, path: str) -> Stream[Optional[Record]]: ...

    async def list_collection_once(self, path: str) -> list[Record]: ...

    async def subscribe_collection(self, path: str) -> Stream[list[Record]]: ...

    async def set_collection_document(self, path: str, doc_id: str, record: Record) -> None: ...


class MemoryDocumentStore:
    """In-process document store delivering full snapshots on every change.

    ``fail_writes`` holds paths whose writes are rejected with
    :class:`WriteFailure`; ``writes`` records every applied or attempted write
    as ``(operation, path, payload)``.
    """

    def __init__(self) -> None:
        self._documents: dict[str, Record] = {}
        self._document_watchers: dict[str, set[Stream[Optional[Record]]]] = {}
        self._collection_watchers: dict[str, set[Stream[list[Record]]]] = {}
        self.fail_writes: set[str] = set()
        self.writes: list[tuple[str, str, Record]] = []

    async def get_document(self, path: str) -> Optional[Record]:
        return self._read(path)

    async def set_document_merge(self, path: str, partial: Record) -> None:
        self.writes.append(("merge", path, dict(partial)))
        if path in self.fail_writes:
            raise WriteFailure(path, "write rejected")
        self._documents.setdefault(path, {}).update(copy.deepcopy(partial))
        self._notify(path)

    async def set_collection_document(self, path: str, doc_id: str, record: Record) -> None:
        doc_path = f"{path}/{doc_id}"
        self.writes.append(("set", doc_path, dict(record)))
        if doc_path in self.fail_writes or path in self.fail_writes:
            raise WriteFailure(doc_path, "write rejected")
        self._documents[doc_path] = copy.deepcopy(record)
        self._notify(doc_path)

    async def list_collection_once(self, path: str) -> list[Record]:
        return self._read_collection(path)

    async def subscribe_document(self, path: str) -> Stream[Optional[Record]]:
        watchers = self._document_watchers.setdefault(path, set())
        stream: Stream[Optional[Record]] = Stream(on_close=lambda: watchers.discard(stream))
        watchers.add(stream)
        stream.push(self._read(path))
        return stream

    async def subscribe_collection(self, path: str) -> Stream[list[Record]]:
        watchers = self._collection_watchers.setdefault(path, set())
        stream: Stream[list[Record]] = Stream(on_close=lambda: watchers.discard(stream))
        watchers.add(stream)
        stream.push(self._read_collection(path))
        return stream

    def put_external(self, path: str, record: Record) -> None:
        """Replace a document as another writer would, notifying subscribers."""

        self._documents[path] = copy.deepcopy(record)
        self._notify(path)

    def remove_external(self, path: str) -> None:
        self._documents.pop(path, None)
        self._notify(path)

    def break_listeners(self, path: str, message: str = "listener detached") -> None:
        for stream in list(self._document_watchers.pop(path, ())):
            stream.fail(ListenerError(path, message))
        for stream in list(self._collection_watchers.pop(path, ())):
            stream.fail(ListenerError(path, message))

    def listener_count(self, path: str) -> int:
        return len(self._document_watchers.get(path, ())) + len(self._collection_watchers.get(path, ()))

    def _read(self, path: str) -> Optional[Record]:
        document = self._documents.get(path)
        return copy.deepcopy(document) if document is not None else None

    def _read_collection(self, path: str) -> list[Record]:
        prefix = f"{path}/"
        records = []
        for doc_path in sorted(self._documents):
            if not doc_path.startswith(prefix) or "/" in doc_path[len(prefix):]:
                continue
            records.append({**copy.deepcopy(self._documents[doc_path]), "id": doc_path[len(prefix):]})
        return records

    def _notify(self, path: str) -> None:
        for stream in list(self._document_watchers.get(path, ())):
            stream.push(self._read(path))
        parent, _ = _split(path)
        watchers = self._collection_watchers.get(parent)
        if watchers:
            snapshot = self._read_collection(parent)
            for stream in list(watchers):
                stream.push(copy.deepcopy(snapshot))


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


class RedisDocumentStore:
    """Redis-backed store.

    Each document is a hash whose values are JSON-encoded fields, so ``HSET``
    is a field-level merge. Collection membership lives in a set and every
    write publishes on ``{prefix}:{path}`` for the document and its parent
    collection; subscribers re-read the full document or collection on each
    notification.
    """

    def __init__(self, client: redis.Redis, channel_prefix: str = "changes") -> None:
        self._redis = client
        self._prefix = channel_prefix

    def _doc_key(self, path: str) -> str:
        return f"doc:{path}"

    def _members_key(self, path: str) -> str:
        return f"members:{path}"

    def _channel(self, path: str) -> str:
        return f"{self._prefix}:{path}"

    async def get_document(self, path: str) -> Optional[Record]:
        try:
            raw = await self._redis.hgetall(self._doc_key(path))
        except redis.RedisError as exc:
            raise ListenerError(path, str(exc)) from exc
        if not raw:
            return None
        try:
            return {_decode(field): json.loads(_decode(value)) for field, value in raw.items()}
        except ValueError as exc:
            raise MalformedDocument(path, str(exc)) from exc

    async def set_document_merge(self, path: str, partial: Record) -> None:
        if not partial:
            return
        parent, doc_id = _split(path)
        mapping = {field: json.dumps(value) for field, value in partial.items()}
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.hset(self._doc_key(path), mapping=mapping)
                pipe.sadd(self._members_key(parent), doc_id)
                await pipe.execute()
            await self._publish(path, parent)
        except redis.RedisError as exc:
            raise WriteFailure(path, str(exc)) from exc

    async def set_collection_document(self, path: str, doc_id: str, record: Record) -> None:
        doc_path = f"{path}/{doc_id}"
        mapping = {field: json.dumps(value) for field, value in record.items()}
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(self._doc_key(doc_path))
                if mapping:
                    pipe.hset(self._doc_key(doc_path), mapping=mapping)
                pipe.sadd(self._members_key(path), doc_id)
                await pipe.execute()
            await self._publish(doc_path, path)
        except redis.RedisError as exc:
            raise WriteFailure(doc_path, str(exc)) from exc

    async def list_collection_once(self, path: str) -> list[Record]:
        try:
            members = await self._redis.smembers(self._members_key(path))
        except redis.RedisError as exc:
            raise ListenerError(path, str(exc)) from exc
        ids = sorted(_decode(member) for member in members)
        records = []
        for doc_id in ids:
            doc_path = f"{path}/{doc_id}"
            try:
                document = await self.get_document(doc_path)
            except MalformedDocument as exc:
                _logger.warning("Skipping undecodable document %s: %s", doc_path, exc)
                continue
            if document is None:
                continue
            records.append({**document, "id": doc_id})
        return records

    async def subscribe_document(self, path: str) -> Stream[Optional[Record]]:
        return await self._subscribe(path, lambda: self.get_document(path))

    async def subscribe_collection(self, path: str) -> Stream[list[Record]]:
        return await self._subscribe(path, lambda: self.list_collection_once(path))

    async def _publish(self, path: str, parent: str) -> None:
        await self._redis.publish(self._channel(path), "changed")
        await self._redis.publish(self._channel(parent), "changed")

    async def _subscribe(self, path: str, read: Callable[[], Awaitable[Any]]) -> Stream[Any]:
        channel = self._channel(path)
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(channel)
        except redis.RedisError as exc:
            raise ListenerError(path, str(exc)) from exc
        task: Optional[asyncio.Task] = None
        stream: Stream[Any] = Stream(on_close=lambda: task.cancel() if task else None)
        task = asyncio.create_task(self._pump(path, channel, pubsub, read, stream))
        return stream

    async def _pump(self, path, channel, pubsub, read, stream) -> None:
        # purpose: turn change notifications into full re-read snapshots
        try:
            stream.push(await read())
            while True:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message and message.get("type") == "message":
                    stream.push(await read())
        except ListenerError as exc:
            stream.fail(exc)
        except (redis.RedisError, ValueError) as exc:
            stream.fail(ListenerError(path, str(exc)))
        finally:
            with suppress(Exception):
                await pubsub.unsubscribe(channel)
            with suppress(AttributeError):
                await pubsub.aclose()


def get_redis(url: str) -> redis.Redis:
    if os.getenv("TESTING") == "1":
        from fakeredis import aioredis

        return aioredis.FakeRedis(decode_responses=True)
    return redis.from_url(url, decode_responses=True)


def build_store(config: StoreConfig) -> DocumentStore:
    if config.backend == "memory":
        return MemoryDocumentStore()
    _logger.info("Connecting document store to %s", config.url)
    return RedisDocumentStore(get_redis(config.url), channel_prefix=config.channel_prefix)
