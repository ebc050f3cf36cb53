"""Document store adapter.

Exposes a small document-database surface (get / create / set-with-merge /
delete / list / query-by-field / batched writes) over named collections.
Sub-collections are plain collection paths such as ``contracts/<id>/options``.

``SQLDocumentStore`` keeps every document as a JSON row in the ``documents``
table.  Each public call runs in its own session and transaction under a
bounded timeout, so independent calls may be awaited concurrently.
"""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quotedesk.common.exceptions import PreconditionFailedError, StorageError
from quotedesk.common.logging import get_logger
from quotedesk.config import settings
from quotedesk.db.models.document import DocumentRecord

logger = get_logger("db.store")

T = TypeVar("T")


@dataclass
class StoredDocument:
    id: str
    collection: str
    data: dict[str, Any]
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class _Write:
    kind: str  # create, set, delete
    collection: str
    doc_id: str
    data: dict[str, Any] | None = None
    merge: bool = True
    expected_version: int | None = None


def new_document_id() -> str:
    return uuid.uuid4().hex


class WriteBatch:
    """Collects writes and applies them all-or-nothing on ``commit()``."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._writes: list[_Write] = []

    def __len__(self) -> int:
        return len(self._writes)

    def create(self, collection: str, data: dict[str, Any], doc_id: str | None = None) -> str:
        doc_id = doc_id or new_document_id()
        self._writes.append(_Write("create", collection, doc_id, dict(data)))
        return doc_id

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = True,
        expected_version: int | None = None,
    ) -> None:
        self._writes.append(
            _Write("set", collection, doc_id, dict(data), merge, expected_version)
        )

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes.append(_Write("delete", collection, doc_id))

    async def commit(self) -> None:
        if not self._writes:
            return
        writes, self._writes = self._writes, []
        await self._store.apply(writes)


class DocumentStore(ABC):
    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> StoredDocument | None:
        ...

    @abstractmethod
    async def list_all(self, collection: str) -> list[StoredDocument]:
        ...

    @abstractmethod
    async def query(self, collection: str, field: str, value: str) -> list[StoredDocument]:
        """Documents whose top-level string ``field`` equals ``value``."""
        ...

    @abstractmethod
    async def apply(self, writes: list[_Write]) -> None:
        """Apply writes atomically, in order."""
        ...

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    async def create(
        self, collection: str, data: dict[str, Any], doc_id: str | None = None
    ) -> str:
        batch = self.batch()
        doc_id = batch.create(collection, data, doc_id)
        await batch.commit()
        return doc_id

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = True,
        expected_version: int | None = None,
    ) -> None:
        batch = self.batch()
        batch.set(collection, doc_id, data, merge=merge, expected_version=expected_version)
        await batch.commit()

    async def delete(self, collection: str, doc_id: str) -> None:
        batch = self.batch()
        batch.delete(collection, doc_id)
        await batch.commit()


def _to_stored(record: DocumentRecord) -> StoredDocument:
    return StoredDocument(
        id=record.id,
        collection=record.collection,
        data=dict(record.data or {}),
        version=record.version,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class SQLDocumentStore(DocumentStore):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS

    async def _guard(self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async def _run() -> T:
            async with self._session_factory() as session:
                async with session.begin():
                    return await work(session)

        try:
            return await asyncio.wait_for(_run(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error("%s timed out after %.1fs", operation, self._timeout)
            raise StorageError(f"{operation} timed out after {self._timeout:g}s") from None
        except SQLAlchemyError as e:
            logger.error("%s failed: %s", operation, e)
            raise StorageError(f"{operation} failed: {e}") from e

    async def get(self, collection: str, doc_id: str) -> StoredDocument | None:
        async def _get(session: AsyncSession) -> StoredDocument | None:
            record = await session.get(DocumentRecord, (collection, doc_id))
            return _to_stored(record) if record else None

        return await self._guard(f"get {collection}/{doc_id}", _get)

    async def list_all(self, collection: str) -> list[StoredDocument]:
        async def _list(session: AsyncSession) -> list[StoredDocument]:
            result = await session.execute(
                select(DocumentRecord)
                .where(DocumentRecord.collection == collection)
                .order_by(DocumentRecord.created_at, DocumentRecord.id)
            )
            return [_to_stored(r) for r in result.scalars().all()]

        return await self._guard(f"list {collection}", _list)

    async def query(self, collection: str, field: str, value: str) -> list[StoredDocument]:
        async def _query(session: AsyncSession) -> list[StoredDocument]:
            result = await session.execute(
                select(DocumentRecord).where(
                    DocumentRecord.collection == collection,
                    DocumentRecord.data[field].as_string() == value,
                )
            )
            return [_to_stored(r) for r in result.scalars().all()]

        return await self._guard(f"query {collection} by {field}", _query)

    async def apply(self, writes: list[_Write]) -> None:
        async def _apply(session: AsyncSession) -> None:
            for write in writes:
                if write.kind == "create":
                    await self._create(session, write)
                elif write.kind == "set":
                    await self._set(session, write)
                elif write.kind == "delete":
                    await session.execute(
                        delete(DocumentRecord).where(
                            DocumentRecord.collection == write.collection,
                            DocumentRecord.id == write.doc_id,
                        )
                    )
                else:
                    raise ValueError(f"Unknown write kind: {write.kind}")

        label = writes[0].kind if len(writes) == 1 else f"batch of {len(writes)} writes"
        await self._guard(f"{label} in {writes[0].collection}", _apply)
        logger.debug("Applied %d document write(s)", len(writes))

    @staticmethod
    async def _create(session: AsyncSession, write: _Write) -> None:
        session.add(
            DocumentRecord(
                collection=write.collection,
                id=write.doc_id,
                data=write.data or {},
                version=1,
            )
        )
        await session.flush()

    @staticmethod
    async def _set(session: AsyncSession, write: _Write) -> None:
        record = await session.get(DocumentRecord, (write.collection, write.doc_id))

        if write.expected_version is not None and (
            record is None or record.version != write.expected_version
        ):
            raise PreconditionFailedError(
                f"Document {write.collection}/{write.doc_id} was modified since it was read"
            )

        if record is None:
            await SQLDocumentStore._create(session, write)
            return

        data = {**(record.data or {}), **(write.data or {})} if write.merge else dict(write.data or {})
        result = await session.execute(
            update(DocumentRecord)
            .where(
                DocumentRecord.collection == write.collection,
                DocumentRecord.id == write.doc_id,
                DocumentRecord.version == record.version,
            )
            .values(data=data, version=record.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise PreconditionFailedError(
                f"Document {write.collection}/{write.doc_id} was modified concurrently"
            )
