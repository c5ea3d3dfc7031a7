"""In-memory document store.

Behaves like the hosted store from the services' point of view: documents are
copied on the way in and out, ids are generated on insert, and every call
counts as one metered operation.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from collections import Counter
from typing import Any

from governor.adapters.store.base import AbstractDocumentStore, Document, DocumentNotFoundError


class InMemoryDocumentStore(AbstractDocumentStore):
    """Dict-backed store used for local runs and tests.

    Attributes:
        operation_count: Total number of store calls made so far.
        operations: Per-method call counts (``"get"``, ``"query"``...).
    """

    def __init__(self, *, latency_seconds: float = 0.0) -> None:
        self._collections: dict[str, dict[str, Document]] = {}
        self._latency = latency_seconds
        self._fail_next: Exception | None = None
        self.operations: Counter[str] = Counter()

    @property
    def operation_count(self) -> int:
        return sum(self.operations.values())

    def fail_next(self, exc: Exception) -> None:
        """Make the next store call raise ``exc``."""
        self._fail_next = exc

    async def _begin(self, op: str) -> None:
        self.operations[op] += 1
        if self._latency:
            await asyncio.sleep(self._latency)
        if self._fail_next is not None:
            exc, self._fail_next = self._fail_next, None
            raise exc

    def _docs(self, collection: str) -> dict[str, Document]:
        return self._collections.setdefault(collection, {})

    @staticmethod
    def _out(doc_id: str, data: Document) -> Document:
        return {**copy.deepcopy(data), "id": doc_id}

    async def get(self, collection: str, doc_id: str) -> Document | None:
        await self._begin("get")
        data = self._docs(collection).get(doc_id)
        return None if data is None else self._out(doc_id, data)

    async def add(self, collection: str, data: Document) -> str:
        await self._begin("add")
        doc_id = uuid.uuid4().hex
        self._docs(collection)[doc_id] = copy.deepcopy(data)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        await self._begin("set")
        self._docs(collection)[doc_id] = copy.deepcopy(data)

    async def update(self, collection: str, doc_id: str, fields: Document) -> None:
        await self._begin("update")
        docs = self._docs(collection)
        if doc_id not in docs:
            raise DocumentNotFoundError(collection, doc_id)
        docs[doc_id].update(copy.deepcopy(fields))

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._begin("delete")
        self._docs(collection).pop(doc_id, None)

    async def query(self, collection: str, field: str, value: Any) -> list[Document]:
        await self._begin("query")
        return [
            self._out(doc_id, data)
            for doc_id, data in self._docs(collection).items()
            if data.get(field) == value
        ]

    async def list_all(self, collection: str, *, order_by: str | None = None) -> list[Document]:
        await self._begin("list_all")
        docs = [self._out(doc_id, data) for doc_id, data in self._docs(collection).items()]
        if order_by:
            docs.sort(key=lambda d: (d.get(order_by) is None, d.get(order_by) or ""))
        return docs
