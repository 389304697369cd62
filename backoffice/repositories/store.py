"""
Document store contract (persistence boundary).

Every engine operation runs as one unit of work against a DocumentStore:

    with store.transaction() as tx:
        order = tx.get("orders", order_id)
        tx.update("orders", order_id, {...})
        tx.insert("payments", {...})

Transactions are optimistic. Each read records the version of the document it
saw (or that the document was absent). Writes are buffered and only applied at
commit, all together, after every recorded version has been re-checked. A stale
read makes the commit fail with ConflictError and nothing is written; callers
reload and retry. There is no application-level lock on top of this.

After a successful commit the store publishes ChangeEvents to subscribers and
runs the transaction's after-commit callbacks. Failures in either are logged
and swallowed: the data is already committed.
"""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from backoffice.domain.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
DocumentKey = Tuple[str, str]

VERSION_FIELD = "version"

ORDERS = "orders"
PAYMENTS = "payments"
TASKS = "tasks"
CUSTOMERS = "customers"
ACTIVITIES = "activities"


class ChangeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    collection: str
    document_id: str
    kind: ChangeKind
    data: Optional[Mapping[str, Any]]


@dataclass(frozen=True, slots=True)
class BufferedWrite:
    """A pending write; `data` is None for deletes."""

    collection: str
    document_id: str
    kind: ChangeKind
    data: Optional[Document]


def matches_filters(document: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    return all(document.get(key) == value for key, value in filters.items())


class Transaction(ABC):
    """
    Buffered unit of work with read-your-writes semantics.

    Subclasses only supply the raw loads; version tracking, buffering and
    merging of pending writes into reads live here.
    """

    def __init__(self) -> None:
        self._reads: Dict[DocumentKey, Optional[int]] = {}
        self._writes: Dict[DocumentKey, BufferedWrite] = {}
        self._after_commit: List[Callable[[], None]] = []

    @abstractmethod
    def _load(self, collection: str, document_id: str) -> Optional[Document]:
        """Fetch the committed document (including its version) or None."""

    @abstractmethod
    def _load_many(self, collection: str, filters: Mapping[str, Any]) -> List[Document]:
        """Fetch committed documents whose fields equal every filter value."""

    def _record_read(self, key: DocumentKey, document: Optional[Document]) -> None:
        if key not in self._reads:
            self._reads[key] = None if document is None else int(document[VERSION_FIELD])

    def get(self, collection: str, document_id: str) -> Optional[Document]:
        key = (collection, document_id)
        pending = self._writes.get(key)
        if pending is not None:
            return copy.deepcopy(pending.data)
        document = self._load(collection, document_id)
        self._record_read(key, document)
        return document

    def require(self, collection: str, document_id: str, entity: str) -> Document:
        document = self.get(collection, document_id)
        if document is None:
            raise NotFoundError(entity, document_id)
        return document

    def query(self, collection: str, **filters: Any) -> List[Document]:
        results: Dict[str, Document] = {}
        for document in self._load_many(collection, filters):
            key = (collection, str(document["id"]))
            self._record_read(key, document)
            results[key[1]] = document

        for (write_collection, document_id), pending in self._writes.items():
            if write_collection != collection:
                continue
            if pending.data is None or not matches_filters(pending.data, filters):
                results.pop(document_id, None)
            else:
                results[document_id] = copy.deepcopy(pending.data)
        return list(results.values())

    def insert(self, collection: str, document: Document) -> None:
        document_id = str(document["id"])
        key = (collection, document_id)
        if self.get(collection, document_id) is not None:
            raise ValidationError(f"{collection} document already exists: {document_id}")
        self._writes[key] = BufferedWrite(collection, document_id, ChangeKind.CREATED, copy.deepcopy(document))

    def update(self, collection: str, document_id: str, fields: Mapping[str, Any]) -> Document:
        key = (collection, document_id)
        current = self.get(collection, document_id)
        if current is None:
            raise NotFoundError(collection, document_id)
        merged = {**current, **copy.deepcopy(dict(fields)), "id": document_id}
        previous = self._writes.get(key)
        kind = previous.kind if previous is not None else ChangeKind.UPDATED
        self._writes[key] = BufferedWrite(collection, document_id, kind, merged)
        return copy.deepcopy(merged)

    def delete(self, collection: str, document_id: str) -> None:
        key = (collection, document_id)
        if self.get(collection, document_id) is None:
            raise NotFoundError(collection, document_id)
        previous = self._writes.get(key)
        if previous is not None and previous.kind is ChangeKind.CREATED:
            # Created and deleted inside the same unit of work.
            del self._writes[key]
            return
        self._writes[key] = BufferedWrite(collection, document_id, ChangeKind.DELETED, None)

    def after_commit(self, callback: Callable[[], None]) -> None:
        self._after_commit.append(callback)

    @property
    def reads(self) -> Mapping[DocumentKey, Optional[int]]:
        return dict(self._reads)

    @property
    def writes(self) -> List[BufferedWrite]:
        return list(self._writes.values())


class DocumentStore(ABC):
    """Transactional document storage with change subscriptions."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Callable[[ChangeEvent], None]]] = {}

    @abstractmethod
    def _begin(self) -> Transaction:
        ...

    @abstractmethod
    def _commit(self, tx: Transaction) -> None:
        """Validate read versions and apply buffered writes atomically."""

    @abstractmethod
    def get(self, collection: str, document_id: str) -> Optional[Document]:
        """Non-transactional read of a committed document."""

    @abstractmethod
    def query(self, collection: str, **filters: Any) -> List[Document]:
        """Non-transactional read of committed documents matching every filter."""

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        tx = self._begin()
        yield tx
        if tx.writes:
            self._commit(tx)
            self._publish(tx.writes)
        for callback in tx._after_commit:
            try:
                callback()
            except Exception:
                logger.exception("After-commit callback failed", extra={"callback": repr(callback)})

    def subscribe(self, collection: str, callback: Callable[[ChangeEvent], None]) -> Callable[[], None]:
        """Register for change events on a collection; returns an unsubscribe function."""

        self._subscribers.setdefault(collection, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(collection, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def _publish(self, writes: List[BufferedWrite]) -> None:
        for write in writes:
            event = ChangeEvent(
                collection=write.collection,
                document_id=write.document_id,
                kind=write.kind,
                data=copy.deepcopy(write.data),
            )
            for callback in list(self._subscribers.get(write.collection, [])):
                try:
                    callback(event)
                except Exception:
                    logger.exception(
                        "Change subscriber failed",
                        extra={"collection": write.collection, "document_id": write.document_id},
                    )


# Anything repositories can read from: a live transaction or the store itself.
Reader = Union[Transaction, DocumentStore]


__all__ = [
    "Document",
    "Reader",
    "VERSION_FIELD",
    "ORDERS",
    "PAYMENTS",
    "TASKS",
    "CUSTOMERS",
    "ACTIVITIES",
    "ChangeKind",
    "ChangeEvent",
    "BufferedWrite",
    "Transaction",
    "DocumentStore",
]
