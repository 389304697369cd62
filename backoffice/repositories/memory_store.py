"""
In-memory document store.

Used for development, tests and single-process deployments. Documents carry
an integer version that increases on every committed write, including across
a delete and re-create of the same id; commits compare
the versions a transaction read against the live ones (compare-and-set) and
either apply every buffered write or none.

The internal lock only makes a commit atomic within this process; acquiring
it is bounded by the configured storage timeout so no call blocks forever.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple

from backoffice.domain.errors import ConflictError, StorageError

from .store import VERSION_FIELD, ChangeKind, Document, DocumentStore, Transaction, matches_filters

logger = logging.getLogger(__name__)


class _InMemoryTransaction(Transaction):
    def __init__(self, store: "InMemoryDocumentStore") -> None:
        super().__init__()
        self._store = store

    def _load(self, collection: str, document_id: str) -> Optional[Document]:
        return self._store.get(collection, document_id)

    def _load_many(self, collection: str, filters: Mapping[str, Any]) -> List[Document]:
        return self._store.query(collection, **filters)


class InMemoryDocumentStore(DocumentStore):
    def __init__(self, timeout_seconds: float = 10.0) -> None:
        super().__init__()
        self._timeout_seconds = timeout_seconds
        self._lock = threading.Lock()
        self._collections: Dict[str, Dict[str, Document]] = {}
        # Last version of each deleted document.
        self._tombstones: Dict[Tuple[str, str], int] = {}

    def _acquire(self) -> None:
        if not self._lock.acquire(timeout=self._timeout_seconds):
            raise StorageError(f"Timed out after {self._timeout_seconds}s waiting for the document store")

    def _begin(self) -> Transaction:
        return _InMemoryTransaction(self)

    def get(self, collection: str, document_id: str) -> Optional[Document]:
        self._acquire()
        try:
            document = self._collections.get(collection, {}).get(document_id)
            return copy.deepcopy(document)
        finally:
            self._lock.release()

    def query(self, collection: str, **filters: Any) -> List[Document]:
        self._acquire()
        try:
            return [
                copy.deepcopy(document)
                for document in self._collections.get(collection, {}).values()
                if matches_filters(document, filters)
            ]
        finally:
            self._lock.release()

    def _commit(self, tx: Transaction) -> None:
        self._acquire()
        try:
            for (collection, document_id), expected in tx.reads.items():
                current = self._collections.get(collection, {}).get(document_id)
                actual = None if current is None else current[VERSION_FIELD]
                if actual != expected:
                    logger.info(
                        "Transaction conflict",
                        extra={
                            "collection": collection,
                            "document_id": document_id,
                            "expected_version": expected,
                            "actual_version": actual,
                        },
                    )
                    raise ConflictError(
                        f"{collection}/{document_id} was modified concurrently "
                        f"(expected version {expected}, found {actual}); reload and retry"
                    )

            for write in tx.writes:
                documents = self._collections.setdefault(write.collection, {})
                key = (write.collection, write.document_id)
                if write.kind is ChangeKind.DELETED:
                    removed = documents.pop(write.document_id, None)
                    if removed is not None:
                        self._tombstones[key] = int(removed[VERSION_FIELD])
                    continue
                current = documents.get(write.document_id)
                if current is None:
                    version = self._tombstones.pop(key, 0) + 1
                else:
                    version = int(current[VERSION_FIELD]) + 1
                documents[write.document_id] = {**copy.deepcopy(write.data), VERSION_FIELD: version}
        finally:
            self._lock.release()


__all__ = ["InMemoryDocumentStore"]
