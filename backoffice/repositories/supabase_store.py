"""
Supabase-backed document store.

Each collection is a table with three columns: `id` (text primary key),
`version` (integer) and `data` (jsonb). Reads go through PostgREST selects.
Commits call the `commit_unit_of_work` PostgreSQL function (see
migrations/001_unit_of_work.sql), which:
- Locks every touched row (FOR UPDATE)
- Checks each recorded read version (NULL meaning "must not exist")
- Applies all buffered inserts, updates and deletes
All in a single database transaction, so a unit of work is never half applied.

Every request is bounded by the client's PostgREST timeout; timeouts and API
failures surface as StorageError.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

import httpx
from postgrest.exceptions import APIError

from backoffice.domain.errors import ConflictError, StorageError

from .store import VERSION_FIELD, ChangeKind, Document, DocumentStore, Transaction

logger = logging.getLogger(__name__)

_COMMIT_FUNCTION: str = "commit_unit_of_work"


def _row_to_document(row: Mapping[str, Any]) -> Document:
    """Convert a Supabase row into a document dict carrying id and version."""

    data = dict(row.get("data") or {})
    data["id"] = str(row["id"])
    data[VERSION_FIELD] = int(row[VERSION_FIELD])
    return data


def _document_payload(document: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in document.items() if key not in ("id", VERSION_FIELD)}


class _SupabaseTransaction(Transaction):
    def __init__(self, store: "SupabaseDocumentStore") -> None:
        super().__init__()
        self._store = store

    def _load(self, collection: str, document_id: str) -> Optional[Document]:
        return self._store.get(collection, document_id)

    def _load_many(self, collection: str, filters: Mapping[str, Any]) -> List[Document]:
        return self._store.query(collection, **filters)


class SupabaseDocumentStore(DocumentStore):
    def __init__(self, client: Any) -> None:
        super().__init__()
        self._client = client

    def _execute(self, action: str, request: Callable[[], Any]) -> Any:
        try:
            response = request()
        except APIError as e:
            raise StorageError(f"Failed to {action}: {e}") from e
        except httpx.TimeoutException as e:
            raise StorageError(f"Timed out trying to {action}") from e
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to {action}: {e}") from e

        error = getattr(response, "error", None)
        if error:
            raise StorageError(f"Failed to {action}: {error}")
        return response

    def _begin(self) -> Transaction:
        return _SupabaseTransaction(self)

    def get(self, collection: str, document_id: str) -> Optional[Document]:
        response = self._execute(
            f"read {collection}/{document_id}",
            lambda: self._client.table(collection)
            .select("*")
            .eq("id", document_id)
            .limit(1)
            .execute(),
        )
        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_document(rows[0])

    def query(self, collection: str, **filters: Any) -> List[Document]:
        def request() -> Any:
            builder = self._client.table(collection).select("*")
            for key, value in filters.items():
                builder = builder.eq(f"data->>{key}", str(value))
            return builder.execute()

        response = self._execute(f"query {collection}", request)
        rows = getattr(response, "data", None) or []
        return [_row_to_document(row) for row in rows]

    def _commit(self, tx: Transaction) -> None:
        reads = [
            {"collection": collection, "id": document_id, "version": version}
            for (collection, document_id), version in tx.reads.items()
        ]
        writes = [
            {
                "collection": write.collection,
                "id": write.document_id,
                "op": "delete" if write.kind is ChangeKind.DELETED else "put",
                "data": None if write.data is None else _document_payload(write.data),
            }
            for write in tx.writes
        ]

        try:
            response = self._client.rpc(_COMMIT_FUNCTION, {"p_reads": reads, "p_writes": writes}).execute()
            result = getattr(response, "data", None) or {}
        except APIError as e:
            # supabase-py raises APIError whenever a PostgreSQL function returns
            # a JSON object, including successful results.
            try:
                result = e.json() if callable(getattr(e, "json", None)) else {}
            except ValueError:
                result = {}
            if "success" not in result:
                raise StorageError(f"Failed to commit unit of work: {e}") from e
        except httpx.TimeoutException as e:
            raise StorageError("Timed out committing unit of work") from e
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to commit unit of work: {e}") from e

        if result.get("success"):
            return
        if result.get("error") == "CONFLICT":
            logger.info("Transaction conflict", extra={"detail": result.get("message")})
            raise ConflictError(result.get("message") or "Concurrent modification detected; reload and retry")
        raise StorageError(f"Failed to commit unit of work: {result.get('message') or result}")


__all__ = ["SupabaseDocumentStore"]
