"""Generic CRUD and query operations against named collections.

Documents are plain dicts. Every returned document carries its identifier
under ``"id"``; payloads written to the store never do.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from fireaccess.application.dtos.query import Limit, OrderBy, Where, coerce_constraints
from fireaccess.application.interfaces.handles import IDocumentSnapshot, IStoreHandle
from fireaccess.application.services.error_normalizer import normalize_store_error
from fireaccess.domain.exceptions import (
    FireAccessException,
    InvalidDocumentError,
    NotFoundError,
    ReadError,
    WriteError,
)
from fireaccess.shared.telemetry.logging import get_logger
from fireaccess.shared.telemetry.tracing import add_span_attributes, traced
from fireaccess.shared.utils.generators import generate_cuid

logger = get_logger(__name__)

Document = dict[str, Any]
ID_FIELD = "id"


@contextmanager
def store_call(
    kind: type[ReadError] | type[WriteError],
    operation: str,
    collection: str,
    document_id: str | None = None,
) -> Iterator[None]:
    """Wrap handle calls so any backend failure surfaces as ReadError/WriteError."""
    try:
        yield
    except FireAccessException:
        raise
    except Exception as exc:
        error = normalize_store_error(exc, kind, operation, collection, document_id)
        logger.warning("%s failed: %s", operation, error.message)
        raise error from exc


def to_document(snapshot: IDocumentSnapshot) -> Document:
    return {**snapshot.to_dict(), ID_FIELD: snapshot.id}


class DocumentService:
    """CRUD and query facade over the store handle, one call per operation.

    Update policy: updating a document that does not exist raises
    NotFoundError; nothing is created.
    """

    def __init__(self, store: IStoreHandle, page_size: int = 300) -> None:
        self._store = store
        self._page_size = page_size

    @traced("fireaccess.documents.create")
    async def create(
        self,
        collection: str,
        data: Mapping[str, Any],
        custom_id: str | None = None,
    ) -> Document:
        """Write ``data`` under a generated id (or ``custom_id``) and return the stored document.

        A custom id overwrites any existing document with that id. The result is
        the document as the store holds it, so it equals a later read.
        """
        payload = dict(data)
        if ID_FIELD in payload:
            raise InvalidDocumentError(collection)
        if custom_id is not None and (not custom_id or "/" in custom_id):
            raise InvalidDocumentError(
                collection, "custom_id", f"Invalid custom id for {collection}: {custom_id!r}"
            )
        coll = self._store.collection(collection)
        document_id = custom_id if custom_id is not None else generate_cuid()
        with store_call(WriteError, "create", collection, document_id):
            if custom_id is not None:
                snapshot = await coll.document(document_id).set(payload)
            else:
                snapshot = await coll.create(document_id, payload)
        logger.debug("Created %s/%s", collection, document_id)
        return to_document(snapshot)

    @traced("fireaccess.documents.read")
    async def read(self, collection: str, document_id: str) -> Document | None:
        """Return the document, or None when it does not exist."""
        with store_call(ReadError, "read", collection, document_id):
            snapshot = await self._store.collection(collection).document(document_id).get()
        if snapshot is None:
            return None
        return to_document(snapshot)

    @traced("fireaccess.documents.update")
    async def update(
        self,
        collection: str,
        document_id: str,
        data: Mapping[str, Any],
    ) -> Document:
        """Merge ``data`` into the document and return the full document as stored.

        Fields absent from ``data`` are untouched. Raises NotFoundError when the
        document does not exist.
        """
        payload = dict(data)
        if ID_FIELD in payload:
            if payload.pop(ID_FIELD) != document_id:
                raise InvalidDocumentError(collection)
        ref = self._store.collection(collection).document(document_id)
        with store_call(WriteError, "update", collection, document_id):
            updated = await ref.update(payload)
            snapshot = await ref.get() if updated else None
        if snapshot is None:
            raise NotFoundError(collection, document_id)
        logger.debug("Updated %s/%s fields=%s", collection, document_id, sorted(payload))
        return to_document(snapshot)

    @traced("fireaccess.documents.delete")
    async def delete(self, collection: str, document_id: str) -> None:
        """Delete the document. Deleting a missing document is not an error."""
        with store_call(WriteError, "delete", collection, document_id):
            await self._store.collection(collection).document(document_id).delete()
        logger.debug("Deleted %s/%s", collection, document_id)

    @traced("fireaccess.documents.get_all")
    async def get_all(self, collection: str) -> list[Document]:
        """Return every document in the collection (store order)."""
        with store_call(ReadError, "get_all", collection):
            documents = [
                to_document(snapshot)
                async for snapshot in self._store.collection(collection).stream(self._page_size)
            ]
        add_span_attributes(count=len(documents))
        return documents

    @traced("fireaccess.documents.query")
    async def query(self, collection: str, constraints: Iterable[Any] = ()) -> list[Document]:
        """Return documents matching every constraint.

        No constraints is the same as get_all. Malformed constraints and
        unsupported operators raise ReadError.
        """
        with store_call(ReadError, "query", collection):
            normalized = coerce_constraints(constraints)
        if not normalized:
            return await self.get_all(collection)
        with store_call(ReadError, "query", collection):
            q = self._store.collection(collection).query()
            for constraint in normalized:
                if isinstance(constraint, Where):
                    q = q.where(constraint.field, constraint.op, constraint.value)
                elif isinstance(constraint, OrderBy):
                    q = q.order_by(constraint.field, constraint.direction)
                elif isinstance(constraint, Limit):
                    q = q.limit(constraint.count)
            documents = [to_document(snapshot) async for snapshot in q.stream()]
        add_span_attributes(count=len(documents))
        return documents
