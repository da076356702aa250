"""Collection-scoped document client with typed records.

A CollectionService is bound to one collection and one pydantic model. Records
read from the store are validated against the model; a payload that does not
match raises DocumentValidationError instead of leaking a half-typed dict.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from fireaccess.application.services.document_service import ID_FIELD, Document, DocumentService
from fireaccess.domain.exceptions import DocumentValidationError
from fireaccess.shared.telemetry.logging import get_logger

RecordType = TypeVar("RecordType", bound=BaseModel)
logger = get_logger(__name__)


class CollectionService(Generic[RecordType]):
    """Same operations as DocumentService, without the collection argument.

    The model must declare an ``id: str`` field; it is filled from the
    document identifier and never written into the stored payload.
    """

    def __init__(
        self,
        documents: DocumentService,
        collection: str,
        model: type[RecordType],
    ) -> None:
        if ID_FIELD not in model.model_fields:
            raise TypeError(f"{model.__name__} must declare an '{ID_FIELD}' field")
        self._documents = documents
        self._collection = collection
        self._model = model

    @property
    def collection(self) -> str:
        return self._collection

    @property
    def model(self) -> type[RecordType]:
        return self._model

    def _to_record(self, document: Document) -> RecordType:
        try:
            return self._model.model_validate(document)
        except ValidationError as exc:
            logger.warning(
                "Invalid %s payload in %s/%s",
                self._model.__name__,
                self._collection,
                document.get(ID_FIELD),
            )
            raise DocumentValidationError(
                self._collection,
                self._model.__name__,
                exc.errors(include_url=False),
                document.get(ID_FIELD),
            ) from exc

    def _payload(self, data: RecordType | Mapping[str, Any]) -> dict[str, Any]:
        if isinstance(data, BaseModel):
            return data.model_dump(exclude={ID_FIELD})
        return dict(data)

    async def create(
        self,
        data: RecordType | Mapping[str, Any],
        custom_id: str | None = None,
    ) -> RecordType:
        """Create a record; a model instance is stored without its id field."""
        document = await self._documents.create(self._collection, self._payload(data), custom_id)
        return self._to_record(document)

    async def read(self, document_id: str) -> RecordType | None:
        document = await self._documents.read(self._collection, document_id)
        return self._to_record(document) if document is not None else None

    async def update(self, document_id: str, data: Mapping[str, Any]) -> RecordType:
        document = await self._documents.update(self._collection, document_id, data)
        return self._to_record(document)

    async def delete(self, document_id: str) -> None:
        await self._documents.delete(self._collection, document_id)

    async def get_all(self) -> list[RecordType]:
        return [self._to_record(d) for d in await self._documents.get_all(self._collection)]

    async def query(self, constraints: Iterable[Any] = ()) -> list[RecordType]:
        documents = await self._documents.query(self._collection, constraints)
        return [self._to_record(d) for d in documents]
