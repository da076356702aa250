"""Application services: document, collection and session clients, error normalization."""

from fireaccess.application.services.collection_service import CollectionService
from fireaccess.application.services.document_service import Document, DocumentService
from fireaccess.application.services.error_normalizer import (
    AUTH_ERROR_MESSAGES,
    normalize_auth_error,
    normalize_store_error,
)
from fireaccess.application.services.session_service import SessionService

__all__ = [
    "AUTH_ERROR_MESSAGES",
    "CollectionService",
    "Document",
    "DocumentService",
    "SessionService",
    "normalize_auth_error",
    "normalize_store_error",
]
