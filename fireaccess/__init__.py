"""fireaccess: async access layer over Cloud Firestore and Firebase Authentication.

Typical use::

    firebase = get_firebase({"apiKey": ..., "authDomain": ..., "projectId": ...,
                             "storageBucket": ..., "messagingSenderId": ..., "appId": ...})
    user = await firebase.sessions.login_with_email("a@example.com", "secret")
    doc = await firebase.documents.create("notes", {"text": "hello"})
"""

from fireaccess.application.dtos import AuthUser, Limit, OrderBy, Where
from fireaccess.application.services import CollectionService, DocumentService, SessionService
from fireaccess.core.config import FirebaseConfig, Settings, get_settings
from fireaccess.core.lifecycle import (
    FirebaseContext,
    close_firebase,
    get_firebase,
    initialize_firebase,
)
from fireaccess.domain.exceptions import (
    AuthError,
    ConfigurationError,
    DocumentValidationError,
    FireAccessException,
    InvalidDocumentError,
    NoSessionError,
    NotFoundError,
    ReadError,
    StoreError,
    UnsupportedProviderError,
    WriteError,
)
from fireaccess.infrastructure.firebase.providers import (
    CredentialExchangeCancelled,
    ProviderCredential,
    ProviderId,
)

__version__ = "0.1.0"

__all__ = [
    "AuthError",
    "AuthUser",
    "CollectionService",
    "ConfigurationError",
    "CredentialExchangeCancelled",
    "DocumentService",
    "DocumentValidationError",
    "FireAccessException",
    "FirebaseConfig",
    "FirebaseContext",
    "InvalidDocumentError",
    "Limit",
    "NoSessionError",
    "NotFoundError",
    "OrderBy",
    "ProviderCredential",
    "ProviderId",
    "ReadError",
    "SessionService",
    "Settings",
    "StoreError",
    "UnsupportedProviderError",
    "Where",
    "WriteError",
    "close_firebase",
    "get_firebase",
    "get_settings",
    "initialize_firebase",
]
