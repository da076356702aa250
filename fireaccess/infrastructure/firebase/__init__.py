"""Firestore and Firebase Authentication REST handles, and the sign-in provider registry."""

from fireaccess.infrastructure.firebase._auth_client import AuthRESTClient, IdentityToolkitError
from fireaccess.infrastructure.firebase._rest_client import FirestoreAPIError, FirestoreRESTClient
from fireaccess.infrastructure.firebase._session_events import SessionStream
from fireaccess.infrastructure.firebase.providers import (
    PROVIDERS,
    CredentialExchangeCancelled,
    CredentialSource,
    ProviderCredential,
    ProviderId,
    ProviderStrategy,
    lookup,
)

__all__ = [
    "AuthRESTClient",
    "CredentialExchangeCancelled",
    "CredentialSource",
    "FirestoreAPIError",
    "FirestoreRESTClient",
    "IdentityToolkitError",
    "PROVIDERS",
    "ProviderCredential",
    "ProviderId",
    "ProviderStrategy",
    "SessionStream",
    "lookup",
]
