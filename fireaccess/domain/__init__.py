"""Domain layer: exceptions shared by every fireaccess component.

No dependencies on infrastructure. Used by application and infrastructure layers.
"""

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

__all__ = [
    "AuthError",
    "ConfigurationError",
    "DocumentValidationError",
    "FireAccessException",
    "InvalidDocumentError",
    "NoSessionError",
    "NotFoundError",
    "ReadError",
    "StoreError",
    "UnsupportedProviderError",
    "WriteError",
]
