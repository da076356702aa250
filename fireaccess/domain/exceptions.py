"""Exceptions raised by fireaccess.

Every failure surfaced to callers derives from FireAccessException so host
applications can catch one type and branch on error_code. The original
backend failure is always chained as __cause__.
"""

from typing import Any


class FireAccessException(Exception):
    """Base exception for all fireaccess errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional context (operation, collection, document_id, action).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(FireAccessException):
    """Raised when required Firebase configuration is missing at first initialization."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        details = {"missing": missing} if missing else {}
        super().__init__(message, "CONFIGURATION_ERROR", details)


class StoreError(FireAccessException):
    """Base for document store failures (never raised for a missing document on read)."""

    def __init__(
        self,
        message: str,
        error_code: str,
        operation: str,
        collection: str,
        document_id: str | None = None,
        reason: str | None = None,
    ) -> None:
        details: dict[str, Any] = {"operation": operation, "collection": collection}
        if document_id is not None:
            details["document_id"] = document_id
        if reason is not None:
            details["reason"] = reason
        super().__init__(message, error_code, details)


class ReadError(StoreError):
    """Backend fault during a read (get, list, query) or a malformed query."""

    def __init__(
        self,
        operation: str,
        collection: str,
        document_id: str | None = None,
        reason: str | None = None,
    ) -> None:
        target = f"{collection}/{document_id}" if document_id else collection
        super().__init__(
            f"Error during {operation} on {target}: {reason}",
            "READ_ERROR",
            operation,
            collection,
            document_id,
            reason,
        )


class WriteError(StoreError):
    """Backend fault during a write (create, update, delete)."""

    def __init__(
        self,
        operation: str,
        collection: str,
        document_id: str | None = None,
        reason: str | None = None,
    ) -> None:
        target = f"{collection}/{document_id}" if document_id else collection
        super().__init__(
            f"Error during {operation} on {target}: {reason}",
            "WRITE_ERROR",
            operation,
            collection,
            document_id,
            reason,
        )


class NotFoundError(StoreError):
    """Raised by update when the target document does not exist."""

    def __init__(self, collection: str, document_id: str) -> None:
        super().__init__(
            f"Document not found: {collection}/{document_id}",
            "NOT_FOUND",
            "update",
            collection,
            document_id,
        )


class InvalidDocumentError(FireAccessException):
    """Raised when a payload declares its own identifier field, or a custom id is unusable."""

    def __init__(self, collection: str, field: str = "id", message: str | None = None) -> None:
        super().__init__(
            message
            or f"Document data for {collection} must not contain '{field}'; pass custom_id instead",
            "INVALID_DOCUMENT",
            {"collection": collection, "field": field},
        )


class DocumentValidationError(FireAccessException):
    """Raised when a backend payload does not match the collection's record model."""

    def __init__(
        self,
        collection: str,
        model: str,
        validation_errors: list[Any],
        document_id: str | None = None,
    ) -> None:
        details: dict[str, Any] = {
            "collection": collection,
            "model": model,
            "errors": validation_errors,
        }
        if document_id is not None:
            details["document_id"] = document_id
        super().__init__(
            f"Document in {collection} does not match {model}",
            "DOCUMENT_VALIDATION_ERROR",
            details,
        )


class AuthError(FireAccessException):
    """Authentication backend fault, normalized to a stable message.

    Attributes:
        code: Firebase auth code (e.g. 'auth/wrong-password') or the raw backend code.
        action: Session action that failed (e.g. 'login_with_email').
    """

    def __init__(self, code: str, message: str, action: str | None = None) -> None:
        self.code = code
        self.action = action
        details: dict[str, Any] = {"code": code}
        if action is not None:
            details["action"] = action
        super().__init__(message, "AUTH_ERROR", details)


class UnsupportedProviderError(FireAccessException):
    """Raised when a sign-in provider identifier is not in the supported set."""

    def __init__(self, provider_id: str) -> None:
        self.provider_id = provider_id
        super().__init__(
            f"Provider {provider_id} not supported",
            "UNSUPPORTED_PROVIDER",
            {"provider_id": provider_id},
        )


class NoSessionError(FireAccessException):
    """Raised when an operation requires a signed-in user and there is none."""

    def __init__(self, action: str) -> None:
        super().__init__(
            "No user is currently signed in",
            "NO_SESSION",
            {"action": action},
        )
