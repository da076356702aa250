"""Map raw backend failures to stable fireaccess errors.

Raw failures come in several shapes: Firebase auth codes as strings
('auth/wrong-password'), Identity Toolkit REST reasons ('INVALID_PASSWORD'),
exceptions carrying ``code``/``reason``/``status`` attributes, mappings with a
``code`` key, and httpx transport errors. Everything is reduced to an
``auth/...`` code (when one applies) and a user-presentable message.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from fireaccess.domain.exceptions import AuthError, ReadError, StoreError, WriteError

AUTH_ERROR_MESSAGES: Mapping[str, str] = {
    "auth/email-already-in-use": "This email is already registered",
    "auth/invalid-email": "Invalid email format",
    "auth/operation-not-allowed": "Operation not allowed",
    "auth/weak-password": "Password is too weak",
    "auth/user-disabled": "This user account has been disabled",
    "auth/user-not-found": "User not found",
    "auth/wrong-password": "Invalid password",
    "auth/invalid-credential": "Invalid credentials",
    "auth/too-many-requests": "Too many attempts, try again later",
    "auth/requires-recent-login": "Please sign in again to complete this operation",
    "auth/user-token-expired": "Your session has expired, please sign in again",
    "auth/invalid-user-token": "Your session is no longer valid, please sign in again",
    "auth/popup-closed-by-user": "Sign-in was cancelled",
    "auth/network-request-failed": "Network error, check your connection",
}

# Identity Toolkit / Secure Token REST reasons -> Firebase auth codes
REST_REASON_CODES: Mapping[str, str] = {
    "EMAIL_EXISTS": "auth/email-already-in-use",
    "INVALID_EMAIL": "auth/invalid-email",
    "MISSING_EMAIL": "auth/invalid-email",
    "OPERATION_NOT_ALLOWED": "auth/operation-not-allowed",
    "PASSWORD_LOGIN_DISABLED": "auth/operation-not-allowed",
    "WEAK_PASSWORD": "auth/weak-password",
    "USER_DISABLED": "auth/user-disabled",
    "EMAIL_NOT_FOUND": "auth/user-not-found",
    "USER_NOT_FOUND": "auth/user-not-found",
    "INVALID_PASSWORD": "auth/wrong-password",
    "MISSING_PASSWORD": "auth/wrong-password",
    "INVALID_LOGIN_CREDENTIALS": "auth/invalid-credential",
    "INVALID_IDP_RESPONSE": "auth/invalid-credential",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "CREDENTIAL_TOO_OLD_LOGIN_AGAIN": "auth/requires-recent-login",
    "TOKEN_EXPIRED": "auth/user-token-expired",
    "INVALID_ID_TOKEN": "auth/invalid-user-token",
    "INVALID_REFRESH_TOKEN": "auth/invalid-user-token",
    "INVALID_GRANT": "auth/invalid-user-token",
    "USER_SIGNED_OUT": "auth/invalid-user-token",
}


def _canonical_code(code: str) -> str:
    if code in REST_REASON_CODES:
        return REST_REASON_CODES[code]
    if code.startswith("auth/"):
        return code
    candidate = f"auth/{code}"
    return candidate if candidate in AUTH_ERROR_MESSAGES else code


def extract_auth_failure(raw: Any) -> tuple[str, str]:
    """Return (code, backend_message) for any raw auth failure shape."""
    if isinstance(raw, AuthError):
        return raw.code, raw.message
    if isinstance(raw, httpx.TransportError):
        return "auth/network-request-failed", str(raw) or type(raw).__name__
    if isinstance(raw, str):
        return _canonical_code(raw), raw
    if isinstance(raw, Mapping):
        code = str(raw.get("code") or raw.get("reason") or "unknown")
        return _canonical_code(code), str(raw.get("message") or code)
    code = getattr(raw, "code", None) or getattr(raw, "reason", None)
    message = getattr(raw, "message", None) or str(raw)
    if isinstance(code, str) and code:
        return _canonical_code(code), str(message)
    # exceptions whose message is the code, e.g. Exception("auth/user-disabled")
    text = str(raw)
    return _canonical_code(text), text


def auth_message(code: str, backend_message: str) -> str:
    """Stable message for a known code; the backend's own message otherwise."""
    return AUTH_ERROR_MESSAGES.get(code, backend_message)


def normalize_auth_error(raw: Any, action: str | None = None) -> AuthError:
    """Build an AuthError with a stable message from a raw failure."""
    code, backend_message = extract_auth_failure(raw)
    return AuthError(code, auth_message(code, backend_message), action=action)


def describe_store_failure(raw: Any) -> str:
    """One-line reason for a store failure, suitable for logs and error details."""
    status = getattr(raw, "status", None)
    message = getattr(raw, "message", None)
    if isinstance(status, str) and message:
        return f"{status}: {message}"
    if isinstance(raw, httpx.HTTPError):
        return f"{type(raw).__name__}: {raw}"
    return str(raw) or type(raw).__name__


def normalize_store_error(
    raw: Any,
    kind: type[ReadError] | type[WriteError],
    operation: str,
    collection: str,
    document_id: str | None = None,
) -> StoreError:
    """Wrap a raw store failure in ReadError/WriteError with operation context."""
    return kind(operation, collection, document_id, describe_store_failure(raw))
