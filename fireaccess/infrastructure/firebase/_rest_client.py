"""Thin Firestore REST API client (the store handle).

Firestore REST v1 over httpx.AsyncClient so calls never block the event loop.
Requests are authorized, in order of preference, with a service account
(google-auth), the signed-in user's ID token, or just the web API key (for
collections whose security rules allow unauthenticated access).
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any
from urllib.parse import quote

import httpx

from fireaccess.infrastructure.firebase._rest_encoding import (
    _encode_value,
    decode_document,
    encode_document,
)

_FIRESTORE_SCOPE = "https://www.googleapis.com/auth/datastore"
_BASE = "https://firestore.googleapis.com/v1"
_SIMPLE_FIELD = re.compile(r"^[A-Za-z_][A-Za-z_0-9]*$")

TokenProvider = Callable[[], Awaitable[str | None]]


def _get_credentials(key_dict: dict):
    """Return google.oauth2.service_account.Credentials for Firestore."""
    from google.oauth2 import service_account

    return service_account.Credentials.from_service_account_info(
        key_dict, scopes=[_FIRESTORE_SCOPE]
    )


def _get_access_token(credentials) -> str:
    from google.auth.transport.requests import Request

    if not credentials.valid:
        credentials.refresh(Request())
    return credentials.token


class FirestoreAPIError(Exception):
    """Non-success response from the Firestore REST API."""

    def __init__(self, status_code: int, status: str, message: str) -> None:
        self.status_code = status_code
        self.status = status
        self.message = message
        super().__init__(f"{status_code} {status}: {message}")


class DocumentExistsError(FirestoreAPIError):
    """Raised when createDocument returns 409 (document ID already exists)."""

    def __init__(self, message: str = "Document already exists") -> None:
        super().__init__(409, "ALREADY_EXISTS", message)


def _api_error(resp: httpx.Response) -> FirestoreAPIError:
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    error = payload[0].get("error") if isinstance(payload, list) and payload else None
    if error is None and isinstance(payload, dict):
        error = payload.get("error")
    if isinstance(error, dict):
        return FirestoreAPIError(
            resp.status_code,
            str(error.get("status", "UNKNOWN")),
            str(error.get("message", resp.reason_phrase)),
        )
    return FirestoreAPIError(resp.status_code, "UNKNOWN", resp.text or resp.reason_phrase)


async def _request_async(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    body: dict | None = None,
    access_token: str | None = None,
    params: dict[str, Any] | None = None,
) -> Any:
    """Perform async HTTP request to Firestore REST API. 404 returns None."""
    headers = {"Content-Type": "application/json"}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    if method == "GET":
        resp = await client.get(url, headers=headers, params=params)
    elif method == "PATCH":
        resp = await client.patch(url, headers=headers, json=body, params=params)
    elif method == "POST":
        resp = await client.post(url, headers=headers, json=body, params=params)
    elif method == "DELETE":
        resp = await client.delete(url, headers=headers, params=params)
    else:
        raise ValueError(f"Unsupported method: {method!r}")
    if resp.status_code == 404:
        return None
    if resp.status_code == 409:
        raise DocumentExistsError()
    if resp.status_code not in (200, 204):
        raise _api_error(resp)
    if method == "DELETE":
        return {}
    raw = resp.content
    return json.loads(raw.decode()) if raw else {}


def _field_path(name: str) -> str:
    """Quote a top-level field name for updateMask / fieldFilter when needed."""
    if _SIMPLE_FIELD.match(name):
        return name
    escaped = name.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


def _dotted_path(field: str) -> str:
    """Field path for filters and ordering; dots address nested map fields."""
    return ".".join(_field_path(part) for part in field.split("."))


def _doc_id(name: str) -> str:
    return name.split("/")[-1] if name else ""


class DocumentReference:
    """Reference to a single document; matches firestore API style."""

    def __init__(self, client: "FirestoreRESTClient", path: str):
        self._client = client
        self._path = path

    @property
    def id(self) -> str:
        return _doc_id(self._path)

    async def set(self, data: dict[str, Any]) -> DocumentSnapshot:
        """Create or overwrite the document (PATCH with full replace).

        Returns the written fields decoded back, i.e. what a later get() returns.
        """
        body = encode_document(data)
        await self._client._send(self._path, method="PATCH", body=body)
        return DocumentSnapshot(self.id, decode_document(body["fields"]))

    async def update(self, data: dict[str, Any]) -> bool:
        """Merge top-level fields into an existing document.

        Sends an updateMask with the given field names and an exists=true
        precondition, so fields not in ``data`` are untouched and a missing
        document is never created.

        Returns:
            True if the document was updated, False if it does not exist.
        """
        if not data:
            # an empty mask replaces the whole document
            return await self.get() is not None
        params = {
            "updateMask.fieldPaths": [_field_path(k) for k in data],
            "currentDocument.exists": "true",
        }
        out = await self._client._send(
            self._path, method="PATCH", body=encode_document(data), params=params
        )
        return out is not None

    async def get(self) -> DocumentSnapshot | None:
        """Fetch the document; returns None if not found."""
        out = await self._client._send(self._path)
        if not out:
            return None
        return DocumentSnapshot(self.id, decode_document(out.get("fields")))

    async def delete(self) -> None:
        """Delete the document. Idempotent if document is already missing (404)."""
        await self._client._send(self._path, method="DELETE")


class DocumentSnapshot:
    """Snapshot of a document (id + data)."""

    def __init__(self, id_: str, data: dict):
        self.id = id_
        self._data = data

    def to_dict(self) -> dict:
        return self._data


_OP_MAP: dict[str, str] = {
    "==": "EQUAL",
    "!=": "NOT_EQUAL",
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "in": "IN",
    "not-in": "NOT_IN",
    "not_in": "NOT_IN",
    "array_contains": "ARRAY_CONTAINS",
    "array-contains": "ARRAY_CONTAINS",
    "array_contains_any": "ARRAY_CONTAINS_ANY",
    "array-contains-any": "ARRAY_CONTAINS_ANY",
}

_DIRECTIONS = {"asc": "ASCENDING", "desc": "DESCENDING"}


def _filter_body(field: str, op: str, value: Any) -> dict[str, Any]:
    """Build one Firestore filter. Equality with None becomes a unary IS_NULL filter."""
    if value is None and op in ("EQUAL", "NOT_EQUAL"):
        return {
            "unaryFilter": {
                "op": "IS_NULL" if op == "EQUAL" else "IS_NOT_NULL",
                "field": {"fieldPath": _dotted_path(field)},
            }
        }
    return {
        "fieldFilter": {
            "field": {"fieldPath": _dotted_path(field)},
            "op": op,
            "value": _encode_value(value),
        }
    }


class _Query:
    """Fluent query builder for a collection; runs via runQuery (filters ANDed on server)."""

    def __init__(self, client: "FirestoreRESTClient", parent: str, collection_id: str):
        self._client = client
        self._parent = parent
        self._collection_id = collection_id
        self._filters: list[tuple[str, str, Any]] = []
        self._order_by: list[tuple[str, str]] = []
        self._limit: int | None = None

    def where(self, field: str, op: str, value: Any) -> "_Query":
        """Add a filter. Raises ValueError for an operator Firestore does not support."""
        if not isinstance(field, str) or not field:
            raise ValueError(f"Invalid field path: {field!r}")
        native = _OP_MAP.get(op)
        if native is None:
            raise ValueError(f"Unsupported operator: {op!r}")
        self._filters.append((field, native, value))
        return self

    def order_by(self, field: str, direction: str = "ASCENDING") -> "_Query":
        direction = _DIRECTIONS.get(direction.lower(), direction.upper())
        if direction not in ("ASCENDING", "DESCENDING"):
            raise ValueError(f"Unsupported order direction: {direction!r}")
        self._order_by.append((field, direction))
        return self

    def limit(self, n: int) -> "_Query":
        if n < 0:
            raise ValueError(f"Limit must be non-negative, got {n}")
        self._limit = n
        return self

    def to_structured_query(self) -> dict[str, Any]:
        structured: dict[str, Any] = {
            "from": [{"collectionId": self._collection_id}],
        }
        filters = [_filter_body(*f) for f in self._filters]
        if len(filters) == 1:
            structured["where"] = filters[0]
        elif filters:
            structured["where"] = {"compositeFilter": {"op": "AND", "filters": filters}}
        if self._order_by:
            structured["orderBy"] = [
                {"field": {"fieldPath": _dotted_path(field)}, "direction": direction}
                for field, direction in self._order_by
            ]
        if self._limit is not None:
            structured["limit"] = self._limit
        return structured

    async def stream(self) -> AsyncIterator[DocumentSnapshot]:
        """Execute the query and yield document snapshots."""
        body = {"structuredQuery": self.to_structured_query()}
        resp = await self._client._send(f"{self._parent}:runQuery", method="POST", body=body)
        items = resp if isinstance(resp, list) else ([resp] if resp else [])
        for item in items:
            if "document" not in item:
                continue
            doc = item["document"]
            yield DocumentSnapshot(_doc_id(doc.get("name", "")), decode_document(doc.get("fields")))


class CollectionReference:
    """Reference to a collection; matches firestore API style."""

    def __init__(self, client: "FirestoreRESTClient", path: str):
        self._client = client
        self._path = path.rstrip("/")

    @property
    def id(self) -> str:
        return self._path.split("/")[-1]

    def document(self, document_id: str) -> DocumentReference:
        return DocumentReference(self._client, f"{self._path}/{document_id}")

    async def create(self, document_id: str, data: dict[str, Any]) -> DocumentSnapshot:
        """Create a document with the given ID (fail with DocumentExistsError if it exists)."""
        body = encode_document(data)
        await self._client._send(
            self._path,
            method="POST",
            body=body,
            params={"documentId": document_id},
        )
        return DocumentSnapshot(document_id, decode_document(body["fields"]))

    def query(self) -> _Query:
        """Start an unfiltered query. Use .where(), .order_by(), .limit(), then .stream()."""
        parent = self._path.rsplit("/", 1)[0]
        return _Query(self._client, parent, self.id)

    def where(self, field: str, op: str, value: Any) -> _Query:
        """Start a query with a filter. Use .order_by(), .limit(), then .stream()."""
        return self.query().where(field, op, value)

    async def stream(self, page_size: int = 300) -> AsyncIterator[DocumentSnapshot]:
        """List every document in the collection (shallow), following page tokens."""
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"pageSize": page_size}
            if page_token:
                params["pageToken"] = page_token
            out = await self._client._send(self._path, params=params)
            if not out:
                return
            for doc in out.get("documents", []):
                yield DocumentSnapshot(_doc_id(doc.get("name", "")), decode_document(doc.get("fields")))
            page_token = out.get("nextPageToken")
            if not page_token:
                return


class FirestoreRESTClient:
    """Lightweight Firestore client using the REST API."""

    def __init__(
        self,
        project_id: str,
        credentials=None,
        *,
        api_key: str | None = None,
        token_provider: TokenProvider | None = None,
        emulator_host: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._project_id = project_id
        self._credentials = credentials
        self._api_key = api_key
        self._token_provider = token_provider
        self._emulator = bool(emulator_host)
        self._base = f"http://{emulator_host}/v1" if emulator_host else _BASE
        self._prefix = f"projects/{project_id}/databases/(default)/documents"
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None

    @property
    def project_id(self) -> str:
        return self._project_id

    async def aclose(self) -> None:
        """Close the HTTP client only if we created it (do not close injected client)."""
        if self._owns_http:
            await self._http.aclose()

    async def get_token(self) -> str | None:
        """Return a bearer token, or None to fall back to the API key."""
        if self._emulator:
            return "owner"
        if self._credentials is not None:
            return await asyncio.to_thread(_get_access_token, self._credentials)
        if self._token_provider is not None:
            return await self._token_provider()
        return None

    async def _send(
        self,
        path: str,
        method: str = "GET",
        body: dict | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        query = dict(params or {})
        if self._api_key and not self._emulator:
            query["key"] = self._api_key
        return await _request_async(
            self._http,
            f"{self._base}/{quote(path, safe='/():')}",
            method=method,
            body=body,
            access_token=await self.get_token(),
            params=query or None,
        )

    def collection(self, collection_id: str) -> CollectionReference:
        return CollectionReference(self, f"{self._prefix}/{collection_id}")
