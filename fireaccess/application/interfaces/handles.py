"""Handle interfaces (ports) for the application layer.

Protocols describe what the services need from the store and auth handles.
The REST clients in fireaccess.infrastructure.firebase implement them; tests
substitute in-memory fakes.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from fireaccess.application.dtos.auth import AuthUser, Session
    from fireaccess.infrastructure.firebase._session_events import SessionStream


class IDocumentSnapshot(Protocol):
    id: str

    def to_dict(self) -> dict[str, Any]:
        """Return the document fields (without the id)."""


class IDocumentReference(Protocol):
    @property
    def id(self) -> str:
        """Document identifier."""

    async def get(self) -> IDocumentSnapshot | None:
        """Fetch the document; None if it does not exist."""

    async def set(self, data: dict[str, Any]) -> IDocumentSnapshot:
        """Create or fully replace the document; return it as stored."""

    async def update(self, data: dict[str, Any]) -> bool:
        """Merge fields into an existing document; False if it does not exist."""

    async def delete(self) -> None:
        """Delete the document; no error when it is already gone."""


class IQuery(Protocol):
    def where(self, field: str, op: str, value: Any) -> IQuery:
        """Add a conjunctive filter; ValueError for an unsupported operator."""

    def order_by(self, field: str, direction: str = "ASCENDING") -> IQuery:
        """Add an ordering."""

    def limit(self, n: int) -> IQuery:
        """Cap the number of results."""

    def stream(self) -> AsyncIterator[IDocumentSnapshot]:
        """Run the query."""


class ICollectionReference(Protocol):
    def document(self, document_id: str) -> IDocumentReference:
        """Reference a document by id."""

    async def create(self, document_id: str, data: dict[str, Any]) -> IDocumentSnapshot:
        """Create a document and return it as stored; fails if the id is taken."""

    def query(self) -> IQuery:
        """Start an unfiltered query."""

    def stream(self, page_size: int = 300) -> AsyncIterator[IDocumentSnapshot]:
        """List every document in the collection."""


class IStoreHandle(Protocol):
    """Protocol for the document store handle."""

    def collection(self, collection_id: str) -> ICollectionReference:
        """Reference a collection by name."""

    async def aclose(self) -> None:
        """Release network resources."""


class IAuthHandle(Protocol):
    """Protocol for the identity backend handle. Owns the current session."""

    @property
    def session(self) -> Session | None:
        """Current session, if any."""

    @property
    def current_user(self) -> AuthUser | None:
        """Snapshot of the signed-in user, if any."""

    @property
    def default_request_uri(self) -> str:
        """Redirect URI for provider sign-in."""

    def subscribe(self, callback: Callable[[AuthUser | None], Any]) -> Callable[[], None]:
        """Register a session-change callback; returns unsubscribe."""

    def open_stream(self) -> SessionStream:
        """Open a cancellable stream of session states."""

    async def sign_up(self, email: str, password: str) -> AuthUser:
        """Create an account and sign in."""

    async def sign_in_with_password(self, email: str, password: str) -> AuthUser:
        """Sign in with email/password."""

    async def sign_in_with_idp(self, post_body: str, request_uri: str, provider_id: str) -> AuthUser:
        """Sign in with a provider credential."""

    def sign_out(self) -> bool:
        """Clear the session; False if already signed out."""

    async def send_oob_code(self, request_type: str, email: str | None = None) -> None:
        """Send a verification or password-reset email."""

    async def update_account(self, action: str, **changes: Any) -> AuthUser:
        """Update profile, email or password of the current account."""

    async def reload(self) -> AuthUser:
        """Re-read the current account."""

    async def refresh(self, action: str = "refresh_session") -> AuthUser:
        """Refresh the ID token."""

    async def aclose(self) -> None:
        """Release network resources."""
