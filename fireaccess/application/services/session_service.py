"""Session manager: sign-up, sign-in (email or social provider), sign-out,
account maintenance and session change subscriptions.

All session state lives in the auth handle; this service validates
preconditions, resolves providers and turns backend failures into AuthError
with a stable message.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from fireaccess.application.dtos.auth import AuthUser
from fireaccess.application.interfaces.handles import IAuthHandle
from fireaccess.application.services.error_normalizer import normalize_auth_error
from fireaccess.domain.exceptions import (
    ConfigurationError,
    FireAccessException,
    NoSessionError,
    UnsupportedProviderError,
)
from fireaccess.infrastructure.firebase.providers import (
    CredentialExchangeCancelled,
    CredentialSource,
    ProviderId,
    lookup,
)
from fireaccess.shared.telemetry.logging import get_logger
from fireaccess.shared.telemetry.tracing import traced

if TYPE_CHECKING:
    from fireaccess.infrastructure.firebase._session_events import SessionCallback, SessionStream

logger = get_logger(__name__)


@contextmanager
def auth_call(action: str) -> Iterator[None]:
    """Re-raise any backend failure inside the block as a normalized AuthError."""
    try:
        yield
    except FireAccessException:
        raise
    except Exception as exc:
        error = normalize_auth_error(exc, action)
        logger.info("%s failed: %s (%s)", action, error.message, error.code)
        raise error from exc


class SessionService:
    """Authentication operations over the auth handle.

    Args:
        auth: Auth handle; owns the current session and its subscribers.
        credential_source: Host-supplied interactive OAuth flow used by
            login_with_provider. Without one, provider sign-in is a
            configuration error.
    """

    def __init__(
        self,
        auth: IAuthHandle,
        credential_source: CredentialSource | None = None,
    ) -> None:
        self._auth = auth
        self._credential_source = credential_source

    def _require_session(self, action: str) -> None:
        if self._auth.session is None:
            raise NoSessionError(action)

    # ---- sign in / out ----

    @traced("fireaccess.sessions.register_with_email")
    async def register_with_email(self, email: str, password: str) -> AuthUser:
        """Create an email/password account; the new user becomes the current session."""
        with auth_call("register_with_email"):
            return await self._auth.sign_up(email, password)

    @traced("fireaccess.sessions.login_with_email")
    async def login_with_email(self, email: str, password: str) -> AuthUser:
        with auth_call("login_with_email"):
            return await self._auth.sign_in_with_password(email, password)

    @traced("fireaccess.sessions.login_with_provider")
    async def login_with_provider(self, provider_id: str | ProviderId) -> AuthUser:
        """Sign in through a social provider.

        Raises:
            UnsupportedProviderError: provider_id is not a supported provider
                (raised before anything is sent to the backend).
            AuthError: the user cancelled (auth/popup-closed-by-user) or the
                backend rejected the credential.
        """
        action = "login_with_provider"
        strategy = lookup(provider_id)
        if strategy is None:
            raise UnsupportedProviderError(str(getattr(provider_id, "value", provider_id)))
        if self._credential_source is None:
            raise ConfigurationError("No credential source configured for provider sign-in")

        with auth_call(action):
            try:
                credential = await self._credential_source(strategy)
            except CredentialExchangeCancelled:
                credential = None
            if credential is None:
                raise normalize_auth_error("auth/popup-closed-by-user", action)
            try:
                post_body = strategy.post_body(credential)
            except ValueError as exc:
                raise normalize_auth_error("auth/invalid-credential", action) from exc
            return await self._auth.sign_in_with_idp(
                post_body,
                credential.request_uri or self._auth.default_request_uri,
                strategy.idp_id,
            )

    @traced("fireaccess.sessions.logout")
    async def logout(self) -> None:
        """Sign out. Signing out with no session is a no-op."""
        self._auth.sign_out()

    # ---- account maintenance ----

    @traced("fireaccess.sessions.send_verification_email")
    async def send_verification_email(self) -> None:
        self._require_session("send_verification_email")
        with auth_call("send_verification_email"):
            await self._auth.send_oob_code("VERIFY_EMAIL")

    @traced("fireaccess.sessions.reset_password")
    async def reset_password(self, email: str) -> None:
        """Send a password reset email. Does not need a session."""
        with auth_call("reset_password"):
            await self._auth.send_oob_code("PASSWORD_RESET", email=email)

    @traced("fireaccess.sessions.update_profile")
    async def update_profile(
        self,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> None:
        """Update display name and/or photo URL. None leaves a field as is; "" clears it."""
        self._require_session("update_profile")
        if display_name is None and photo_url is None:
            return
        with auth_call("update_profile"):
            await self._auth.update_account(
                "update_profile", displayName=display_name, photoUrl=photo_url
            )

    @traced("fireaccess.sessions.update_email")
    async def update_email(self, new_email: str) -> None:
        self._require_session("update_email")
        with auth_call("update_email"):
            await self._auth.update_account("update_email", email=new_email)

    @traced("fireaccess.sessions.update_password")
    async def update_password(self, new_password: str) -> None:
        self._require_session("update_password")
        with auth_call("update_password"):
            await self._auth.update_account("update_password", password=new_password)

    @traced("fireaccess.sessions.reload_user")
    async def reload_user(self) -> AuthUser:
        """Re-read the account from the backend (e.g. after email verification)."""
        self._require_session("reload_user")
        with auth_call("reload_user"):
            return await self._auth.reload()

    @traced("fireaccess.sessions.refresh_session")
    async def refresh_session(self) -> AuthUser:
        self._require_session("refresh_session")
        with auth_call("refresh_session"):
            return await self._auth.refresh("refresh_session")

    # ---- state ----

    def get_current_user(self) -> AuthUser | None:
        return self._auth.current_user

    def on_session_change(self, callback: SessionCallback) -> Callable[[], None]:
        """Call ``callback(user)`` now and on every session change; returns unsubscribe."""
        return self._auth.subscribe(callback)

    def session_changes(self) -> SessionStream:
        """Open a cancellable async stream of session states, starting with the current one."""
        return self._auth.open_stream()
