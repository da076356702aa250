"""Thin Firebase Authentication REST client (the auth handle).

Identity Toolkit v1 (accounts:*) and Secure Token v1 over httpx.AsyncClient.
The handle owns the current Session: every sign-in replaces it, sign-out
clears it, and each change is published to session subscribers.

Failures are raised as IdentityToolkitError carrying the backend reason
(e.g. ``EMAIL_EXISTS``); transport failures surface as httpx errors. Mapping to
user-facing messages is the error normalizer's job, not the handle's.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import timedelta
from typing import Any

import httpx

from fireaccess.application.dtos.auth import AuthUser, Session
from fireaccess.domain.exceptions import NoSessionError
from fireaccess.infrastructure.firebase._session_events import (
    SessionBroadcaster,
    SessionCallback,
    SessionStream,
)
from fireaccess.shared.telemetry.logging import get_logger
from fireaccess.shared.utils.datetime import expires_in, utc_now

logger = get_logger(__name__)

_IDENTITY_BASE = "https://identitytoolkit.googleapis.com/v1"
_SECURETOKEN_BASE = "https://securetoken.googleapis.com/v1"


class IdentityToolkitError(Exception):
    """Error response from Identity Toolkit / Secure Token.

    Attributes:
        reason: Backend reason code (e.g. 'EMAIL_EXISTS', 'WEAK_PASSWORD').
        message: Backend detail text when present, else the reason.
        status_code: HTTP status (0 when the error was embedded in a 200 body).
    """

    def __init__(self, reason: str, message: str | None = None, status_code: int = 400) -> None:
        self.reason = reason
        self.message = message or reason
        self.status_code = status_code
        super().__init__(f"{reason}: {self.message}" if message else reason)


def _parse_error(resp: httpx.Response) -> IdentityToolkitError:
    try:
        payload = resp.json()
    except ValueError:
        return IdentityToolkitError("UNKNOWN", resp.text or resp.reason_phrase, resp.status_code)
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, str):
        # securetoken: {"error": "invalid_grant", "error_description": "..."}
        return IdentityToolkitError(error.upper(), payload.get("error_description"), resp.status_code)
    raw = str((error or {}).get("message") or "UNKNOWN")
    # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
    reason, _, detail = raw.partition(" : ")
    return IdentityToolkitError(reason.strip(), detail.strip() or None, resp.status_code)


def _user_from_payload(data: dict[str, Any], previous: AuthUser | None = None) -> AuthUser:
    """Build an AuthUser from an accounts:* payload, keeping previous values for absent keys."""
    return AuthUser(
        uid=data.get("localId") or (previous.uid if previous else ""),
        email=data.get("email", previous.email if previous else None),
        display_name=data.get("displayName", previous.display_name if previous else None),
        photo_url=data.get("photoUrl", previous.photo_url if previous else None),
        email_verified=bool(
            data.get("emailVerified", previous.email_verified if previous else False)
        ),
    )


class AuthRESTClient:
    """Firebase Authentication client using the REST API."""

    def __init__(
        self,
        api_key: str,
        *,
        auth_domain: str | None = None,
        emulator_host: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        refresh_margin_seconds: int = 60,
    ) -> None:
        self._api_key = api_key
        self._auth_domain = auth_domain
        if emulator_host:
            self._identity_base = f"http://{emulator_host}/identitytoolkit.googleapis.com/v1"
            self._token_base = f"http://{emulator_host}/securetoken.googleapis.com/v1"
        else:
            self._identity_base = _IDENTITY_BASE
            self._token_base = _SECURETOKEN_BASE
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None
        self._refresh_margin = timedelta(seconds=refresh_margin_seconds)
        self._refresh_lock = asyncio.Lock()
        self._session: Session | None = None
        self._events = SessionBroadcaster(lambda: self.current_user)

    # ---- state ----

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def current_user(self) -> AuthUser | None:
        return self._session.user if self._session else None

    @property
    def default_request_uri(self) -> str:
        """Redirect URI reported to signInWithIdp when the credential source gives none."""
        return f"https://{self._auth_domain}/__/auth/handler" if self._auth_domain else "http://localhost"

    def subscribe(self, callback: SessionCallback) -> Callable[[], None]:
        return self._events.subscribe(callback)

    def open_stream(self) -> SessionStream:
        return self._events.open_stream()

    def _set_session(self, session: Session | None) -> None:
        self._session = session
        self._events.publish(session.user if session else None)

    def _require_session(self, action: str) -> Session:
        if self._session is None:
            raise NoSessionError(action)
        return self._session

    def _session_from_tokens(
        self, data: dict[str, Any], user: AuthUser, provider_id: str
    ) -> Session:
        return Session(
            user=user,
            id_token=data["idToken"],
            refresh_token=data["refreshToken"],
            expires_at=expires_in(data.get("expiresIn", 3600)),
            provider_id=provider_id,
        )

    # ---- transport ----

    async def _post(
        self, url: str, *, json: dict[str, Any] | None = None, data: dict[str, str] | None = None
    ) -> dict[str, Any]:
        resp = await self._http.post(url, params={"key": self._api_key}, json=json, data=data)
        if resp.status_code != 200:
            raise _parse_error(resp)
        return resp.json()

    async def _accounts(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._post(f"{self._identity_base}/accounts:{endpoint}", json=body)

    async def aclose(self) -> None:
        """Close the HTTP client only if we created it (do not close injected client)."""
        if self._owns_http:
            await self._http.aclose()

    # ---- sign in / out ----

    async def sign_up(self, email: str, password: str) -> AuthUser:
        """Create an email/password account and sign it in."""
        data = await self._accounts(
            "signUp", {"email": email, "password": password, "returnSecureToken": True}
        )
        user = _user_from_payload({"emailVerified": False, **data})
        self._set_session(self._session_from_tokens(data, user, "password"))
        logger.info("Registered user uid=%s", user.uid)
        return user

    async def sign_in_with_password(self, email: str, password: str) -> AuthUser:
        """Sign in with email/password; the account is looked up for the full profile."""
        data = await self._accounts(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        profile = await self._lookup_payload(data["idToken"])
        user = _user_from_payload({**data, **profile})
        self._set_session(self._session_from_tokens(data, user, "password"))
        logger.info("Signed in uid=%s with password", user.uid)
        return user

    async def sign_in_with_idp(self, post_body: str, request_uri: str, provider_id: str) -> AuthUser:
        """Exchange a provider credential for a Firebase session."""
        data = await self._accounts(
            "signInWithIdp",
            {
                "postBody": post_body,
                "requestUri": request_uri,
                "returnIdpCredential": True,
                "returnSecureToken": True,
            },
        )
        if data.get("errorMessage"):
            raise IdentityToolkitError(data["errorMessage"], status_code=0)
        user = _user_from_payload(data)
        self._set_session(self._session_from_tokens(data, user, provider_id))
        logger.info("Signed in uid=%s with %s", user.uid, provider_id)
        return user

    def sign_out(self) -> bool:
        """Clear the session. Returns False (and notifies nobody) when already signed out."""
        if self._session is None:
            return False
        uid = self._session.user.uid
        self._set_session(None)
        logger.info("Signed out uid=%s", uid)
        return True

    # ---- account operations ----

    async def send_oob_code(self, request_type: str, email: str | None = None) -> None:
        """Send an out-of-band email (VERIFY_EMAIL for the current user, or PASSWORD_RESET)."""
        body: dict[str, Any] = {"requestType": request_type}
        if request_type == "VERIFY_EMAIL":
            body["idToken"] = await self.id_token(action="send_verification_email")
        else:
            body["email"] = email
        await self._accounts("sendOobCode", body)

    async def update_account(self, action: str, **changes: Any) -> AuthUser:
        """Apply profile/email/password changes to the current account.

        Keyword names are REST field names (displayName, photoUrl, email,
        password). An empty string for displayName/photoUrl deletes it.
        """
        token = await self.id_token(action=action)
        body: dict[str, Any] = {"idToken": token, "returnSecureToken": True}
        deletes = []
        for key, value in changes.items():
            if value is None:
                continue
            if value == "" and key in ("displayName", "photoUrl"):
                deletes.append("DISPLAY_NAME" if key == "displayName" else "PHOTO_URL")
            else:
                body[key] = value
        if deletes:
            body["deleteAttribute"] = deletes
        data = await self._accounts("update", body)
        session = self._require_session(action)
        for attr in body.get("deleteAttribute", []):
            data["displayName" if attr == "DISPLAY_NAME" else "photoUrl"] = None
        user = _user_from_payload(data, session.user)
        if data.get("idToken"):
            new_session = self._session_from_tokens(data, user, session.provider_id)
        else:
            new_session = Session(user, session.id_token, session.refresh_token, session.expires_at, session.provider_id)
        self._set_session(new_session)
        return user

    async def reload(self) -> AuthUser:
        """Re-read the current account (e.g. after the email was verified)."""
        token = await self.id_token(action="reload_user")
        profile = await self._lookup_payload(token)
        session = self._require_session("reload_user")
        user = _user_from_payload(profile, session.user)
        if user != session.user:
            self._set_session(
                Session(user, session.id_token, session.refresh_token, session.expires_at, session.provider_id)
            )
        return user

    async def _lookup_payload(self, id_token: str) -> dict[str, Any]:
        data = await self._accounts("lookup", {"idToken": id_token})
        users = data.get("users") or []
        if not users:
            raise IdentityToolkitError("USER_NOT_FOUND")
        return users[0]

    # ---- tokens ----

    async def refresh(self, action: str = "refresh_session") -> AuthUser:
        """Exchange the refresh token for a new ID token and notify subscribers."""
        async with self._refresh_lock:
            return await self._refresh_locked(action)

    async def _refresh_locked(self, action: str) -> AuthUser:
        session = self._require_session(action)
        data = await self._post(
            f"{self._token_base}/token",
            data={"grant_type": "refresh_token", "refresh_token": session.refresh_token},
        )
        current = self._require_session(action)
        if current.user.uid != session.user.uid:
            # signed in as someone else while refreshing
            return current.user
        self._set_session(
            Session(
                user=current.user,
                id_token=data["id_token"],
                refresh_token=data.get("refresh_token", current.refresh_token),
                expires_at=expires_in(data.get("expires_in", 3600)),
                provider_id=current.provider_id,
            )
        )
        logger.debug("Refreshed ID token for uid=%s", current.user.uid)
        return current.user

    async def id_token(self, action: str = "id_token") -> str:
        """Return a valid ID token for the current user, refreshing it near expiry."""
        session = self._require_session(action)
        if session.expires_at - utc_now() > self._refresh_margin:
            return session.id_token
        async with self._refresh_lock:
            session = self._require_session(action)
            if session.expires_at - utc_now() <= self._refresh_margin:
                await self._refresh_locked(action)
            return self._require_session(action).id_token

    async def optional_id_token(self) -> str | None:
        """Token provider for the store handle: the user's ID token, or None when signed out."""
        if self._session is None:
            return None
        return await self.id_token(action="store_request")
