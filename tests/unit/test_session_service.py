"""SessionService tests: the real AuthRESTClient against a fake Identity Toolkit."""

import asyncio
import logging

import httpx
import pytest

from fireaccess.application.dtos.auth import AuthUser
from fireaccess.application.services.session_service import SessionService
from fireaccess.domain.exceptions import (
    AuthError,
    ConfigurationError,
    NoSessionError,
    UnsupportedProviderError,
)
from fireaccess.infrastructure.firebase._auth_client import AuthRESTClient
from fireaccess.infrastructure.firebase.providers import (
    CredentialExchangeCancelled,
    ProviderCredential,
    ProviderId,
)
from tests.fakes import FIREBASE_CONFIG, RecordingCredentialSource


class TestEmailSignIn:
    async def test_register_signs_in_and_notifies_once(
        self, sessions: SessionService, notifications: list
    ) -> None:
        user = await sessions.register_with_email("ann@example.com", "secret1")
        assert user.email == "ann@example.com"
        assert user.email_verified is False
        assert sessions.get_current_user() == user
        assert notifications == [user]

    async def test_login_with_email(
        self, sessions: SessionService, identity, notifications: list
    ) -> None:
        identity.add_account("bob@example.com", "hunter22", displayName="Bob")
        user = await sessions.login_with_email("bob@example.com", "hunter22")
        assert user.display_name == "Bob"
        assert sessions.get_current_user() == user
        assert notifications == [user]

    async def test_sign_in_is_logged_by_the_auth_handle(
        self, sessions: SessionService, identity, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.INFO, logger="fireaccess.infrastructure.firebase._auth_client")
        identity.add_account("bob@example.com", "hunter22")
        user = await sessions.login_with_email("bob@example.com", "hunter22")
        assert f"Signed in uid={user.uid} with password" in caplog.messages

    @pytest.mark.parametrize(
        ("email", "password", "code", "message"),
        [
            ("nobody@example.com", "whatever", "auth/user-not-found", "User not found"),
            ("bob@example.com", "wrong-pass", "auth/wrong-password", "Invalid password"),
            ("off@example.com", "hunter22", "auth/user-disabled", "This user account has been disabled"),
        ],
    )
    async def test_failed_login_maps_error_and_keeps_state(
        self,
        sessions: SessionService,
        identity,
        notifications: list,
        email: str,
        password: str,
        code: str,
        message: str,
    ) -> None:
        identity.add_account("bob@example.com", "hunter22")
        identity.add_account("off@example.com", "hunter22", disabled=True)
        with pytest.raises(AuthError) as exc_info:
            await sessions.login_with_email(email, password)
        assert exc_info.value.code == code
        assert exc_info.value.message == message
        assert exc_info.value.details["action"] == "login_with_email"
        assert sessions.get_current_user() is None
        assert notifications == []

    @pytest.mark.parametrize(
        ("email", "password", "message"),
        [
            ("taken@example.com", "secret1", "This email is already registered"),
            ("not-an-email", "secret1", "Invalid email format"),
            ("new@example.com", "123", "Password is too weak"),
        ],
    )
    async def test_failed_register_maps_error(
        self, sessions: SessionService, identity, notifications: list, email, password, message
    ) -> None:
        identity.add_account("taken@example.com", "secret1")
        with pytest.raises(AuthError, match=message):
            await sessions.register_with_email(email, password)
        assert sessions.get_current_user() is None
        assert notifications == []

    async def test_failed_login_while_signed_in_keeps_previous_session(
        self, sessions: SessionService, notifications: list
    ) -> None:
        user = await sessions.register_with_email("ann@example.com", "secret1")
        with pytest.raises(AuthError):
            await sessions.login_with_email("ann@example.com", "nope-nope")
        assert sessions.get_current_user() == user
        assert notifications == [user]

    async def test_network_failure_is_normalized(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as http:
            sessions = SessionService(AuthRESTClient(FIREBASE_CONFIG["apiKey"], http_client=http))
            with pytest.raises(AuthError) as exc_info:
                await sessions.login_with_email("ann@example.com", "secret1")
        assert exc_info.value.code == "auth/network-request-failed"
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestLogout:
    async def test_logout_clears_session_and_notifies(
        self, sessions: SessionService, notifications: list
    ) -> None:
        user = await sessions.register_with_email("ann@example.com", "secret1")
        await sessions.logout()
        assert sessions.get_current_user() is None
        assert notifications == [user, None]

    async def test_logout_when_signed_out_is_silent(
        self, sessions: SessionService, notifications: list
    ) -> None:
        await sessions.logout()
        await sessions.logout()
        assert notifications == []


class TestProviderSignIn:
    async def test_login_with_google(
        self,
        sessions: SessionService,
        credential_source: RecordingCredentialSource,
        auth_client: AuthRESTClient,
        notifications: list,
    ) -> None:
        user = await sessions.login_with_provider("google")
        assert user.email == "alice@google.com"
        assert credential_source.requested == ["google.com"]
        assert auth_client.session.provider_id == "google.com"
        assert notifications == [user]

    async def test_enum_identifier_is_accepted(self, sessions: SessionService) -> None:
        user = await sessions.login_with_provider(ProviderId.GOOGLE)
        assert user.email == "alice@google.com"

    async def test_unsupported_provider_makes_no_backend_call(
        self,
        sessions: SessionService,
        identity,
        credential_source: RecordingCredentialSource,
        notifications: list,
    ) -> None:
        with pytest.raises(UnsupportedProviderError) as exc_info:
            await sessions.login_with_provider("myspace")
        assert exc_info.value.message == "Provider myspace not supported"
        assert identity.calls == []
        assert credential_source.requested == []
        assert notifications == []

    async def test_switching_provider_notifies_exactly_once(
        self, sessions: SessionService, credential_source, notifications: list
    ) -> None:
        first = await sessions.login_with_provider("google")
        credential_source.credential = ProviderCredential(access_token="octocat")
        second = await sessions.login_with_provider("github")
        assert second.uid != first.uid
        assert sessions.get_current_user() == second
        assert notifications == [first, second]

    async def test_cancelled_flow_raises_auth_error(
        self, auth_client: AuthRESTClient, identity, notifications: list
    ) -> None:
        async def cancel(strategy):
            raise CredentialExchangeCancelled()

        for source in (RecordingCredentialSource(None), cancel):
            sessions = SessionService(auth_client, source)
            with pytest.raises(AuthError) as exc_info:
                await sessions.login_with_provider("facebook")
            assert exc_info.value.code == "auth/popup-closed-by-user"
            assert exc_info.value.message == "Sign-in was cancelled"
        assert identity.calls == []
        assert notifications == []

    async def test_rejected_credential_is_normalized(
        self, sessions: SessionService, credential_source
    ) -> None:
        credential_source.credential = ProviderCredential(access_token="rejected")
        with pytest.raises(AuthError) as exc_info:
            await sessions.login_with_provider("github")
        assert exc_info.value.code == "auth/invalid-credential"
        assert sessions.get_current_user() is None

    async def test_credential_without_token_is_invalid(
        self, sessions: SessionService, credential_source, identity
    ) -> None:
        credential_source.credential = ProviderCredential(access_token="tok")
        with pytest.raises(AuthError) as exc_info:
            await sessions.login_with_provider("twitter")
        assert exc_info.value.code == "auth/invalid-credential"
        assert identity.calls == []

    async def test_missing_credential_source_is_configuration_error(
        self, auth_client: AuthRESTClient
    ) -> None:
        with pytest.raises(ConfigurationError):
            await SessionService(auth_client).login_with_provider("google")


class TestAccountMaintenance:
    @pytest.mark.parametrize(
        "call",
        [
            lambda s: s.send_verification_email(),
            lambda s: s.update_profile(display_name="X"),
            lambda s: s.update_email("x@example.com"),
            lambda s: s.update_password("newsecret"),
            lambda s: s.reload_user(),
            lambda s: s.refresh_session(),
        ],
    )
    async def test_requires_session(self, sessions: SessionService, identity, call) -> None:
        with pytest.raises(NoSessionError) as exc_info:
            await call(sessions)
        assert exc_info.value.error_code == "NO_SESSION"
        assert identity.calls == []

    async def test_send_verification_email_uses_current_token(
        self, sessions: SessionService, identity, auth_client: AuthRESTClient
    ) -> None:
        await sessions.register_with_email("ann@example.com", "secret1")
        await sessions.send_verification_email()
        assert identity.oob_requests == [
            {"requestType": "VERIFY_EMAIL", "idToken": auth_client.session.id_token}
        ]

    async def test_reset_password_without_session(self, sessions: SessionService, identity) -> None:
        identity.add_account("bob@example.com", "hunter22")
        await sessions.reset_password("bob@example.com")
        assert identity.oob_requests == [{"requestType": "PASSWORD_RESET", "email": "bob@example.com"}]
        assert sessions.get_current_user() is None

    async def test_reset_password_unknown_email_propagates(self, sessions: SessionService) -> None:
        with pytest.raises(AuthError, match="User not found"):
            await sessions.reset_password("nobody@example.com")

    async def test_update_profile_updates_snapshot_and_notifies(
        self, sessions: SessionService, notifications: list
    ) -> None:
        await sessions.register_with_email("ann@example.com", "secret1")
        await sessions.update_profile(display_name="Ann", photo_url="https://img/ann.png")
        user = sessions.get_current_user()
        assert user.display_name == "Ann"
        assert user.photo_url == "https://img/ann.png"
        assert len(notifications) == 2
        assert notifications[-1] == user

    async def test_update_profile_empty_string_clears_field(self, sessions: SessionService) -> None:
        await sessions.register_with_email("ann@example.com", "secret1")
        await sessions.update_profile(display_name="Ann", photo_url="https://img/ann.png")
        await sessions.update_profile(photo_url="")
        user = sessions.get_current_user()
        assert user.display_name == "Ann"
        assert user.photo_url is None

    async def test_update_profile_without_changes_is_a_no_op(
        self, sessions: SessionService, identity, notifications: list
    ) -> None:
        await sessions.register_with_email("ann@example.com", "secret1")
        calls = list(identity.calls)
        await sessions.update_profile()
        assert identity.calls == calls
        assert len(notifications) == 1

    async def test_update_email_and_password(self, sessions: SessionService) -> None:
        await sessions.register_with_email("ann@example.com", "secret1")
        await sessions.update_email("anna@example.com")
        await sessions.update_password("betterpass")
        assert sessions.get_current_user().email == "anna@example.com"
        await sessions.logout()
        user = await sessions.login_with_email("anna@example.com", "betterpass")
        assert user.email == "anna@example.com"

    async def test_update_password_too_weak(self, sessions: SessionService) -> None:
        await sessions.register_with_email("ann@example.com", "secret1")
        with pytest.raises(AuthError, match="Password is too weak"):
            await sessions.update_password("1")

    async def test_reload_user_picks_up_verification(self, sessions: SessionService, identity) -> None:
        user = await sessions.register_with_email("ann@example.com", "secret1")
        identity.accounts[user.uid]["emailVerified"] = True
        reloaded = await sessions.reload_user()
        assert reloaded.email_verified is True
        assert sessions.get_current_user() == reloaded

    async def test_refresh_session_replaces_token_and_notifies(
        self, sessions: SessionService, auth_client: AuthRESTClient, notifications: list
    ) -> None:
        await sessions.register_with_email("ann@example.com", "secret1")
        old_token = auth_client.session.id_token
        user = await sessions.refresh_session()
        assert auth_client.session.id_token != old_token
        assert user == sessions.get_current_user()
        assert len(notifications) == 2

    async def test_token_near_expiry_is_refreshed_before_call(self, identity) -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(identity)) as http:
            auth = AuthRESTClient(
                FIREBASE_CONFIG["apiKey"], http_client=http, refresh_margin_seconds=7200
            )
            sessions = SessionService(auth)
            await sessions.register_with_email("ann@example.com", "secret1")
            await sessions.update_profile(display_name="Ann")
        assert identity.calls[-2:] == ["token", "accounts:update"]


class TestSubscriptions:
    async def test_callback_receives_current_state_on_subscribe(self, sessions: SessionService) -> None:
        received: list = []
        unsubscribe = sessions.on_session_change(received.append)
        assert received == [None]
        user = await sessions.register_with_email("ann@example.com", "secret1")
        unsubscribe()
        await sessions.logout()
        assert received == [None, user]

    async def test_late_subscriber_gets_signed_in_user(self, sessions: SessionService) -> None:
        user = await sessions.register_with_email("ann@example.com", "secret1")
        received: list = []
        sessions.on_session_change(received.append)
        assert received == [user]

    async def test_failing_callback_does_not_block_others(
        self, sessions: SessionService, caplog: pytest.LogCaptureFixture
    ) -> None:
        def boom(user: AuthUser | None) -> None:
            raise RuntimeError("subscriber bug")

        received: list = []
        sessions.on_session_change(boom)
        sessions.on_session_change(received.append)
        user = await sessions.register_with_email("ann@example.com", "secret1")
        assert received == [None, user]
        failures = [
            r for r in caplog.records if r.name == "fireaccess.infrastructure.firebase._session_events"
        ]
        assert failures and failures[0].exc_info is not None

    async def test_unsubscribe_during_delivery(self, sessions: SessionService) -> None:
        received: list = []
        unsubscribers: list = []

        def once(user: AuthUser | None) -> None:
            received.append(user)
            if user is not None:
                unsubscribers[0]()

        unsubscribers.append(sessions.on_session_change(once))
        await sessions.register_with_email("ann@example.com", "secret1")
        await sessions.logout()
        assert len(received) == 2
        assert received[1] is not None

    async def test_stream_yields_transitions_in_order(self, sessions: SessionService) -> None:
        stream = sessions.session_changes()
        ann = await sessions.register_with_email("ann@example.com", "secret1")
        await sessions.logout()
        bob = await sessions.register_with_email("bob@example.com", "secret2")
        stream.cancel()
        assert [user async for user in stream] == [None, ann, None, bob]

    async def test_cancelled_stream_stops_receiving(self, sessions: SessionService) -> None:
        stream = sessions.session_changes()
        stream.cancel()
        stream.cancel()
        await sessions.register_with_email("ann@example.com", "secret1")
        assert stream.cancelled is True
        assert [user async for user in stream] == [None]

    async def test_stream_consumer_task_wakes_on_change(self, sessions: SessionService) -> None:
        stream = sessions.session_changes()
        seen: list = []

        async def consume() -> None:
            async for user in stream:
                seen.append(user)
                if len(seen) == 2:
                    stream.cancel()

        task = asyncio.create_task(consume())
        user = await sessions.register_with_email("ann@example.com", "secret1")
        await asyncio.wait_for(task, timeout=1)
        assert seen == [None, user]
