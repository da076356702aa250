"""Lifecycle tests: FirebaseContext wiring and the process-wide accessor."""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from fireaccess.core import lifecycle
from fireaccess.core.config import FirebaseConfig, Settings
from fireaccess.core.lifecycle import (
    FirebaseContext,
    close_firebase,
    get_firebase,
    initialize_firebase,
)
from fireaccess.domain.exceptions import ConfigurationError
from tests.fakes import FIREBASE_CONFIG


@pytest.fixture
async def reset_context():
    await close_firebase()
    yield
    await close_firebase()


class TestConfig:
    def test_camel_case_keys_are_accepted(self) -> None:
        config = FirebaseConfig.model_validate(FIREBASE_CONFIG)
        assert config.api_key == "test-api-key"
        assert config.project_id == "demo"
        assert config.measurement_id is None
        assert config.missing_fields() == []

    def test_settings_build_config_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("FIREBASE_API_KEY", "env-key")
        monkeypatch.setenv("FIREBASE_PROJECT_ID", "env-project")
        config = Settings(_env_file=None).firebase_config()
        assert config.api_key == "env-key"
        assert config.project_id == "env-project"
        assert "auth_domain" in config.missing_fields()


class TestFirebaseContext:
    async def test_builds_handles_once_and_shares_them(self, test_settings: Settings) -> None:
        context = FirebaseContext(FIREBASE_CONFIG, settings=test_settings)
        try:
            assert context.config.project_id == "demo"
            assert context.store.project_id == "demo"
            assert context.documents is context.documents
            assert context.sessions is context.sessions
            assert context.telemetry is None
            assert context.sessions.get_current_user() is None
        finally:
            await context.aclose()

    async def test_missing_fields_raise_configuration_error(self, test_settings: Settings) -> None:
        incomplete = {k: v for k, v in FIREBASE_CONFIG.items() if k not in ("apiKey", "appId")}
        with pytest.raises(ConfigurationError) as exc_info:
            FirebaseContext(incomplete, settings=test_settings)
        assert exc_info.value.error_code == "CONFIGURATION_ERROR"
        assert exc_info.value.details["missing"] == ["api_key", "app_id"]

    async def test_empty_field_counts_as_missing(self, test_settings: Settings) -> None:
        with pytest.raises(ConfigurationError, match="project_id"):
            FirebaseContext({**FIREBASE_CONFIG, "projectId": ""}, settings=test_settings)

    async def test_invalid_service_account_json(self) -> None:
        settings = Settings(_env_file=None, firebase_service_account_key="{not json")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            FirebaseContext(FIREBASE_CONFIG, settings=settings)

    async def test_invalid_service_account_opens_no_http_client(self) -> None:
        settings = Settings(_env_file=None, firebase_service_account_key="{not json")
        with patch.object(lifecycle.httpx, "AsyncClient") as async_client:
            with pytest.raises(ConfigurationError):
                FirebaseContext(FIREBASE_CONFIG, settings=settings)
        async_client.assert_not_called()

    async def test_service_account_credentials_are_loaded(self) -> None:
        settings = Settings(
            _env_file=None,
            firebase_service_account_key='{"project_id": "demo", "client_email": "sa@demo"}',
        )
        with patch.object(lifecycle, "_get_credentials", return_value="creds") as get_credentials:
            context = FirebaseContext(FIREBASE_CONFIG, settings=settings)
        try:
            get_credentials.assert_called_once_with({"project_id": "demo", "client_email": "sa@demo"})
            assert context.store._credentials == "creds"
        finally:
            await context.aclose()


@pytest.mark.usefixtures("reset_context")
class TestProcessWideContext:
    async def test_first_call_without_config_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="not initialized"):
            get_firebase()

    async def test_same_instance_on_every_call(self, test_settings: Settings) -> None:
        first = get_firebase(FIREBASE_CONFIG, settings=test_settings)
        assert get_firebase() is first
        assert get_firebase({**FIREBASE_CONFIG, "projectId": "other"}) is first
        assert initialize_firebase(FIREBASE_CONFIG) is first
        assert first.config.project_id == "demo"

    async def test_concurrent_first_calls_construct_once(self, test_settings: Settings) -> None:
        with patch.object(lifecycle, "FirebaseContext", wraps=FirebaseContext) as factory:
            with ThreadPoolExecutor(max_workers=8) as pool:
                results = list(
                    pool.map(lambda _: get_firebase(FIREBASE_CONFIG, settings=test_settings), range(16))
                )
        assert factory.call_count == 1
        assert all(result is results[0] for result in results)

    async def test_close_resets_the_accessor(self, test_settings: Settings) -> None:
        first = get_firebase(FIREBASE_CONFIG, settings=test_settings)
        await close_firebase()
        with pytest.raises(ConfigurationError):
            get_firebase()
        second = get_firebase(FIREBASE_CONFIG, settings=test_settings)
        assert second is not first

    async def test_close_without_context_is_a_no_op(self) -> None:
        await close_firebase()
        await close_firebase()
