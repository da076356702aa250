"""Firebase context: build the store and auth handles once and share them.

``FirebaseContext`` is the explicit object a host can construct and pass
around. ``get_firebase()`` keeps one process-wide context for hosts that prefer
a global accessor: the first call must supply the config, later calls return
the same instance. ``close_firebase()`` tears it down.

Service account credentials (FIREBASE_SERVICE_ACCOUNT_KEY as a JSON string, or
FIREBASE_SERVICE_ACCOUNT_PATH) are optional. With them Firestore requests run
with the service account; without them they carry the signed-in user's ID
token, or only the API key when nobody is signed in.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from fireaccess.application.services.collection_service import CollectionService, RecordType
from fireaccess.application.services.document_service import DocumentService
from fireaccess.application.services.session_service import SessionService
from fireaccess.core.config import REQUIRED_CONFIG_FIELDS, FirebaseConfig, Settings, get_settings
from fireaccess.domain.exceptions import ConfigurationError
from fireaccess.infrastructure.firebase._auth_client import AuthRESTClient
from fireaccess.infrastructure.firebase._rest_client import FirestoreRESTClient, _get_credentials
from fireaccess.infrastructure.firebase.providers import CredentialSource
from fireaccess.shared.telemetry.logging import get_logger
from fireaccess.shared.telemetry.telemetry import TelemetryConfig

logger = get_logger(__name__)

_context: FirebaseContext | None = None
_context_lock = threading.Lock()


def _load_key_dict(settings: Settings) -> dict[str, Any] | None:
    """Return service account dict from env key or file path."""
    key_json = (
        settings.firebase_service_account_key.get_secret_value()
        if settings.firebase_service_account_key
        else None
    )
    if key_json:
        try:
            return json.loads(key_json)
        except json.JSONDecodeError as e:
            raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT_KEY is not valid JSON") from e
    path = settings.firebase_service_account_path
    if path:
        resolved = Path(path).expanduser().resolve()
        if not resolved.is_file():
            logger.warning(
                "FIREBASE_SERVICE_ACCOUNT_PATH set but file not found: %s (resolved: %s)",
                path,
                resolved,
            )
            return None
        with open(resolved, encoding="utf-8") as f:
            return json.load(f)
    return None


def _coerce_config(config: FirebaseConfig | Mapping[str, Any]) -> FirebaseConfig:
    if isinstance(config, FirebaseConfig):
        resolved = config
    else:
        try:
            resolved = FirebaseConfig.model_validate(dict(config))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid Firebase configuration: {e}") from e
    missing = resolved.missing_fields()
    if missing:
        raise ConfigurationError(
            f"Missing Firebase configuration fields: {', '.join(missing)}", missing
        )
    return resolved


class FirebaseContext:
    """Store handle, auth handle and telemetry for one Firebase project.

    Handles are built once in the constructor and shared by every client the
    context hands out. Nothing is sent over the network until a client call.

    Args:
        config: Firebase web config (model or mapping with camelCase or
            snake_case keys).
        settings: Library settings; defaults to get_settings().
        http_client: Shared httpx client; the context creates (and later
            closes) its own when omitted.
        credential_source: Interactive OAuth flow for provider sign-in.

    Raises:
        ConfigurationError: A required config field is missing or empty, or
            the service account key is malformed.
    """

    def __init__(
        self,
        config: FirebaseConfig | Mapping[str, Any],
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        credential_source: CredentialSource | None = None,
    ) -> None:
        self._config = _coerce_config(config)
        self._settings = settings or get_settings()
        credentials = self._build_credentials()
        self._http = (
            http_client
            if http_client is not None
            else httpx.AsyncClient(timeout=self._settings.http_timeout_seconds)
        )
        self._owns_http = http_client is None
        self._telemetry = self._build_telemetry()

        self._auth = AuthRESTClient(
            self._config.api_key,
            auth_domain=self._config.auth_domain,
            emulator_host=self._settings.firebase_auth_emulator_host,
            http_client=self._http,
            refresh_margin_seconds=self._settings.token_refresh_margin_seconds,
        )
        self._store = FirestoreRESTClient(
            self._config.project_id,
            credentials,
            api_key=self._config.api_key,
            token_provider=self._auth.optional_id_token,
            emulator_host=self._settings.firestore_emulator_host,
            http_client=self._http,
        )
        self._documents = DocumentService(self._store, page_size=self._settings.list_page_size)
        self._sessions = SessionService(self._auth, credential_source)
        logger.info("Firebase context ready for project %s", self._config.project_id)

    def _build_telemetry(self) -> TelemetryConfig | None:
        settings = self._settings
        if not settings.telemetry_enabled:
            return None
        telemetry = TelemetryConfig(
            service_name=settings.app_name,
            service_version=settings.app_version,
            enabled=True,
            environment=settings.telemetry_environment,
            project_id=self._config.project_id,
            measurement_id=self._config.measurement_id,
        )
        telemetry.setup_telemetry(
            exporter_type=settings.telemetry_exporter,
            otlp_endpoint=settings.telemetry_otlp_endpoint,
            sample_rate=settings.telemetry_sample_rate,
        )
        telemetry.instrument_httpx(self._http)
        telemetry.instrument_logging()
        return telemetry

    def _build_credentials(self):
        key_dict = _load_key_dict(self._settings)
        if not key_dict:
            return None
        key_project = key_dict.get("project_id")
        if key_project and key_project != self._config.project_id:
            logger.warning(
                "Service account project %s differs from configured project %s",
                key_project,
                self._config.project_id,
            )
        return _get_credentials(key_dict)

    @property
    def config(self) -> FirebaseConfig:
        return self._config

    @property
    def store(self) -> FirestoreRESTClient:
        return self._store

    @property
    def auth(self) -> AuthRESTClient:
        return self._auth

    @property
    def telemetry(self) -> TelemetryConfig | None:
        """Telemetry handle, or None when telemetry is disabled in settings."""
        return self._telemetry

    @property
    def documents(self) -> DocumentService:
        return self._documents

    @property
    def sessions(self) -> SessionService:
        return self._sessions

    def collection(self, name: str, model: type[RecordType]) -> CollectionService[RecordType]:
        """Return a client bound to one collection and record model."""
        if not issubclass(model, BaseModel):
            raise TypeError("model must be a pydantic BaseModel subclass")
        return CollectionService(self._documents, name, model)

    async def aclose(self) -> None:
        """Close network resources and flush telemetry."""
        await self._store.aclose()
        await self._auth.aclose()
        if self._owns_http:
            await self._http.aclose()
        if self._telemetry is not None:
            self._telemetry.shutdown()
        logger.info("Firebase context closed")


def get_firebase(
    config: FirebaseConfig | Mapping[str, Any] | None = None,
    *,
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    credential_source: CredentialSource | None = None,
) -> FirebaseContext:
    """Return the process-wide context, creating it on the first call.

    The first call must pass ``config``. Later calls return the same instance
    and ignore their arguments.

    Raises:
        ConfigurationError: First call without config, or config incomplete.
    """
    global _context
    if _context is not None:
        return _context
    with _context_lock:
        if _context is None:
            if config is None:
                raise ConfigurationError(
                    "Firebase is not initialized; pass a config on the first call",
                    list(REQUIRED_CONFIG_FIELDS),
                )
            _context = FirebaseContext(
                config,
                settings=settings,
                http_client=http_client,
                credential_source=credential_source,
            )
        return _context


def initialize_firebase(
    config: FirebaseConfig | Mapping[str, Any],
    *,
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    credential_source: CredentialSource | None = None,
) -> FirebaseContext:
    """Create the process-wide context (or return the existing one)."""
    return get_firebase(
        config,
        settings=settings,
        http_client=http_client,
        credential_source=credential_source,
    )


async def close_firebase() -> None:
    """Close the process-wide context. The next get_firebase() needs a config again."""
    global _context
    with _context_lock:
        context, _context = _context, None
    if context is not None:
        await context.aclose()
