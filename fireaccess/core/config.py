"""Library configuration (settings and Firebase web config).

Two layers:

- ``FirebaseConfig``: the Firebase web-app config object a host application
  passes once to the lifecycle manager (apiKey, authDomain, projectId, ...).
- ``Settings``: ambient knobs loaded with pydantic-settings from the
  environment and ``.env`` (timeouts, emulators, telemetry, service account).
"""

from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

REQUIRED_CONFIG_FIELDS = (
    "api_key",
    "auth_domain",
    "project_id",
    "storage_bucket",
    "messaging_sender_id",
    "app_id",
)


class FirebaseConfig(BaseModel):
    """Firebase web-app configuration.

    Accepts both snake_case names and the camelCase keys Firebase prints in the
    console (``apiKey``, ``authDomain``...). Presence of required fields is
    checked by the lifecycle manager so it can raise ConfigurationError with
    the full list of missing names.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    api_key: str = Field("", alias="apiKey")
    auth_domain: str = Field("", alias="authDomain")
    project_id: str = Field("", alias="projectId")
    storage_bucket: str = Field("", alias="storageBucket")
    messaging_sender_id: str = Field("", alias="messagingSenderId")
    app_id: str = Field("", alias="appId")
    measurement_id: str | None = Field(None, alias="measurementId")

    def missing_fields(self) -> list[str]:
        """Return required field names that are empty."""
        return [name for name in REQUIRED_CONFIG_FIELDS if not getattr(self, name)]


class Settings(BaseSettings):
    """Library settings loaded from environment and .env.

    All settings are optional. The ``firebase_*`` web config fields let a host
    build a FirebaseConfig from the environment (see firebase_config()).
    """

    # Library
    app_name: str = "fireaccess"
    app_version: str = "0.1.0"
    debug: bool = False

    # HTTP
    http_timeout_seconds: float = 30.0
    list_page_size: int = 300

    # Emulators (host:port, e.g. localhost:8080); unset means production endpoints
    firestore_emulator_host: str | None = None
    firebase_auth_emulator_host: str | None = None

    # Optional service account for privileged Firestore access (key JSON or file path).
    firebase_service_account_key: SecretStr | None = None
    firebase_service_account_path: str | None = None

    # Session tokens are refreshed when this close to expiry
    token_refresh_margin_seconds: int = 60

    # Firebase web config from env (FIREBASE_API_KEY, ...)
    firebase_api_key: str = ""
    firebase_auth_domain: str = ""
    firebase_project_id: str = ""
    firebase_storage_bucket: str = ""
    firebase_messaging_sender_id: str = ""
    firebase_app_id: str = ""
    firebase_measurement_id: str | None = None

    # OpenTelemetry
    telemetry_enabled: bool = False
    telemetry_exporter: str = "console"
    telemetry_otlp_endpoint: str | None = None
    telemetry_sample_rate: float = 1.0
    telemetry_environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    def firebase_config(self) -> FirebaseConfig:
        """Build a FirebaseConfig from the FIREBASE_* environment values."""
        return FirebaseConfig(
            api_key=self.firebase_api_key,
            auth_domain=self.firebase_auth_domain,
            project_id=self.firebase_project_id,
            storage_bucket=self.firebase_storage_bucket,
            messaging_sender_id=self.firebase_messaging_sender_id,
            app_id=self.firebase_app_id,
            measurement_id=self.firebase_measurement_id,
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings (single instance per process).

    In tests, call get_settings.cache_clear() after changing env vars so the
    next get_settings() reads the new values.
    """
    return Settings()
