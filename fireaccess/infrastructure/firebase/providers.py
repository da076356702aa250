"""Social sign-in providers: closed set of identifiers and their strategies.

Each strategy knows the Identity Toolkit ``providerId`` and how to turn the
credential obtained by the host's interactive OAuth flow into the
``postBody`` accepted by ``accounts:signInWithIdp``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import ClassVar
from urllib.parse import urlencode


class ProviderId(str, Enum):
    """Supported social sign-in providers."""

    GOOGLE = "google"
    FACEBOOK = "facebook"
    GITHUB = "github"
    TWITTER = "twitter"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


@dataclass(frozen=True)
class ProviderCredential:
    """Credential produced by the interactive OAuth flow for one provider.

    Attributes:
        access_token: OAuth access token (or OAuth 1.0a token for Twitter).
        id_token: OpenID Connect ID token (Google).
        secret: OAuth 1.0a token secret (Twitter).
        request_uri: URI the OAuth flow redirected to; defaults to the auth domain.
    """

    access_token: str | None = None
    id_token: str | None = None
    secret: str | None = None
    request_uri: str | None = None


class CredentialExchangeCancelled(Exception):
    """Raised by a credential source when the user abandons the sign-in flow."""


@dataclass(frozen=True)
class ProviderStrategy:
    """How to sign in with one provider through Identity Toolkit."""

    PROVIDER: ClassVar[ProviderId]
    IDP_ID: ClassVar[str]

    scopes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def provider(self) -> ProviderId:
        return self.PROVIDER

    @property
    def idp_id(self) -> str:
        return self.IDP_ID

    def post_body(self, credential: ProviderCredential) -> str:
        """Return the urlencoded postBody for accounts:signInWithIdp."""
        params = self._credential_params(credential)
        if not params:
            raise ValueError(f"{self.idp_id} credential is missing its token")
        return urlencode({**params, "providerId": self.idp_id})

    def _credential_params(self, credential: ProviderCredential) -> dict[str, str]:
        if credential.access_token:
            return {"access_token": credential.access_token}
        return {}


@dataclass(frozen=True)
class GoogleStrategy(ProviderStrategy):
    """Google sign-in. Prefers the ID token when the flow returns one."""

    PROVIDER: ClassVar[ProviderId] = ProviderId.GOOGLE
    IDP_ID: ClassVar[str] = "google.com"

    scopes: tuple[str, ...] = ("openid", "email", "profile")

    def _credential_params(self, credential: ProviderCredential) -> dict[str, str]:
        params: dict[str, str] = {}
        if credential.id_token:
            params["id_token"] = credential.id_token
        if credential.access_token:
            params["access_token"] = credential.access_token
        return params


@dataclass(frozen=True)
class FacebookStrategy(ProviderStrategy):
    PROVIDER: ClassVar[ProviderId] = ProviderId.FACEBOOK
    IDP_ID: ClassVar[str] = "facebook.com"

    scopes: tuple[str, ...] = ("email", "public_profile")


@dataclass(frozen=True)
class GithubStrategy(ProviderStrategy):
    PROVIDER: ClassVar[ProviderId] = ProviderId.GITHUB
    IDP_ID: ClassVar[str] = "github.com"

    scopes: tuple[str, ...] = ("read:user", "user:email")


@dataclass(frozen=True)
class TwitterStrategy(ProviderStrategy):
    """Twitter sign-in uses OAuth 1.0a: token plus token secret."""

    PROVIDER: ClassVar[ProviderId] = ProviderId.TWITTER
    IDP_ID: ClassVar[str] = "twitter.com"

    def _credential_params(self, credential: ProviderCredential) -> dict[str, str]:
        if credential.access_token and credential.secret:
            return {
                "access_token": credential.access_token,
                "oauth_token_secret": credential.secret,
            }
        return {}


def _build_registry(
    strategies: tuple[ProviderStrategy, ...],
) -> Mapping[ProviderId, ProviderStrategy]:
    registry = {strategy.provider: strategy for strategy in strategies}
    missing = set(ProviderId) - set(registry)
    if missing:
        raise RuntimeError(f"No sign-in strategy for providers: {sorted(p.value for p in missing)}")
    return MappingProxyType(registry)


PROVIDERS: Mapping[ProviderId, ProviderStrategy] = _build_registry(
    (GoogleStrategy(), FacebookStrategy(), GithubStrategy(), TwitterStrategy())
)


def lookup(provider_id: str | ProviderId) -> ProviderStrategy | None:
    """Return the strategy for a provider identifier, or None if it is not supported."""
    try:
        key = ProviderId(provider_id)
    except ValueError:
        return None
    return PROVIDERS[key]


# Host-supplied interactive flow: receives the strategy (scopes, idp id) and
# returns the provider credential, or None when the user cancels.
CredentialSource = Callable[[ProviderStrategy], Awaitable[ProviderCredential | None]]
