"""Known OAuth issuers and issuer-to-provider matching."""

from zkprover.core.errors import UnsupportedIssuer
from zkprover.core.settings import ProverSettings, ProviderConfig

DEFAULT_PROVIDERS: tuple[ProviderConfig, ...] = (
    ProviderConfig(
        name="google",
        issuers=["https://accounts.google.com", "accounts.google.com"],
        jwks_uri="https://www.googleapis.com/oauth2/v3/certs",
    ),
    ProviderConfig(
        name="facebook",
        issuers=["https://www.facebook.com"],
        jwks_uri="https://www.facebook.com/.well-known/oauth/openid/jwks/",
    ),
    ProviderConfig(
        name="apple",
        issuers=["https://appleid.apple.com"],
        jwks_uri="https://appleid.apple.com/auth/keys",
    ),
    ProviderConfig(
        name="twitch",
        issuers=["https://id.twitch.tv/oauth2"],
        discovery_url="https://id.twitch.tv/oauth2/.well-known/openid-configuration",
    ),
)


class ProviderRegistry:
    """Maps token issuers to provider configurations."""

    def __init__(self, providers: list[ProviderConfig] | tuple[ProviderConfig, ...]) -> None:
        self._providers = {p.name: p for p in providers}

    @classmethod
    def from_settings(cls, settings: ProverSettings) -> "ProviderRegistry":
        """Built-in providers plus any configured extras (extras win on name)."""
        return cls([*DEFAULT_PROVIDERS, *settings.extra_providers])

    @property
    def names(self) -> list[str]:
        return list(self._providers)

    def get(self, name: str) -> ProviderConfig | None:
        return self._providers.get(name)

    def match(self, issuer: str) -> ProviderConfig:
        """Find the provider for an issuer by exact, then path-prefix match."""
        for provider in self._providers.values():
            if issuer in provider.issuers:
                return provider
        for provider in self._providers.values():
            for known in provider.issuers:
                prefix = known.rstrip("/") + "/"
                if issuer.startswith(prefix):
                    return provider
        raise UnsupportedIssuer(f"issuer {issuer!r} is not supported")
