"""Resolve an issuer and key id to a validated RSA signing key.

Keys come from the issuer's published JWKS and are cached per
``(provider, kid)`` for the cache TTL. A transport failure is retried once
after a short backoff before ``KeyDiscoveryUnavailable`` is raised.
"""

import asyncio
import logging
import random
import time
from collections.abc import Callable
from typing import Any

import httpx

from zkprover.core.errors import (
    InsufficientKeySize,
    InvalidKeySet,
    InvalidKeyUsage,
    KeyDiscoveryUnavailable,
    KeyNotFound,
    UnsupportedKeyType,
)
from zkprover.core.settings import (
    JWKS_RETRY_BACKOFF_DEFAULT,
    JWKS_TIMEOUT_DEFAULT,
    KEY_CACHE_TTL_DEFAULT,
    MIN_KEY_BITS_DEFAULT,
    ProverSettings,
    ProviderConfig,
)
from zkprover.keys.cache import InMemoryKeyCache, KeyCache
from zkprover.keys.material import base64url_to_bytes
from zkprover.keys.providers import ProviderRegistry
from zkprover.keys.types import ResolvedKey

logger = logging.getLogger(__name__)

EXPECTED_KTY = "RSA"
EXPECTED_USE = "sig"
EXPECTED_ALG = "RS256"
FETCH_ATTEMPTS = 2
HTTP_SERVER_ERROR = 500


def compute_backoff(attempt: int, base: float, jitter: float = 0.1) -> float:
    """Exponential backoff with jitter for the given retry attempt."""
    return base * (2 ** (attempt - 1)) + random.uniform(0, jitter)


class KeyResolver:
    """Resolves signing keys through a TTL cache backed by JWKS fetches."""

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: KeyCache,
        client: httpx.AsyncClient,
        *,
        timeout: float = JWKS_TIMEOUT_DEFAULT,
        retry_backoff: float = JWKS_RETRY_BACKOFF_DEFAULT,
        min_key_bits: int = MIN_KEY_BITS_DEFAULT,
        discovery_ttl: float = KEY_CACHE_TTL_DEFAULT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry
        self.cache = cache
        self._client = client
        self._timeout = timeout
        self._retry_backoff = retry_backoff
        self._min_key_bits = min_key_bits
        self._discovery_ttl = discovery_ttl
        self._clock = clock
        # provider name -> (discovered jwks_uri, discovered at)
        self._jwks_uris: dict[str, tuple[str, float]] = {}

    @classmethod
    def from_settings(
        cls, settings: ProverSettings, client: httpx.AsyncClient
    ) -> "KeyResolver":
        return cls(
            ProviderRegistry.from_settings(settings),
            InMemoryKeyCache(ttl_seconds=settings.key_cache_ttl),
            client,
            timeout=settings.jwks_timeout,
            retry_backoff=settings.jwks_retry_backoff,
            min_key_bits=settings.min_key_bits,
            discovery_ttl=settings.key_cache_ttl,
        )

    async def resolve(self, issuer: str, key_id: str | None) -> ResolvedKey:
        """Return the signing key ``key_id`` published by ``issuer``."""
        provider = self.registry.match(issuer)
        if not key_id:
            raise KeyNotFound("token header has no kid")

        cached = self.cache.get(provider.name, key_id)
        if cached is not None:
            return cached

        document = await self._fetch_key_set(provider)
        entry = _find_key(document, key_id)
        resolved = self._validate_entry(provider.name, key_id, entry)
        self.cache.put(resolved)
        logger.info(
            "Cached signing key provider=%s kid=%s bits=%d",
            provider.name,
            key_id,
            resolved.modulus_bits,
        )
        return resolved

    async def _fetch_key_set(self, provider: ProviderConfig) -> dict[str, Any]:
        jwks_uri = await self._jwks_uri(provider)
        return await self._get_json(jwks_uri, provider.name)

    async def _jwks_uri(self, provider: ProviderConfig) -> str:
        if provider.jwks_uri:
            return provider.jwks_uri
        known = self._jwks_uris.get(provider.name)
        if known is not None and self._clock() - known[1] < self._discovery_ttl:
            return known[0]
        if not provider.discovery_url:
            raise KeyDiscoveryUnavailable(
                f"provider {provider.name} has no key set location"
            )
        discovery = await self._get_json(provider.discovery_url, provider.name)
        jwks_uri = discovery.get("jwks_uri")
        if not isinstance(jwks_uri, str) or not jwks_uri:
            raise InvalidKeySet(f"discovery document for {provider.name} has no jwks_uri")
        self._jwks_uris[provider.name] = (jwks_uri, self._clock())
        return jwks_uri

    async def _get_json(self, url: str, provider_name: str) -> dict[str, Any]:
        last_error: Exception | None = None
        for attempt in range(1, FETCH_ATTEMPTS + 1):
            try:
                response = await self._client.get(url, timeout=self._timeout)
            except httpx.HTTPError as exc:
                last_error = exc
            else:
                if response.status_code < HTTP_SERVER_ERROR:
                    return _parse_document(response, provider_name)
                last_error = httpx.HTTPStatusError(
                    f"server error {response.status_code}",
                    request=response.request,
                    response=response,
                )
            if attempt < FETCH_ATTEMPTS:
                delay = compute_backoff(attempt, self._retry_backoff)
                logger.warning(
                    "Key set fetch for %s failed (%s), retrying in %.2fs",
                    provider_name,
                    type(last_error).__name__,
                    delay,
                )
                await asyncio.sleep(delay)
        raise KeyDiscoveryUnavailable(
            f"could not fetch key set for {provider_name}"
        ) from last_error

    def _validate_entry(
        self, provider_name: str, key_id: str, entry: dict[str, Any]
    ) -> ResolvedKey:
        if entry.get("kty") != EXPECTED_KTY:
            raise UnsupportedKeyType(f"key {key_id} is not an RSA key")
        alg = entry.get("alg")
        if alg is not None and alg != EXPECTED_ALG:
            raise UnsupportedKeyType(f"key {key_id} uses unsupported alg {alg!r}")
        use = entry.get("use")
        if use is not None and use != EXPECTED_USE:
            raise InvalidKeyUsage(f"key {key_id} is not a signing key")

        n = entry.get("n")
        e = entry.get("e")
        if not isinstance(n, str) or not isinstance(e, str):
            raise InvalidKeySet(f"key {key_id} is missing modulus or exponent")
        try:
            modulus = base64url_to_bytes(n)
            exponent = base64url_to_bytes(e)
        except ValueError as exc:
            raise InvalidKeySet(f"key {key_id} has malformed material") from exc
        if not exponent:
            raise InvalidKeySet(f"key {key_id} has an empty exponent")

        bits = int.from_bytes(modulus, "big").bit_length()
        if bits < self._min_key_bits:
            raise InsufficientKeySize(
                f"key {key_id} has {bits} bits, need at least {self._min_key_bits}"
            )
        return ResolvedKey(
            provider=provider_name,
            key_id=key_id,
            modulus=modulus,
            exponent=exponent,
            fetched_at=self._clock(),
        )


def _parse_document(response: httpx.Response, provider_name: str) -> dict[str, Any]:
    if response.status_code != httpx.codes.OK:
        raise KeyDiscoveryUnavailable(
            f"key set endpoint for {provider_name} returned {response.status_code}"
        )
    try:
        document = response.json()
    except ValueError as exc:
        raise InvalidKeySet(f"key set for {provider_name} is not JSON") from exc
    if not isinstance(document, dict):
        raise InvalidKeySet(f"key set for {provider_name} is not a JSON object")
    return document


def _find_key(document: dict[str, Any], key_id: str) -> dict[str, Any]:
    keys = document.get("keys")
    if not isinstance(keys, list):
        raise InvalidKeySet("key set has no keys collection")
    for entry in keys:
        if isinstance(entry, dict) and entry.get("kid") == key_id:
            return entry
    raise KeyNotFound(f"no key with kid {key_id!r}")
