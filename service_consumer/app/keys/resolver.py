"""
Verification key resolution for Tool-signed assertions.
"""

import json
import time
import httpx
from typing import Dict, Any, Optional, Tuple, Union

from shared.logging import get_logger
from shared.circuit_breaker import CircuitBreakerManager, CircuitBreakerOpenException
from shared.config import BaseConfig
from shared.metrics import MetricsCollector
from ..errors import KeyResolutionError
from ..models import AuthConfig, JwkSetRef, StaticJwk, StaticRawKey


KeyMaterial = Union[Dict[str, Any], str]


class KeyResolver:
    """Produces the key a Tool signs its assertions with.

    Remote JWK sets are fetched without holding any lock, with a bounded
    timeout, behind one circuit breaker per key set URL. Matched keys are
    cached per (key set URL, kid) for ``cache_ttl`` seconds.
    """

    def __init__(self,
                 cache_ttl: int = 300,
                 http_timeout: float = 5.0,
                 failure_threshold: int = 5,
                 recovery_timeout: float = 30.0,
                 http_client: Optional[httpx.AsyncClient] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.cache_ttl = cache_ttl
        self.http_timeout = http_timeout
        self.logger = get_logger("consumer.keys")
        self.metrics = metrics

        # Injected clients are owned by the caller
        self._http_client = http_client

        self._key_cache: Dict[Tuple[str, str], Tuple[Dict[str, Any], float]] = {}

        self.circuit_breakers = CircuitBreakerManager(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            expected_exception=httpx.HTTPError
        )

    @classmethod
    def from_config(cls, config: BaseConfig, **kwargs) -> "KeyResolver":
        return cls(
            cache_ttl=config.jwks_cache_ttl,
            http_timeout=config.jwks_http_timeout,
            failure_threshold=config.jwks_failure_threshold,
            recovery_timeout=config.jwks_recovery_timeout,
            **kwargs
        )

    async def resolve_key(self, auth_config: Optional[AuthConfig], key_id: Optional[str]) -> KeyMaterial:
        """Return the matched JWK (as a mapping) or the registered PEM key."""
        if isinstance(auth_config, JwkSetRef):
            return await self._resolve_from_key_set(auth_config, key_id)

        if isinstance(auth_config, StaticJwk):
            if not auth_config.jwk:
                raise KeyResolutionError("KEY_NOT_FOUND", "No JWK registered for Tool")
            if isinstance(auth_config.jwk, str):
                try:
                    return json.loads(auth_config.jwk)
                except ValueError:
                    raise KeyResolutionError("KEY_NOT_FOUND", "Registered JWK is not valid JSON")
            return auth_config.jwk

        if isinstance(auth_config, StaticRawKey):
            if not auth_config.key:
                raise KeyResolutionError("KEY_NOT_FOUND", "No key registered for Tool")
            return auth_config.key

        raise KeyResolutionError("AUTH_CONFIG_NOT_FOUND", "Tool has no usable authentication configuration")

    async def _resolve_from_key_set(self, auth_config: JwkSetRef, key_id: Optional[str]) -> Dict[str, Any]:
        if not key_id:
            raise KeyResolutionError("MISSING_KEY_ID", "Token header carries no kid")
        if not auth_config.url:
            raise KeyResolutionError("AUTH_CONFIG_NOT_FOUND", "JWK set URL is not registered")

        cached = self._key_cache.get((auth_config.url, key_id))
        if cached is not None and time.time() - cached[1] < self.cache_ttl:
            return cached[0]

        keys = await self._fetch_key_set(auth_config.url)
        fetched_at = time.time()

        matched = None
        for key in keys:
            if not isinstance(key, dict):
                continue
            if self.cache_ttl > 0 and key.get("kid"):
                self._key_cache[(auth_config.url, key["kid"])] = (key, fetched_at)
            if key.get("kid") == key_id:
                matched = key

        if matched is None:
            self.logger.warning("Key not found in key set", url=auth_config.url, kid=key_id)
            raise KeyResolutionError("KEY_NOT_FOUND", f"No key with kid {key_id}", {"kid": key_id})

        return matched

    async def _fetch_key_set(self, url: str) -> list:
        """Fetch the ``keys`` array of a remote JWK set."""

        async def _fetch():
            if self._http_client is not None:
                response = await self._http_client.get(url, timeout=self.http_timeout)
            else:
                async with httpx.AsyncClient(timeout=self.http_timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
            return response.json()

        breaker = self.circuit_breakers.get_circuit_breaker(url)
        start_time = time.time()
        try:
            data = await breaker.call(_fetch)
        except CircuitBreakerOpenException as e:
            self._record_fetch("blocked", start_time)
            self.logger.warning("Key set fetch blocked", url=url)
            raise KeyResolutionError("KEYSET_UNAVAILABLE", str(e), {"url": url})
        except (httpx.HTTPError, ValueError) as e:
            self._record_fetch("error", start_time)
            self.logger.error("Failed to fetch key set", url=url, error=str(e))
            raise KeyResolutionError("KEYSET_UNAVAILABLE", f"Key set fetch failed: {e}", {"url": url})

        keys = data.get("keys") if isinstance(data, dict) else None
        if not isinstance(keys, list):
            self._record_fetch("malformed", start_time)
            raise KeyResolutionError("KEYSET_UNAVAILABLE", "Key set response has no keys array", {"url": url})

        self._record_fetch("ok", start_time)
        self.logger.info("Key set fetched", url=url, keys_count=len(keys))
        return keys

    def _record_fetch(self, status: str, start_time: float):
        if self.metrics is not None:
            self.metrics.record_jwks_fetch(status, time.time() - start_time)
