# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Capability resolution.

The verifier depends only on the ``CapabilityResolver`` protocol: given a
capability URI, return the parsed Capability or raise. Implementations here
cover the common backings:

- InMemoryCapabilityResolver: a dict of known capabilities (tests, CLI)
- CachingCapabilityResolver: LRU/TTL cache in front of another resolver
- HttpCapabilityResolver: fetches capability documents over HTTP(S)

Resolvers never retry; a failure is terminal for that verification.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from .exceptions import CapabilityFormatError, ChainStructureError, ResolutionError
from .lru_cache import LRUCache
from .models import Capability

logger = logging.getLogger(__name__)


@runtime_checkable
class CapabilityResolver(Protocol):
    """Looks up capabilities by identifier."""

    def resolve(self, uri: str) -> Capability:
        """Return the capability identified by ``uri``.

        Raises:
            ResolutionError: If the capability is unknown, unreachable, or malformed.
        """
        ...


class InMemoryCapabilityResolver:
    """Resolver over a fixed set of capabilities."""

    def __init__(self, capabilities: Iterable[Capability] | None = None) -> None:
        self._capabilities: dict[str, Capability] = {}
        self._lock = threading.Lock()
        for capability in capabilities or ():
            self.add(capability)

    def add(self, capability: Capability) -> None:
        with self._lock:
            self._capabilities[capability.id] = capability

    def add_document(self, document: Mapping[str, Any]) -> Capability:
        """Parse and register a capability document."""
        capability = Capability.from_dict(document)
        self.add(capability)
        return capability

    def remove(self, uri: str) -> bool:
        with self._lock:
            return self._capabilities.pop(uri, None) is not None

    def resolve(self, uri: str) -> Capability:
        with self._lock:
            capability = self._capabilities.get(uri)
        if capability is None:
            raise ResolutionError(f"capability not found: {uri}", uri=uri)
        return capability

    def __len__(self) -> int:
        with self._lock:
            return len(self._capabilities)


class CachingCapabilityResolver:
    """Caches successful lookups of another resolver.

    Failures are never cached, so a capability that was briefly unreachable
    is fetched again on the next verification.
    """

    def __init__(
        self,
        inner: CapabilityResolver,
        max_size: int | None = None,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            inner: Resolver to delegate cache misses to
            max_size: Max cached capabilities (defaults to ZCAPLD_CACHE_MAX_SIZE)
            ttl_seconds: Entry lifetime (defaults to ZCAPLD_RESOLVER_CACHE_TTL)
            clock: Monotonic time source
        """
        if ttl_seconds is None:
            from .config import get_config

            ttl_seconds = get_config().resolver_cache_ttl_seconds
        self.inner = inner
        self._cache: LRUCache[str, Capability] = LRUCache(max_size=max_size, ttl_seconds=ttl_seconds, clock=clock)

    def resolve(self, uri: str) -> Capability:
        cached = self._cache.get(uri)
        if cached is not None:
            logger.debug(f"Capability cache hit: {uri}")
            return cached
        capability = self.inner.resolve(uri)
        self._cache.put(uri, capability)
        return capability

    def invalidate(self, uri: str) -> bool:
        return self._cache.invalidate(uri)

    def clear(self) -> None:
        self._cache.clear()

    def stats(self) -> dict[str, Any]:
        return self._cache.stats()


class HttpCapabilityResolver:
    """Fetches capability documents over HTTP.

    ``http(s)`` capability ids are fetched directly. Other ids (``urn:...``)
    are fetched from ``<base_url>/<percent-encoded id>`` when a base URL is
    configured.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        from .config import get_config

        config = get_config()
        base_url = base_url if base_url is not None else config.resolver_base_url
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout if timeout is not None else config.resolver_timeout_seconds
        self.headers = {"Accept": "application/json", **(headers or {})}
        self._transport = transport

    def _url(self, uri: str) -> str:
        if uri.startswith(("https://", "http://")):
            return uri
        if self.base_url is None:
            raise ResolutionError(f"no base URL configured to resolve {uri}", uri=uri)
        return f"{self.base_url}/{quote(uri, safe='')}"

    def resolve(self, uri: str) -> Capability:
        url = self._url(uri)
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.get(url, headers=self.headers)
        except httpx.TimeoutException as e:
            raise ResolutionError(f"timed out fetching capability {uri}", uri=uri) from e
        except httpx.HTTPError as e:
            raise ResolutionError(f"cannot fetch capability {uri}: {e}", uri=uri) from e

        if resp.status_code >= 400:
            raise ResolutionError(
                f"fetching capability {uri} returned HTTP {resp.status_code}",
                uri=uri,
                details={"status_code": resp.status_code},
            )

        try:
            document = resp.json()
        except json.JSONDecodeError as e:
            raise ResolutionError(f"capability {uri} is not valid JSON", uri=uri) from e

        try:
            capability = Capability.from_dict(document)
        except (CapabilityFormatError, ChainStructureError) as e:
            raise ResolutionError(f"capability {uri} is malformed: {e.message}", uri=uri) from e

        if capability.id != uri:
            raise ResolutionError(
                f"fetched capability id {capability.id} does not match requested {uri}",
                uri=uri,
                details={"actual": capability.id},
            )
        logger.debug(f"Resolved capability {uri} from {url}")
        return capability
