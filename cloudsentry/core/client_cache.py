"""
Client Cache Module
===================

Caches service clients per (integration, service, region) and rebuilds
them when the credentials they were built with expire.

The cache is shared by all scan threads. Lookups of a fresh entry only
take the map lock. Rebuilding a stale key is serialized through a
per-key lock, so concurrent callers for the same key wait for one role
assumption instead of each making their own, while callers for other
keys are not blocked. Entries are stored whole, so readers never see a
half-built client.

Classes
-------
ClientCache
    Credential-lifecycle-aware client cache.

Example
-------
>>> from cloudsentry.core.client_cache import ClientCache
>>>
>>> cache = ClientCache()
>>> ec2 = cache.get_client(integration, "ec2", "us-west-2")
>>> ec2.describe_instances()

Notes
-----
Expiry is checked on every lookup. There is no background refresh and
nothing is persisted; a new process starts with an empty cache.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from cloudsentry.core.aws_client import Boto3ClientFactory, ClientFactory
from cloudsentry.core.credentials import CredentialBroker, StsCredentialBroker
from cloudsentry.core.exceptions import UnsupportedServiceError
from cloudsentry.core.models import CachedClient, ClientCacheKey, Integration

# Module logger
logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClientCache:
    """
    Thread-safe cache of service clients bound to assumed-role credentials.

    Parameters
    ----------
    broker : CredentialBroker, optional
        Source of fresh credentials. Defaults to :class:`StsCredentialBroker`.
    factory : ClientFactory, optional
        Builds clients from a credential and region. Defaults to
        :class:`Boto3ClientFactory`.
    clock : callable, optional
        Returns the current timezone-aware time. Used for expiry checks.

    Examples
    --------
    Two calls in a row share one client:

    >>> cache = ClientCache()
    >>> first = cache.get_client(integration, "s3", "us-east-1")
    >>> second = cache.get_client(integration, "s3", "us-east-1")
    >>> first is second
    True

    Regions are cached independently:

    >>> west = cache.get_client(integration, "s3", "us-west-2")
    >>> west is first
    False
    """

    def __init__(
        self,
        broker: Optional[CredentialBroker] = None,
        factory: Optional[ClientFactory] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.broker = broker if broker is not None else StsCredentialBroker()
        self.factory = factory if factory is not None else Boto3ClientFactory()
        self._clock = clock or _utcnow

        self._entries: Dict[ClientCacheKey, CachedClient] = {}
        self._key_locks: Dict[ClientCacheKey, threading.Lock] = {}
        self._lock = threading.Lock()

    def _fresh_entry(self, key: ClientCacheKey) -> Optional[CachedClient]:
        """Return the entry for ``key`` if it exists and is not expired."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            logger.debug(f"Cached client has expired credentials: {key}")
            return None
        return entry

    def _lock_for(self, key: ClientCacheKey) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def get_client(self, integration: Integration, service: str, region: str) -> Any:
        """
        Get a client for an integration, service and region.

        Returns the cached client while its credential is valid; otherwise
        assumes the integration's role again, builds a new client and
        replaces the cache entry.

        Parameters
        ----------
        integration : Integration
            Integration whose role the client acts under.
        service : str
            Poller service name, e.g. ``"ec2"`` or ``"cloudwatchlogs"``.
        region : str
            AWS region the client is bound to.

        Returns
        -------
        Any
            A client whose credential is valid for at least the expiry
            window at the moment of return.

        Raises
        ------
        UnsupportedServiceError
            If no constructor is registered for ``service``. Raised before
            any remote call.
        MissingAuthSourceError
            If the integration has no role to assume.
        AssumeRoleError
            If STS rejects the role assumption.
        """
        if not self.factory.supports(service):
            logger.error(f"Cannot build client for unsupported service {service!r}")
            raise UnsupportedServiceError(service)

        key = ClientCacheKey(integration.integration_id, service, region)

        entry = self._fresh_entry(key)
        if entry is not None:
            logger.debug(f"Using cached client for {key}")
            return entry.client

        with self._lock_for(key):
            # Another thread may have rebuilt the entry while we waited
            entry = self._fresh_entry(key)
            if entry is not None:
                return entry.client

            logger.debug(f"Building client for {key}")
            credential = self.broker.assume_role(integration)
            client = self.factory.build(service, credential, region)
            entry = CachedClient(client=client, credential=credential)
            with self._lock:
                self._entries[key] = entry

        return entry.client

    def clear(self) -> None:
        """Drop every cached client."""
        with self._lock:
            self._entries.clear()
            self._key_locks.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __enter__(self) -> ClientCache:
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager and drop cached clients."""
        self.clear()

    def __repr__(self) -> str:
        """Return string representation."""
        return f"ClientCache(entries={len(self)}, broker={self.broker!r})"
