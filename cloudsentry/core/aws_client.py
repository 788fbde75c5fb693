"""
AWS Client Factory Module
=========================

Builds boto3 service clients bound to one set of temporary credentials
and one region.

Every client gets its own ``boto3.Session`` created from the credential
it was built with and pinned to the requested region. Clients are never
re-pointed at another region through a per-call override, so a
client's signing region always matches the region it was requested for.

Classes
-------
ClientFactory
    Protocol for objects that build clients for the client cache.
Boto3ClientFactory
    boto3 implementation backed by a :class:`PollerRegistry`.

Example
-------
>>> from cloudsentry.core.aws_client import Boto3ClientFactory
>>>
>>> factory = Boto3ClientFactory(max_retries=6)
>>> ec2 = factory.build("ec2", credential, "eu-west-1")

See Also
--------
boto3 : AWS SDK for Python
botocore : Low-level AWS client library
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, NoRegionError, UnknownServiceError

from cloudsentry.core.exceptions import RegionError, ServiceError
from cloudsentry.core.models import Credential
from cloudsentry.pollers.registry import DEFAULT_REGISTRY, PollerRegistry

# Module logger
logger = logging.getLogger(__name__)

# Retries performed by botocore inside a single API call
DEFAULT_MAX_RETRIES = 6
DEFAULT_TIMEOUT = 30


class ClientFactory(Protocol):
    """Builds service clients for the client cache."""

    def supports(self, service: str) -> bool:
        ...

    def build(self, service: str, credential: Credential, region: str) -> Any:
        ...


class Boto3ClientFactory:
    """
    Build boto3 clients through the poller dispatch registry.

    Parameters
    ----------
    registry : PollerRegistry, optional
        Service constructors. Defaults to the built-in registry.
    max_retries : int, default=6
        Maximum attempts botocore makes for a failed API call.
    timeout : int, default=30
        Connect and read timeout in seconds.

    Examples
    --------
    >>> factory = Boto3ClientFactory()
    >>> factory.supports("guardduty")
    True
    >>> s3 = factory.build("s3", credential, "us-east-1")
    """

    def __init__(
        self,
        registry: Optional[PollerRegistry] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.registry = registry if registry is not None else DEFAULT_REGISTRY
        self.max_retries = max_retries
        self.timeout = timeout
        self._config = self._create_config()

    def _create_config(self) -> Config:
        """
        Create botocore configuration with retry and timeout settings.

        Notes
        -----
        Uses adaptive retry mode, which also rate-limits the client
        when the service starts throttling.
        """
        return Config(
            retries={
                "max_attempts": self.max_retries,
                "mode": "adaptive",
            },
            connect_timeout=self.timeout,
            read_timeout=self.timeout,
        )

    def supports(self, service: str) -> bool:
        """Check whether a constructor is registered for ``service``."""
        return service in self.registry

    def create_session(self, credential: Credential, region: str) -> boto3.Session:
        """
        Create a session bound to a credential and a region.

        Raises
        ------
        RegionError
            If the region is empty.
        """
        if not region:
            raise RegionError(
                "A region is required to build a client",
                details={"hint": "Specify a valid AWS region like 'us-east-1'"},
            )
        return boto3.Session(region_name=region, **credential.boto3_kwargs())

    def build(self, service: str, credential: Credential, region: str) -> Any:
        """
        Build a client for ``service`` in ``region``.

        Parameters
        ----------
        service : str
            Poller service name (see ``POLLER_SERVICES``).
        credential : Credential
            Credentials the client signs with.
        region : str
            Region the client talks to.

        Returns
        -------
        botocore.client.BaseClient
            The new client.

        Raises
        ------
        UnsupportedServiceError
            If ``service`` is not registered.
        RegionError
            If the region is missing.
        ServiceError
            If botocore fails to create the client.
        """
        constructor = self.registry.lookup(service)
        session = self.create_session(credential, region)
        try:
            client = constructor(session, self._config)
        except NoRegionError:
            raise RegionError(
                f"Invalid or missing region: {region}",
                service=service,
                region=region,
            )
        except (BotoCoreError, UnknownServiceError) as e:
            logger.exception(f"Failed to create {service} client")
            raise ServiceError(
                f"Failed to create {service} client: {e}",
                service=service,
                region=region,
            ) from e

        logger.debug(f"Created {service} client for {region}")
        return client

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"Boto3ClientFactory(services={len(self.registry)}, "
            f"max_retries={self.max_retries})"
        )
