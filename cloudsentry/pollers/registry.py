"""
Poller Dispatch Registry
========================

Maps the service names used by the resource pollers to the function
that builds that service's boto3 client.

The registry is the only place where an unsupported service is
detected. Adding a service is an addition-only change: register a
constructor here and the client cache picks it up.

Example
-------
>>> from cloudsentry.pollers.registry import DEFAULT_REGISTRY
>>>
>>> construct = DEFAULT_REGISTRY.lookup("cloudwatchlogs")
>>> logs = construct(session, config)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

import boto3
from botocore.config import Config

from cloudsentry.core.exceptions import ConfigurationError, UnsupportedServiceError

# Module logger
logger = logging.getLogger(__name__)

ClientConstructor = Callable[[boto3.Session, Optional[Config]], Any]

# Poller service name -> boto3 service name
POLLER_SERVICES: Dict[str, str] = {
    "acm": "acm",
    "applicationautoscaling": "application-autoscaling",
    "cloudformation": "cloudformation",
    "cloudtrail": "cloudtrail",
    "cloudwatchlogs": "logs",
    "configservice": "config",
    "dynamodb": "dynamodb",
    "ec2": "ec2",
    "ecs": "ecs",
    "elbv2": "elbv2",
    "guardduty": "guardduty",
    "iam": "iam",
    "kms": "kms",
    "lambda": "lambda",
    "rds": "rds",
    "redshift": "redshift",
    "s3": "s3",
    "waf": "waf",
    "waf-regional": "waf-regional",
}


def boto3_constructor(boto3_service: str) -> ClientConstructor:
    """
    Build a client constructor for a boto3 service.

    The returned function creates the client from the session it is
    given, so the client inherits that session's credentials and region.

    Parameters
    ----------
    boto3_service : str
        Service name as understood by ``boto3.Session.client``.

    Returns
    -------
    callable
        ``constructor(session, config) -> client``.
    """

    def construct(session: boto3.Session, config: Optional[Config] = None) -> Any:
        return session.client(boto3_service, config=config)

    construct.__name__ = f"construct_{boto3_service.replace('-', '_')}"
    construct.boto3_service = boto3_service  # type: ignore[attr-defined]
    return construct


class PollerRegistry:
    """
    Registration table from service name to client constructor.

    Parameters
    ----------
    constructors : mapping, optional
        Initial service name to constructor entries.

    Examples
    --------
    >>> registry = PollerRegistry()
    >>> registry.register("ec2", boto3_constructor("ec2"))
    >>> "ec2" in registry
    True
    >>> registry.lookup("sagemaker")
    Traceback (most recent call last):
    ...
    UnsupportedServiceError: Cannot build client for unsupported service 'sagemaker'
    """

    def __init__(
        self, constructors: Optional[Mapping[str, ClientConstructor]] = None
    ) -> None:
        self._constructors: Dict[str, ClientConstructor] = {}
        for service, constructor in (constructors or {}).items():
            self.register(service, constructor)

    def register(self, service: str, constructor: ClientConstructor) -> None:
        """
        Register a constructor for a service.

        Raises
        ------
        ConfigurationError
            If the service is already registered.
        """
        if service in self._constructors:
            raise ConfigurationError(
                f"Service '{service}' is already registered",
                details={"service": service},
            )
        self._constructors[service] = constructor

    def lookup(self, service: str) -> ClientConstructor:
        """
        Get the constructor for a service.

        Raises
        ------
        UnsupportedServiceError
            If nothing is registered under ``service``.
        """
        try:
            return self._constructors[service]
        except KeyError:
            logger.error(f"Cannot build client for unsupported service {service!r}")
            raise UnsupportedServiceError(service) from None

    def services(self) -> List[str]:
        """Sorted list of registered service names."""
        return sorted(self._constructors)

    def __contains__(self, service: object) -> bool:
        return service in self._constructors

    def __iter__(self) -> Iterator[str]:
        return iter(self.services())

    def __len__(self) -> int:
        return len(self._constructors)

    def __repr__(self) -> str:
        """Return string representation."""
        return f"PollerRegistry(services={len(self._constructors)})"


def build_default_registry() -> PollerRegistry:
    """Registry with one boto3 constructor per supported poller service."""
    return PollerRegistry(
        {
            service: boto3_constructor(boto3_service)
            for service, boto3_service in POLLER_SERVICES.items()
        }
    )


DEFAULT_REGISTRY = build_default_registry()
