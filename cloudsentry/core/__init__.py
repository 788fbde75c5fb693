"""
Core Components
===============

This package provides the credential and client layer of CloudSentry:

- :class:`StsCredentialBroker` - Assumes integration roles through STS
- :class:`Boto3ClientFactory` - Builds region-bound boto3 clients
- :class:`ClientCache` - Shared, expiry-aware cache of clients
- :class:`ScanRunner` - Parallel poll tasks over the shared cache
- Exception hierarchy for error handling

Classes
-------
Integration
    A configured monitoring target.
Credential
    Temporary credentials with an expiry window.
ClientCache
    Maps (integration, service, region) to a ready-to-use client.
ScanRunner
    Fans poll tasks out over a thread pool.

Exceptions
----------
CloudSentryError
    Base exception for all CloudSentry errors.
ConfigurationError
    Caller errors such as a missing role or unsupported service.
AWSClientError
    Errors talking to AWS.
DeliveryError
    Batch delivery failures.

Example
-------
>>> from cloudsentry.core import ClientCache, Integration
>>>
>>> cache = ClientCache()
>>> integration = Integration("prod", auth_source=role_arn)
>>> iam = cache.get_client(integration, "iam", "us-east-1")

See Also
--------
cloudsentry.pollers : Service constructor registry.
cloudsentry.delivery : Batch delivery engine.
"""

from cloudsentry.core.aws_client import Boto3ClientFactory, ClientFactory
from cloudsentry.core.client_cache import ClientCache
from cloudsentry.core.config import load_integrations, parse_integrations
from cloudsentry.core.credentials import CredentialBroker, StsCredentialBroker
from cloudsentry.core.exceptions import (
    AssumeRoleError,
    AWSClientError,
    BatchRequestTooLongError,
    BatchSendError,
    CloudSentryError,
    ConfigurationError,
    CredentialsError,
    DeliveryError,
    MissingAuthSourceError,
    RegionError,
    ServiceError,
    UnsupportedServiceError,
)
from cloudsentry.core.models import CachedClient, ClientCacheKey, Credential, Integration
from cloudsentry.core.scan_runner import ScanRunner, ScanRunResult, ScanTask

__all__ = [
    # Models
    "Integration",
    "Credential",
    "ClientCacheKey",
    "CachedClient",
    # Credentials and clients
    "CredentialBroker",
    "StsCredentialBroker",
    "ClientFactory",
    "Boto3ClientFactory",
    "ClientCache",
    # Scanning
    "ScanRunner",
    "ScanRunResult",
    "ScanTask",
    # Configuration
    "load_integrations",
    "parse_integrations",
    # Exceptions - Base
    "CloudSentryError",
    # Exceptions - Configuration
    "ConfigurationError",
    "MissingAuthSourceError",
    "UnsupportedServiceError",
    # Exceptions - AWS Client
    "AWSClientError",
    "CredentialsError",
    "AssumeRoleError",
    "RegionError",
    "ServiceError",
    # Exceptions - Delivery
    "DeliveryError",
    "BatchSendError",
    "BatchRequestTooLongError",
]
