"""
Custom Exceptions for CloudSentry
=================================

This module defines the hierarchy of exceptions raised (or returned) by
the client cache, the credential broker and the delivery engine.

Exception Hierarchy
-------------------
::

    CloudSentryError (base)
    ├── ConfigurationError
    │   ├── MissingAuthSourceError
    │   └── UnsupportedServiceError
    ├── AWSClientError
    │   ├── CredentialsError
    │   │   └── AssumeRoleError
    │   ├── RegionError
    │   └── ServiceError
    └── DeliveryError
        ├── BatchSendError
        └── BatchRequestTooLongError

Configuration errors are caller mistakes and are never retried.
Delivery errors are normally returned inside a ``BatchResult`` rather
than raised.

Example
-------
>>> from cloudsentry.core.exceptions import UnsupportedServiceError
>>>
>>> try:
...     cache.get_client(integration, "not-a-service", "us-east-1")
... except UnsupportedServiceError as e:
...     print(f"Cannot poll: {e}")
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CloudSentryError(Exception):
    """
    Base exception for all CloudSentry errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    details : dict, optional
        Additional context about the error.

    Attributes
    ----------
    message : str
        The error message.
    details : dict
        Additional error details.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns
        -------
        dict
            Dictionary representation of the error.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationError(CloudSentryError):
    """
    Raised when an integration or request is misconfigured.

    These are caller errors: they fail immediately and retrying
    will never help.
    """

    pass


class MissingAuthSourceError(ConfigurationError):
    """
    Raised when an integration has no role ARN to assume.

    Parameters
    ----------
    integration_id : str
        Integration that is missing its auth source.
    """

    def __init__(self, integration_id: str) -> None:
        self.integration_id = integration_id
        super().__init__(
            f"Integration '{integration_id}' has no auth source to assume",
            details={"integration_id": integration_id},
        )


class UnsupportedServiceError(ConfigurationError):
    """
    Raised when no client constructor is registered for a service.

    Example
    -------
    >>> raise UnsupportedServiceError("sagemaker")
    """

    def __init__(self, service: str) -> None:
        self.service = service
        super().__init__(
            f"Cannot build client for unsupported service '{service}'",
            details={"service": service},
        )


# =============================================================================
# AWS Client Exceptions
# =============================================================================


class AWSClientError(CloudSentryError):
    """
    Base exception for AWS client-related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    service : str, optional
        The AWS service that caused the error.
    region : str, optional
        The AWS region where the error occurred.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        region: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.service = service
        self.region = region
        full_details = details or {}
        if service:
            full_details["service"] = service
        if region:
            full_details["region"] = region
        super().__init__(message, full_details)


class CredentialsError(AWSClientError):
    """Raised when credentials are invalid, missing or expired."""

    pass


class AssumeRoleError(CredentialsError):
    """
    Raised when STS rejects an AssumeRole request.

    Covers bad trust policies, access denied and throttling alike.
    The broker does not retry; callers decide.

    Parameters
    ----------
    role_arn : str
        The role that could not be assumed.
    error_code : str, optional
        AWS error code from the rejected call.
    """

    def __init__(
        self,
        message: str,
        role_arn: str,
        error_code: Optional[str] = None,
    ) -> None:
        self.role_arn = role_arn
        self.error_code = error_code
        details: Dict[str, Any] = {"role_arn": role_arn}
        if error_code:
            details["error_code"] = error_code
        super().__init__(message, service="sts", details=details)


class RegionError(AWSClientError):
    """
    Raised when there's an issue with the requested AWS region.

    Example
    -------
    >>> raise RegionError(
    ...     "Invalid region specified",
    ...     region="us-invalid-1"
    ... )
    """

    pass


class ServiceError(AWSClientError):
    """
    Raised when a service client cannot be constructed.

    Example
    -------
    >>> raise ServiceError(
    ...     "Failed to create ec2 client",
    ...     service="ec2",
    ...     region="us-east-1"
    ... )
    """

    pass


# =============================================================================
# Delivery Exceptions
# =============================================================================


class DeliveryError(CloudSentryError):
    """Base exception for batch delivery errors."""

    pass


class BatchSendError(DeliveryError):
    """
    A batch delivery failed permanently.

    Either the transport rejected a whole request, or the backoff
    budget ran out while some entries kept failing.

    Parameters
    ----------
    message : str
        Human-readable error message.
    success_count : int
        Entries confirmed delivered across the whole call.
    failed_count : int
        Entries returned to the caller as undelivered.
    """

    def __init__(
        self,
        message: str,
        success_count: int,
        failed_count: int,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.success_count = success_count
        self.failed_count = failed_count
        full_details = details or {}
        full_details["success_count"] = success_count
        full_details["failed_count"] = failed_count
        super().__init__(message, full_details)


class BatchRequestTooLongError(DeliveryError):
    """
    Some entries were never sent because each alone exceeds the byte cap.

    Parameters
    ----------
    oversized_count : int
        Number of oversized entries.
    max_bytes : int
        The per-request byte cap they exceeded.
    """

    def __init__(self, oversized_count: int, max_bytes: int) -> None:
        self.oversized_count = oversized_count
        self.max_bytes = max_bytes
        super().__init__(
            f"{oversized_count} entries exceed the {max_bytes} byte batch limit",
            details={"oversized_count": oversized_count, "max_bytes": max_bytes},
        )
