"""
Credential Broker Module
========================

Exchanges an integration's cross-account role for short-lived
credentials using STS AssumeRole.

The broker is stateless: it does not cache and it does not retry.
Caching belongs to :class:`~cloudsentry.core.client_cache.ClientCache`;
retry policy belongs to the caller.

Classes
-------
CredentialBroker
    Protocol implemented by anything that can assume an integration role.
StsCredentialBroker
    boto3/STS implementation.

Example
-------
>>> from cloudsentry.core.credentials import StsCredentialBroker
>>>
>>> broker = StsCredentialBroker()
>>> credential = broker.assume_role(integration)
>>> print(credential.expiration)
"""

from __future__ import annotations

import logging
import threading
from datetime import timedelta, timezone
from typing import Any, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from cloudsentry.core.exceptions import AssumeRoleError, MissingAuthSourceError
from cloudsentry.core.models import Credential, Integration

# Module logger
logger = logging.getLogger(__name__)

# The amount of time credentials are valid
ASSUME_ROLE_DURATION = timedelta(hours=1)
# Credentials are treated as expired this long before they really expire
ASSUME_ROLE_EXPIRY_WINDOW = timedelta(seconds=5)
DEFAULT_SESSION_NAME = "cloudsentry-poller"


class CredentialBroker(Protocol):
    """Anything that can turn an integration into temporary credentials."""

    def assume_role(self, integration: Integration) -> Credential:
        ...


class StsCredentialBroker:
    """
    Assume integration roles through STS.

    Parameters
    ----------
    session : boto3.Session, optional
        Session whose credentials are used to call STS. Defaults to a
        session built from the ambient credential chain.
    duration : timedelta, default=1 hour
        Requested validity of the temporary credentials.
    expiry_window : timedelta, default=5 seconds
        Safety margin stamped onto every credential returned.
    session_name : str, default="cloudsentry-poller"
        RoleSessionName recorded in CloudTrail.
    region : str, optional
        Region of the STS endpoint.

    Examples
    --------
    >>> broker = StsCredentialBroker(duration=timedelta(minutes=30))
    >>> credential = broker.assume_role(integration)
    >>> credential.is_expired()
    False
    """

    def __init__(
        self,
        session: Optional[boto3.Session] = None,
        duration: timedelta = ASSUME_ROLE_DURATION,
        expiry_window: timedelta = ASSUME_ROLE_EXPIRY_WINDOW,
        session_name: str = DEFAULT_SESSION_NAME,
        region: Optional[str] = None,
    ) -> None:
        self.duration = duration
        self.expiry_window = expiry_window
        self.session_name = session_name
        self.region = region
        self._session = session
        self._sts: Optional[Any] = None
        self._sts_lock = threading.Lock()

    @property
    def sts(self) -> Any:
        """STS client (lazy initialization)."""
        with self._sts_lock:
            if self._sts is None:
                session = self._session or boto3.Session()
                self._sts = session.client("sts", region_name=self.region)
        return self._sts

    def assume_role(self, integration: Integration) -> Credential:
        """
        Assume the integration's role.

        Parameters
        ----------
        integration : Integration
            Integration whose ``auth_source`` will be assumed.

        Returns
        -------
        Credential
            Fresh credentials carrying this broker's expiry window.

        Raises
        ------
        MissingAuthSourceError
            If the integration has no role ARN.
        AssumeRoleError
            If STS rejects the request.
        """
        role_arn = integration.auth_source
        if not role_arn:
            raise MissingAuthSourceError(integration.integration_id)

        logger.debug(
            f"Assuming role {role_arn} for integration {integration.integration_id}"
        )
        try:
            response = self.sts.assume_role(
                RoleArn=role_arn,
                RoleSessionName=self.session_name,
                DurationSeconds=int(self.duration.total_seconds()),
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(f"Failed to assume role {role_arn}: {error_code}")
            raise AssumeRoleError(
                f"Failed to assume role: {e}",
                role_arn=role_arn,
                error_code=error_code,
            ) from e
        except BotoCoreError as e:
            logger.error(f"Failed to assume role {role_arn}: {e}")
            raise AssumeRoleError(
                f"Failed to assume role: {e}",
                role_arn=role_arn,
            ) from e

        creds = response["Credentials"]
        expiration = creds["Expiration"]
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)

        return Credential(
            access_key_id=creds["AccessKeyId"],
            secret_access_key=creds["SecretAccessKey"],
            session_token=creds["SessionToken"],
            expiration=expiration,
            expiry_window=self.expiry_window,
        )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"StsCredentialBroker(duration={self.duration}, "
            f"session_name={self.session_name!r})"
        )
