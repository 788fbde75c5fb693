"""
Core Data Model
===============

Data classes shared by the credential broker, the client cache and the
scan runner.

Classes
-------
Integration
    A configured monitoring target (one external AWS account).
Credential
    Temporary credentials obtained by assuming an integration's role.
ClientCacheKey
    Identity of one cached client.
CachedClient
    A client together with the credential it was built from.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, NamedTuple, Optional

from cloudsentry.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class Integration:
    """
    A configured monitoring target.

    Integrations are created by onboarding and are read-only here.

    Parameters
    ----------
    integration_id : str
        Unique identifier of the integration.
    auth_source : str, optional
        ARN of the cross-account role to assume.
    regions : list of str, optional
        Regions enabled for scanning.
    services : list of str, optional
        Services enabled for scanning.
    label : str, optional
        Human friendly name.

    Examples
    --------
    >>> integration = Integration(
    ...     integration_id="8349b647-f7b1-4cc2-a2ae-2f4f3ac1e51b",
    ...     auth_source="arn:aws:iam::123456789012:role/AuditRole",
    ...     regions=["us-east-1", "eu-west-1"],
    ...     services=["ec2", "s3"],
    ... )
    """

    integration_id: str
    auth_source: Optional[str] = None
    regions: List[str] = field(default_factory=list)
    services: List[str] = field(default_factory=list)
    label: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Integration:
        """
        Build an integration from a configuration mapping.

        Parameters
        ----------
        data : dict
            Mapping with at least an ``integration_id`` key.

        Returns
        -------
        Integration
            The parsed integration.

        Raises
        ------
        ConfigurationError
            If required keys are missing or have the wrong type.
        """
        if not isinstance(data, dict):
            raise ConfigurationError(
                "Integration entry must be an object",
                details={"entry": repr(data)},
            )
        integration_id = data.get("integration_id")
        if not integration_id or not isinstance(integration_id, str):
            raise ConfigurationError(
                "Integration entry is missing 'integration_id'",
                details={"entry": data},
            )
        for key in ("regions", "services"):
            value = data.get(key, [])
            if not isinstance(value, list) or not all(
                isinstance(item, str) for item in value
            ):
                raise ConfigurationError(
                    f"Integration '{integration_id}' has invalid '{key}'",
                    details={key: value},
                )
        return cls(
            integration_id=integration_id,
            auth_source=data.get("auth_source"),
            regions=list(data.get("regions", [])),
            services=list(data.get("services", [])),
            label=data.get("label"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "integration_id": self.integration_id,
            "auth_source": self.auth_source,
            "regions": list(self.regions),
            "services": list(self.services),
            "label": self.label,
        }


@dataclass(frozen=True)
class Credential:
    """
    Temporary credentials scoped to one external account.

    A credential counts as expired ``expiry_window`` before its real
    expiration so that consumers never sign a request with credentials
    that expire on the wire.

    Parameters
    ----------
    access_key_id : str
        Temporary access key.
    secret_access_key : str
        Temporary secret key.
    session_token : str
        STS session token.
    expiration : datetime
        Absolute, timezone-aware expiry time.
    expiry_window : timedelta, default=5 seconds
        Safety margin subtracted from ``expiration``.
    """

    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: datetime
    expiry_window: timedelta = timedelta(seconds=5)

    @property
    def refresh_at(self) -> datetime:
        """Moment from which the credential must no longer be used."""
        return self.expiration - self.expiry_window

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """
        Check whether the credential is inside its expiry window.

        Parameters
        ----------
        now : datetime, optional
            Current time; defaults to ``datetime.now(timezone.utc)``.

        Returns
        -------
        bool
            True if the credential must be refreshed.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        return now >= self.refresh_at

    def boto3_kwargs(self) -> Dict[str, str]:
        """Keyword arguments for ``boto3.Session``."""
        return {
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key,
            "aws_session_token": self.session_token,
        }

    def __repr__(self) -> str:
        """Return string representation without secrets."""
        return (
            f"Credential(access_key_id='{self.access_key_id}', "
            f"expiration='{self.expiration.isoformat()}')"
        )


class ClientCacheKey(NamedTuple):
    """Identity of one cached client."""

    integration_id: str
    service: str
    region: str


@dataclass(frozen=True)
class CachedClient:
    """
    A service client and the credential it was built from.

    Parameters
    ----------
    client : Any
        The boto3 client (or any client built by a ClientFactory).
    credential : Credential
        Credential owned exclusively by this entry.
    """

    client: Any
    credential: Credential

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the owning credential is expired."""
        return self.credential.is_expired(now)
