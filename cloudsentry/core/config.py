"""
Integration configuration loading.

Integrations are produced by onboarding; this module only reads them
from a JSON document of the form::

    {
        "integrations": [
            {
                "integration_id": "prod-account",
                "auth_source": "arn:aws:iam::123456789012:role/AuditRole",
                "regions": ["us-east-1", "eu-west-1"],
                "services": ["ec2", "s3"],
                "label": "Production"
            }
        ]
    }

A bare list of integration objects is accepted as well.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Union

from cloudsentry.core.exceptions import ConfigurationError
from cloudsentry.core.models import Integration

# Module logger
logger = logging.getLogger(__name__)


def parse_integrations(document: Any) -> List[Integration]:
    """
    Parse integrations from a decoded JSON document.

    Raises
    ------
    ConfigurationError
        If the document has the wrong shape or ids repeat.
    """
    if isinstance(document, dict):
        document = document.get("integrations")
    if not isinstance(document, list):
        raise ConfigurationError(
            "Configuration must be a list of integrations or an object "
            "with an 'integrations' list"
        )

    integrations = [Integration.from_dict(entry) for entry in document]

    seen = set()
    for integration in integrations:
        if integration.integration_id in seen:
            raise ConfigurationError(
                f"Duplicate integration id '{integration.integration_id}'",
                details={"integration_id": integration.integration_id},
            )
        seen.add(integration.integration_id)
    return integrations


def load_integrations(path: Union[str, Path]) -> List[Integration]:
    """
    Load integrations from a JSON file.

    Parameters
    ----------
    path : str or Path
        Path to the configuration file.

    Returns
    -------
    list of Integration
        Integrations in file order.

    Raises
    ------
    ConfigurationError
        If the file cannot be read or is not a valid configuration.
    """
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            document = json.load(f)
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read configuration file: {e}", details={"path": str(path)}
        ) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON in configuration file: {e}", details={"path": str(path)}
        ) from e

    integrations = parse_integrations(document)
    logger.info(f"Loaded {len(integrations)} integrations from {path}")
    return integrations
