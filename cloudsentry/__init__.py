"""
CloudSentry: Cloud Account Polling & Reliable Delivery Core
===========================================================

Assumes temporary credentials into monitored AWS accounts, caches
per-account/per-service/per-region clients, and reliably ships collected
records to a downstream SQS queue.

Modules
-------
core
    Credentials, client cache, scan runner and exceptions
pollers
    Registry of supported services and their client constructors
delivery
    Batched, retrying SQS delivery

Example
-------
>>> from cloudsentry import ClientCache, Integration, SqsBatchSender
>>>
>>> cache = ClientCache()
>>> integration = Integration(
...     "prod", auth_source="arn:aws:iam::123456789012:role/AuditRole"
... )
>>> ec2 = cache.get_client(integration, "ec2", "us-east-1")
>>>
>>> sender = SqsBatchSender(sqs, queue_url)
>>> result = sender.send(entries, max_elapsed_time=60)

See Also
--------
boto3 : AWS SDK for Python
"""

__version__ = "0.1.0"
__author__ = "CloudSentry Team"
__license__ = "MIT"

# Public API
from cloudsentry.core.client_cache import ClientCache
from cloudsentry.core.exceptions import CloudSentryError, UnsupportedServiceError
from cloudsentry.core.models import Credential, Integration
from cloudsentry.delivery import BatchEntry, BatchResult, SqsBatchSender, send_message_batch

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Core classes
    "ClientCache",
    "Credential",
    "Integration",
    "CloudSentryError",
    "UnsupportedServiceError",
    # Delivery
    "BatchEntry",
    "BatchResult",
    "SqsBatchSender",
    "send_message_batch",
]
