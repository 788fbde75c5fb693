"""
Batch Delivery
==============

Reliable delivery of collected records to a downstream SQS queue.

Classes
-------
BatchEntry
    One message with an id that is stable across retries.
BatchLimits
    Per-request entry and byte caps.
BatchResult
    Delivered count, undelivered entries and the reason.
SqsBatchSender
    Packs, sends and retries entries for one queue.
ExponentialBackoff
    Retry interval policy.

Example
-------
>>> from cloudsentry.delivery import send_message_batch, records_to_entries
>>>
>>> result = send_message_batch(sqs, queue_url, records_to_entries(records), 60)
>>> if result.error:
...     handle(result.undelivered, result.error)
"""

from cloudsentry.delivery.backoff import ExponentialBackoff
from cloudsentry.delivery.batch import (
    DEFAULT_LIMITS,
    MAX_BATCH_BYTES,
    MAX_BATCH_ENTRIES,
    BatchEntry,
    BatchLimits,
    BatchResult,
    pack_entries,
    records_to_entries,
    split_oversized,
)
from cloudsentry.delivery.sqs_batch import SqsBatchSender, send_message_batch

__all__ = [
    "DEFAULT_LIMITS",
    "MAX_BATCH_BYTES",
    "MAX_BATCH_ENTRIES",
    "BatchEntry",
    "BatchLimits",
    "BatchResult",
    "ExponentialBackoff",
    "SqsBatchSender",
    "pack_entries",
    "records_to_entries",
    "send_message_batch",
    "split_oversized",
]
