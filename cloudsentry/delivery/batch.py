"""
Batch Model Module
==================

Entries, transport limits, packing and the result of a batch delivery.

Classes
-------
BatchEntry
    One logical message with a stable id.
BatchLimits
    Hard per-request caps of the transport.
BatchResult
    Outcome of delivering a sequence of entries.

Functions
---------
split_oversized
    Separate entries that can never fit in a request.
pack_entries
    Greedily pack entries into physical requests.
records_to_entries
    Turn collected records into entries with sequential ids.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from cloudsentry.core.exceptions import DeliveryError

# SQS accepts at most 10 entries and 262144 bytes per SendMessageBatch.
# The byte cap leaves headroom for attributes and request overhead.
MAX_BATCH_ENTRIES = 10
MAX_BATCH_BYTES = 260000


@dataclass(frozen=True)
class BatchEntry:
    """
    One message to deliver.

    Parameters
    ----------
    id : str
        Identifier unique within one submission and stable across retries.
    body : str
        Message payload.
    message_attributes : dict, optional
        SQS message attributes.
    message_group_id : str, optional
        FIFO queue group id.
    message_deduplication_id : str, optional
        FIFO queue deduplication id.
    delay_seconds : int, optional
        Per-message delivery delay.
    """

    id: str
    body: str
    message_attributes: Optional[Dict[str, Any]] = None
    message_group_id: Optional[str] = None
    message_deduplication_id: Optional[str] = None
    delay_seconds: Optional[int] = None

    @property
    def size(self) -> int:
        """Payload size in bytes (UTF-8 encoded body)."""
        return len(self.body.encode("utf-8"))

    def to_request(self) -> Dict[str, Any]:
        """Entry as expected by ``SQS.Client.send_message_batch``."""
        request: Dict[str, Any] = {"Id": self.id, "MessageBody": self.body}
        if self.message_attributes:
            request["MessageAttributes"] = self.message_attributes
        if self.message_group_id is not None:
            request["MessageGroupId"] = self.message_group_id
        if self.message_deduplication_id is not None:
            request["MessageDeduplicationId"] = self.message_deduplication_id
        if self.delay_seconds is not None:
            request["DelaySeconds"] = self.delay_seconds
        return request


@dataclass(frozen=True)
class BatchLimits:
    """
    Per-request caps of the transport.

    Parameters
    ----------
    max_entries : int, default=10
        Maximum entries in one physical request.
    max_bytes : int, default=260000
        Maximum cumulative payload bytes in one physical request.
    """

    max_entries: int = MAX_BATCH_ENTRIES
    max_bytes: int = MAX_BATCH_BYTES

    def __post_init__(self) -> None:
        if self.max_entries < 1 or self.max_bytes < 1:
            raise ValueError("Batch limits must be positive")


DEFAULT_LIMITS = BatchLimits()


def split_oversized(
    entries: Iterable[BatchEntry], limits: BatchLimits = DEFAULT_LIMITS
) -> Tuple[List[BatchEntry], List[BatchEntry]]:
    """
    Separate entries that fit a request from those that never can.

    Returns
    -------
    tuple of (list, list)
        ``(sendable, oversized)``, both in input order.
    """
    sendable: List[BatchEntry] = []
    oversized: List[BatchEntry] = []
    for entry in entries:
        if entry.size > limits.max_bytes:
            oversized.append(entry)
        else:
            sendable.append(entry)
    return sendable, oversized


def pack_entries(
    entries: Iterable[BatchEntry], limits: BatchLimits = DEFAULT_LIMITS
) -> List[List[BatchEntry]]:
    """
    Greedily pack entries into physical requests.

    Entries are taken in order. A request is closed when it holds
    ``max_entries`` entries or when the next entry would push its
    cumulative size over ``max_bytes``.

    Parameters
    ----------
    entries : iterable of BatchEntry
        Entries that individually fit within ``max_bytes``.
    limits : BatchLimits
        Transport caps.

    Returns
    -------
    list of list of BatchEntry
        Physical requests in packing order.

    Raises
    ------
    ValueError
        If an entry alone exceeds ``max_bytes``.

    Example
    -------
    >>> entries = [BatchEntry(str(i), "x" * 1000) for i in range(25)]
    >>> [len(r) for r in pack_entries(entries)]
    [10, 10, 5]
    """
    requests: List[List[BatchEntry]] = []
    current: List[BatchEntry] = []
    current_size = 0

    for entry in entries:
        size = entry.size
        if size > limits.max_bytes:
            raise ValueError(f"Entry {entry.id!r} exceeds {limits.max_bytes} bytes")
        if current and (
            len(current) == limits.max_entries
            or current_size + size > limits.max_bytes
        ):
            requests.append(current)
            current = []
            current_size = 0
        current.append(entry)
        current_size += size

    if current:
        requests.append(current)
    return requests


def records_to_entries(
    records: Iterable[Any], id_prefix: str = ""
) -> List[BatchEntry]:
    """
    Turn records into entries with sequential ids.

    Strings are sent as-is; anything else is JSON encoded.

    Example
    -------
    >>> entries = records_to_entries([{"id": "i-123"}, "raw"], id_prefix="ec2-")
    >>> [(e.id, e.body) for e in entries]
    [('ec2-0', '{"id": "i-123"}'), ('ec2-1', 'raw')]
    """
    entries = []
    for index, record in enumerate(records):
        body = record if isinstance(record, str) else json.dumps(record, default=str)
        entries.append(BatchEntry(id=f"{id_prefix}{index}", body=body))
    return entries


@dataclass
class BatchResult:
    """
    Outcome of delivering a sequence of entries.

    Parameters
    ----------
    success_count : int
        Entries confirmed delivered across every request of the call.
    undelivered : list of BatchEntry
        Entries not confirmed delivered, oversized ones included.
    oversized : list of BatchEntry
        Entries never attempted because they exceed the byte cap.
    requests : int
        Physical requests issued, retries included.
    error : DeliveryError, optional
        Why some entries are undelivered; ``None`` on full success.

    Examples
    --------
    >>> result = sender.send(entries, max_elapsed_time=30)
    >>> if not result.ok:
    ...     print(f"{len(result.undelivered)} undelivered: {result.error}")
    """

    success_count: int = 0
    undelivered: List[BatchEntry] = field(default_factory=list)
    oversized: List[BatchEntry] = field(default_factory=list)
    requests: int = 0
    error: Optional[DeliveryError] = None

    @property
    def ok(self) -> bool:
        """True if every entry was delivered."""
        return self.error is None and not self.undelivered

    def raise_for_error(self) -> None:
        """Raise ``error`` if the delivery was not fully successful."""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success_count": self.success_count,
            "undelivered_ids": [entry.id for entry in self.undelivered],
            "oversized_ids": [entry.id for entry in self.oversized],
            "requests": self.requests,
            "error": self.error.to_dict() if self.error else None,
        }

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"BatchResult(success_count={self.success_count}, "
            f"undelivered={len(self.undelivered)}, "
            f"oversized={len(self.oversized)}, "
            f"requests={self.requests})"
        )
