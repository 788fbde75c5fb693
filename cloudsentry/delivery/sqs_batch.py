"""
SQS Batch Delivery Module
=========================

Sends an unbounded sequence of messages to SQS through
``SendMessageBatch`` with packing, backoff and retry of failed items.

Delivery works one physical request at a time, in packing order:

1. Entries larger than the byte cap are set aside and never sent.
2. The rest are packed greedily into requests of at most 10 entries and
   the byte cap.
3. Each request is sent; entries reported as failed are resent on their
   own under exponential backoff, bounded by ``max_elapsed_time`` from
   that request's first attempt.
4. An exception from ``send_message_batch`` itself is not retried and
   ends the whole delivery.

Classes
-------
SqsBatchSender
    Delivers entries to one queue.

Functions
---------
send_message_batch
    One-shot convenience wrapper around :class:`SqsBatchSender`.

Example
-------
>>> import boto3
>>> from cloudsentry.delivery import SqsBatchSender, records_to_entries
>>>
>>> sender = SqsBatchSender(boto3.client("sqs"), queue_url)
>>> result = sender.send(records_to_entries(records), max_elapsed_time=60)
>>> result.raise_for_error()
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from cloudsentry.core.exceptions import (
    BatchRequestTooLongError,
    BatchSendError,
    ConfigurationError,
)
from cloudsentry.delivery.backoff import ExponentialBackoff
from cloudsentry.delivery.batch import (
    DEFAULT_LIMITS,
    BatchEntry,
    BatchLimits,
    BatchResult,
    pack_entries,
    split_oversized,
)

# Module logger
logger = logging.getLogger(__name__)


@dataclass
class _RequestOutcome:
    """Result of sending one physical request and its retries."""

    success_count: int = 0
    attempts: int = 0
    failed: List[BatchEntry] = field(default_factory=list)
    error: Optional[str] = None
    cause: Optional[BaseException] = None


class SqsBatchSender:
    """
    Reliable batch delivery to one SQS queue.

    Parameters
    ----------
    client : SQS.Client
        boto3 SQS client (anything with ``send_message_batch``).
    queue_url : str
        Target queue.
    limits : BatchLimits, optional
        Per-request caps; defaults to 10 entries / 260000 bytes.
    backoff_factory : callable, optional
        ``backoff_factory(max_elapsed_time) -> ExponentialBackoff``.
    sleep : callable, default=time.sleep
        Used to wait between retries.

    Examples
    --------
    >>> sender = SqsBatchSender(sqs, queue_url)
    >>> result = sender.send(entries, max_elapsed_time=30)
    >>> print(f"Delivered {result.success_count} messages")
    """

    def __init__(
        self,
        client: Any,
        queue_url: str,
        limits: BatchLimits = DEFAULT_LIMITS,
        backoff_factory: Optional[Callable[[Optional[float]], ExponentialBackoff]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.queue_url = queue_url
        self.limits = limits
        self._backoff_factory = backoff_factory or ExponentialBackoff
        self._sleep = sleep

    def send(
        self,
        entries: Iterable[BatchEntry],
        max_elapsed_time: Optional[float] = None,
    ) -> BatchResult:
        """
        Deliver entries, retrying failed items.

        Parameters
        ----------
        entries : iterable of BatchEntry
            Messages to send; ids must be unique within the call.
        max_elapsed_time : float, optional
            Retry budget in seconds for each physical request.
            ``None`` retries until every item succeeds.

        Returns
        -------
        BatchResult
            On full success ``error`` is ``None`` and nothing is
            undelivered. If only oversized entries are left, ``error`` is a
            :class:`BatchRequestTooLongError`. If delivery failed
            permanently, ``error`` is a :class:`BatchSendError` and
            ``undelivered`` holds every entry not confirmed delivered.

        Raises
        ------
        ConfigurationError
            If two entries share an id.
        """
        entries = list(entries)
        self._check_unique_ids(entries)

        logger.info(f"Starting SQS batch send of {len(entries)} entries")
        start = time.monotonic()

        sendable, oversized = split_oversized(entries, self.limits)
        requests = pack_entries(sendable, self.limits)

        result = BatchResult(oversized=oversized)
        for index, request in enumerate(requests):
            outcome = self._send_request(request, max_elapsed_time)
            result.success_count += outcome.success_count
            result.requests += outcome.attempts

            if outcome.error is not None:
                unsent = [entry for later in requests[index + 1:] for entry in later]
                result.undelivered = outcome.failed + unsent + oversized
                result.error = BatchSendError(
                    f"SendMessageBatch permanently failed: {outcome.error}",
                    success_count=result.success_count,
                    failed_count=len(result.undelivered),
                    details={"queue_url": self.queue_url},
                )
                if outcome.cause is not None:
                    result.error.__cause__ = outcome.cause
                logger.error(
                    f"SendMessageBatch permanently failed after "
                    f"{result.success_count} sent, "
                    f"{len(result.undelivered)} undelivered: {outcome.error}"
                )
                return result

        if oversized:
            result.undelivered = list(oversized)
            result.error = BatchRequestTooLongError(
                len(oversized), self.limits.max_bytes
            )
            logger.debug(
                f"SendMessageBatch partially successful in "
                f"{time.monotonic() - start:.2f}s: "
                f"{len(oversized)} entries too large to send"
            )
            return result

        logger.info(
            f"SendMessageBatch successful: {result.success_count} entries "
            f"in {time.monotonic() - start:.2f}s"
        )
        return result

    def _send_request(
        self, entries: List[BatchEntry], max_elapsed_time: Optional[float]
    ) -> _RequestOutcome:
        """Send one physical request, retrying only the failed entries."""
        backoff = self._backoff_factory(max_elapsed_time)
        backoff.reset()
        outcome = _RequestOutcome()
        pending = entries

        while True:
            outcome.attempts += 1
            logger.debug(f"Invoking SendMessageBatch with {len(pending)} entries")
            try:
                response = self.client.send_message_batch(
                    QueueUrl=self.queue_url,
                    Entries=[entry.to_request() for entry in pending],
                )
            except (ClientError, BotoCoreError) as e:
                # No transient error types here can be retried
                outcome.failed = pending
                outcome.error = str(e)
                outcome.cause = e
                return outcome

            outcome.success_count += len(response.get("Successful", []))
            failed_ids = {item["Id"] for item in response.get("Failed", [])}
            if not failed_ids:
                return outcome

            pending = [entry for entry in pending if entry.id in failed_ids]
            if not pending:
                logger.warning(
                    f"SendMessageBatch reported unknown failed ids: {sorted(failed_ids)}"
                )
                return outcome

            logger.warning(f"Batch send failed: {len(pending)} unprocessed items")
            interval = backoff.next_interval()
            if interval is None:
                outcome.failed = pending
                outcome.error = (
                    f"{len(pending)} unprocessed items after "
                    f"{backoff.elapsed:.2f}s of retries"
                )
                return outcome
            self._sleep(interval)

    @staticmethod
    def _check_unique_ids(entries: List[BatchEntry]) -> None:
        seen = set()
        for entry in entries:
            if entry.id in seen:
                raise ConfigurationError(
                    f"Duplicate batch entry id {entry.id!r}",
                    details={"entry_id": entry.id},
                )
            seen.add(entry.id)

    def __repr__(self) -> str:
        """Return string representation."""
        return f"SqsBatchSender(queue_url={self.queue_url!r}, limits={self.limits})"


def send_message_batch(
    client: Any,
    queue_url: str,
    entries: Iterable[BatchEntry],
    max_elapsed_time: Optional[float] = None,
    limits: BatchLimits = DEFAULT_LIMITS,
) -> BatchResult:
    """
    Send messages to SQS with paging, backoff and retry of failed items.

    See :meth:`SqsBatchSender.send`.
    """
    sender = SqsBatchSender(client, queue_url, limits=limits)
    return sender.send(entries, max_elapsed_time=max_elapsed_time)
