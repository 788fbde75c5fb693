"""
Scan Runner Module
==================

Runs poll tasks for every enabled (integration, service, region) in
parallel, all sharing one :class:`ClientCache`, and hands the collected
records to the delivery engine.

What a poll task does with its client is up to the caller: the runner
only resolves the client and collects whatever records come back.

Classes
-------
ScanTask
    One (integration, service, region) unit of work.
ScanRunResult
    Aggregated records and errors from a run.
ScanRunner
    Orchestrates parallel poll tasks.

Example
-------
>>> from cloudsentry.core.scan_runner import ScanRunner
>>>
>>> def list_buckets(client, task):
...     return client.list_buckets()["Buckets"]
...
>>> runner = ScanRunner(cache, max_workers=8)
>>> result = runner.run(integrations, list_buckets, services=["s3"])
>>> runner.deliver(result, sender, max_elapsed_time=60)

Notes
-----
The runner uses ThreadPoolExecutor. Each task gets its client from the
shared cache, so tasks for the same key reuse one client and one
credential.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from cloudsentry.core.client_cache import ClientCache
from cloudsentry.core.models import Integration
from cloudsentry.delivery.batch import BatchResult, records_to_entries
from cloudsentry.delivery.sqs_batch import SqsBatchSender

# Module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanTask:
    """One poll task: an integration, a service and a region."""

    integration: Integration
    service: str
    region: str

    @property
    def name(self) -> str:
        """Task label used in logs and error maps."""
        return f"{self.integration.integration_id}/{self.service}/{self.region}"


PollFunction = Callable[[Any, ScanTask], Iterable[Any]]


@dataclass
class ScanRunResult:
    """
    Aggregated results of a scan run.

    Parameters
    ----------
    tasks : list of ScanTask
        Every task that was scheduled.
    records : list
        Records returned by successful tasks, in completion order.
    records_by_task : dict
        Mapping of task name to the number of records it returned.
    errors : dict
        Mapping of task name to error message.
    scan_time : datetime, optional
        When the run started.
    """

    tasks: List[ScanTask]
    records: List[Any] = field(default_factory=list)
    records_by_task: Dict[str, int] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    scan_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_errors(self) -> bool:
        """True if any task failed."""
        return len(self.errors) > 0

    @property
    def failed_tasks(self) -> List[str]:
        """Names of the tasks that failed."""
        return list(self.errors.keys())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "tasks": [task.name for task in self.tasks],
            "record_count": len(self.records),
            "records_by_task": self.records_by_task,
            "errors": self.errors,
            "scan_time": self.scan_time.isoformat(),
        }

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"ScanRunResult(tasks={len(self.tasks)}, "
            f"records={len(self.records)}, errors={len(self.errors)})"
        )


class ScanRunner:
    """
    Runs poll tasks in parallel against a shared client cache.

    Parameters
    ----------
    cache : ClientCache
        Shared cache used to resolve every task's client.
    max_workers : int, default=10
        Maximum number of tasks running at once.

    Examples
    --------
    >>> runner = ScanRunner(ClientCache(), max_workers=4)
    >>> tasks = runner.plan(integrations)
    >>> print(f"{len(tasks)} tasks planned")
    """

    def __init__(self, cache: ClientCache, max_workers: int = 10) -> None:
        self.cache = cache
        self.max_workers = max_workers
        logger.debug(f"Initialized ScanRunner with max_workers={max_workers}")

    def plan(
        self,
        integrations: Iterable[Integration],
        services: Optional[Iterable[str]] = None,
    ) -> List[ScanTask]:
        """
        Expand integrations into tasks.

        Parameters
        ----------
        integrations : iterable of Integration
            Integrations to scan.
        services : iterable of str, optional
            Restrict tasks to these services.

        Returns
        -------
        list of ScanTask
            One task per enabled (integration, service, region).
        """
        allowed = set(services) if services is not None else None
        tasks = []
        for integration in integrations:
            for service in integration.services:
                if allowed is not None and service not in allowed:
                    continue
                for region in integration.regions:
                    tasks.append(ScanTask(integration, service, region))
        return tasks

    def _run_task(
        self,
        task: ScanTask,
        poll: PollFunction,
        progress_callback: Optional[Callable[[str, str], None]] = None,
    ) -> Tuple[ScanTask, Optional[List[Any]], Optional[str]]:
        """Resolve the client and poll a single task."""
        try:
            if progress_callback:
                progress_callback(task.name, "scanning")

            client = self.cache.get_client(task.integration, task.service, task.region)
            records = list(poll(client, task))

            if progress_callback:
                progress_callback(task.name, "complete")

            logger.debug(f"Completed poll of {task.name}")
            return (task, records, None)

        except Exception as e:
            error_msg = str(e)
            logger.error(f"Error polling {task.name}: {error_msg}")
            if progress_callback:
                progress_callback(task.name, "error")
            return (task, None, error_msg)

    def run(
        self,
        integrations: Iterable[Integration],
        poll: PollFunction,
        services: Optional[Iterable[str]] = None,
        progress_callback: Optional[Callable[[str, str], None]] = None,
    ) -> ScanRunResult:
        """
        Poll every enabled (integration, service, region) in parallel.

        Parameters
        ----------
        integrations : iterable of Integration
            Integrations to scan.
        poll : callable
            ``poll(client, task) -> iterable of records``.
        services : iterable of str, optional
            Restrict the run to these services.
        progress_callback : callable, optional
            Called with (task name, status); status is one of
            'scanning', 'complete', 'error'.

        Returns
        -------
        ScanRunResult
            Records from successful tasks and errors from failed ones.
        """
        tasks = self.plan(integrations, services)
        result = ScanRunResult(tasks=tasks)
        logger.info(f"Starting scan run of {len(tasks)} tasks")

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(self._run_task, task, poll, progress_callback)
                for task in tasks
            ]
            for future in as_completed(futures):
                task, records, error = future.result()
                if error is not None:
                    result.errors[task.name] = error
                else:
                    result.records.extend(records)
                    result.records_by_task[task.name] = len(records)

        logger.info(
            f"Scan run complete: {len(result.records)} records from "
            f"{len(tasks) - len(result.errors)}/{len(tasks)} tasks"
        )
        return result

    def deliver(
        self,
        result: ScanRunResult,
        sender: SqsBatchSender,
        max_elapsed_time: Optional[float] = None,
    ) -> BatchResult:
        """
        Send the records of a run through a batch sender.

        Parameters
        ----------
        result : ScanRunResult
            Output of :meth:`run`.
        sender : SqsBatchSender
            Delivery engine for the downstream queue.
        max_elapsed_time : float, optional
            Per-request retry budget in seconds.

        Returns
        -------
        BatchResult
            Delivery outcome.
        """
        entries = records_to_entries(result.records)
        return sender.send(entries, max_elapsed_time=max_elapsed_time)

    def __repr__(self) -> str:
        """Return string representation."""
        return f"ScanRunner(max_workers={self.max_workers})"
