"""
Tests for batch packing and SQS batch delivery.
"""

import json
import random

import pytest

from cloudsentry.core.exceptions import (
    BatchRequestTooLongError,
    BatchSendError,
    ConfigurationError,
)
from cloudsentry.delivery.batch import (
    MAX_BATCH_BYTES,
    MAX_BATCH_ENTRIES,
    BatchEntry,
    BatchLimits,
    pack_entries,
    records_to_entries,
    split_oversized,
)
from cloudsentry.delivery.sqs_batch import SqsBatchSender, send_message_batch


class TestBatchEntry:
    """Tests for BatchEntry."""

    def test_size_counts_utf8_bytes(self):
        """Test size is the encoded byte length, not the character count."""
        assert BatchEntry("a", "abc").size == 3
        assert BatchEntry("b", "éé").size == 4

    def test_to_request_minimal(self):
        """Test a plain entry maps to Id and MessageBody only."""
        assert BatchEntry("1", "hello").to_request() == {
            "Id": "1",
            "MessageBody": "hello",
        }

    def test_to_request_with_attributes(self):
        """Test optional fields are included when set."""
        attributes = {"source": {"DataType": "String", "StringValue": "ec2"}}
        entry = BatchEntry(
            "1",
            "hello",
            message_attributes=attributes,
            message_group_id="g",
            message_deduplication_id="d",
            delay_seconds=0,
        )
        assert entry.to_request() == {
            "Id": "1",
            "MessageBody": "hello",
            "MessageAttributes": attributes,
            "MessageGroupId": "g",
            "MessageDeduplicationId": "d",
            "DelaySeconds": 0,
        }


class TestPacking:
    """Tests for split_oversized and pack_entries."""

    def test_entry_count_cap(self, make_entries):
        """Test requests hold at most ten entries."""
        requests = pack_entries(make_entries(25))
        assert [len(r) for r in requests] == [10, 10, 5]

    def test_byte_cap_closes_request(self, make_entries):
        """Test a request is closed before the next entry would exceed the byte cap."""
        requests = pack_entries(make_entries(5, size=100_000))
        assert [len(r) for r in requests] == [2, 2, 1]

    def test_entry_exactly_at_cap_fits(self):
        """Test an entry of exactly max_bytes is sendable on its own."""
        entry = BatchEntry("big", "x" * MAX_BATCH_BYTES)
        sendable, oversized = split_oversized([entry])
        assert sendable == [entry]
        assert oversized == []
        assert pack_entries(sendable) == [[entry]]

    def test_split_oversized_keeps_order(self):
        """Test oversized entries are separated and order is preserved."""
        entries = [
            BatchEntry("0", "x" * 10),
            BatchEntry("1", "x" * (MAX_BATCH_BYTES + 1)),
            BatchEntry("2", "x" * 10),
        ]
        sendable, oversized = split_oversized(entries)
        assert [e.id for e in sendable] == ["0", "2"]
        assert [e.id for e in oversized] == ["1"]

    def test_pack_rejects_oversized(self):
        """Test pack_entries refuses an entry that can never fit."""
        with pytest.raises(ValueError):
            pack_entries([BatchEntry("big", "x" * (MAX_BATCH_BYTES + 1))])

    def test_random_sizes_respect_caps(self):
        """Test packing arbitrary sizes never breaks either cap or the order."""
        rng = random.Random(7)
        entries = [
            BatchEntry(str(i), "x" * rng.randint(1, 60_000))
            for i in range(80)
        ]

        requests = pack_entries(entries)

        assert [e for r in requests for e in r] == entries
        for request in requests:
            assert 1 <= len(request) <= MAX_BATCH_ENTRIES
            assert sum(e.size for e in request) <= MAX_BATCH_BYTES

    def test_custom_limits(self, make_entries):
        """Test packing honours custom limits."""
        limits = BatchLimits(max_entries=3, max_bytes=2500)
        requests = pack_entries(make_entries(7), limits)
        assert [len(r) for r in requests] == [2, 2, 2, 1]

    def test_invalid_limits(self):
        """Test non-positive limits are rejected."""
        with pytest.raises(ValueError):
            BatchLimits(max_entries=0)


class TestRecordsToEntries:
    """Tests for records_to_entries."""

    def test_strings_and_objects(self):
        """Test strings pass through and other records are JSON encoded."""
        entries = records_to_entries([{"id": "i-123"}, "raw"], id_prefix="ec2-")
        assert [e.id for e in entries] == ["ec2-0", "ec2-1"]
        assert json.loads(entries[0].body) == {"id": "i-123"}
        assert entries[1].body == "raw"

    def test_non_json_values_are_stringified(self):
        """Test values json cannot encode fall back to str()."""
        from datetime import datetime

        (entry,) = records_to_entries([{"at": datetime(2024, 1, 1)}])
        assert json.loads(entry.body) == {"at": "2024-01-01 00:00:00"}


class TestSqsBatchSender:
    """Tests for SqsBatchSender.send against a recording SQS double."""

    def test_all_entries_delivered(self, make_sender, make_entries, fake_sqs):
        """Test 25 small entries go out in three requests."""
        sqs = fake_sqs()
        result = make_sender(sqs).send(make_entries(25))

        assert [len(ids) for ids in sqs.calls] == [10, 10, 5]
        assert result.ok
        assert result.error is None
        assert result.success_count == 25
        assert result.requests == 3
        assert result.undelivered == []

    def test_single_oversized_entry(self, make_sender, make_entries, fake_sqs):
        """Test an oversized entry is never sent and is reported."""
        sqs = fake_sqs()
        entries = make_entries(1, size=300_000)

        result = make_sender(sqs).send(entries)

        assert sqs.calls == []
        assert result.success_count == 0
        assert isinstance(result.error, BatchRequestTooLongError)
        assert result.error.oversized_count == 1
        assert result.oversized == entries
        assert result.undelivered == entries
        assert not result.ok

    def test_oversized_alongside_deliverable(self, make_sender, make_entries, fake_sqs):
        """Test deliverable entries still go out when some are oversized."""
        sqs = fake_sqs()
        entries = make_entries(3) + [BatchEntry("big", "x" * 300_000)]

        result = make_sender(sqs).send(entries)

        assert sqs.calls == [["0", "1", "2"]]
        assert result.success_count == 3
        assert isinstance(result.error, BatchRequestTooLongError)
        assert [e.id for e in result.undelivered] == ["big"]

    def test_failed_items_retried_alone(
        self, make_sender, make_entries, fake_sqs, monotonic
    ):
        """Test only the failed ids are resent after a backoff sleep."""
        sqs = fake_sqs(failures=[{"0", "1", "2"}])

        result = make_sender(sqs).send(make_entries(10), max_elapsed_time=30)

        assert len(sqs.calls) == 2
        assert sqs.calls[1] == ["0", "1", "2"]
        assert monotonic.sleeps == [0.5]
        assert result.ok
        assert result.success_count == 10
        assert result.requests == 2

    def test_retry_budget_exhausted(
        self, make_sender, make_entries, fake_sqs, monotonic
    ):
        """Test items that keep failing are returned once the budget runs out."""
        sqs = fake_sqs(always_fail={"3", "7"})

        result = make_sender(sqs).send(make_entries(10), max_elapsed_time=5)

        assert [e.id for e in result.undelivered] == ["3", "7"]
        assert isinstance(result.error, BatchSendError)
        assert result.error.success_count == 8
        assert result.error.failed_count == 2
        assert result.success_count == 8
        assert sum(monotonic.sleeps) <= 5
        assert all(ids == ["3", "7"] for ids in sqs.calls[1:])

    def test_budget_is_per_request(self, make_sender, make_entries, fake_sqs, monotonic):
        """Test each physical request gets a fresh retry budget."""
        sqs = fake_sqs(failures=[{"0"}, {"0"}, set(), {"10"}, {"10"}])

        result = make_sender(sqs).send(make_entries(20), max_elapsed_time=1.5)

        assert result.ok
        assert result.success_count == 20
        assert monotonic.sleeps == [0.5, 0.75, 0.5, 0.75]

    def test_transport_error_is_permanent(
        self, make_sender, make_entries, fake_sqs, make_client_error
    ):
        """Test a request-level error stops delivery without retry."""
        error = make_client_error("AccessDenied")
        sqs = fake_sqs(raise_on_call={1: error})
        entries = make_entries(25) + [BatchEntry("big", "x" * 300_000)]

        result = make_sender(sqs).send(entries, max_elapsed_time=30)

        assert len(sqs.calls) == 2
        assert result.success_count == 10
        assert isinstance(result.error, BatchSendError)
        assert result.error.__cause__ is error
        assert [e.id for e in result.undelivered] == [str(i) for i in range(10, 25)] + ["big"]
        assert result.error.failed_count == 16
        with pytest.raises(BatchSendError):
            result.raise_for_error()

    def test_unknown_failed_ids_are_ignored(self, make_sender, make_entries):
        """Test failures for ids that were not in the request end the request."""

        class StrayFailures:
            calls = 0

            def send_message_batch(self, QueueUrl, Entries):
                self.calls += 1
                return {
                    "Successful": [{"Id": e["Id"]} for e in Entries],
                    "Failed": [{"Id": "stray", "SenderFault": False, "Code": "X"}],
                }

        sqs = StrayFailures()
        result = make_sender(sqs).send(make_entries(3))

        assert sqs.calls == 1
        assert result.ok

    def test_duplicate_ids_rejected(self, make_sender, fake_sqs):
        """Test ids must be unique within a submission."""
        sqs = fake_sqs()
        entries = [BatchEntry("1", "a"), BatchEntry("1", "b")]

        with pytest.raises(ConfigurationError):
            make_sender(sqs).send(entries)
        assert sqs.calls == []

    def test_empty_input(self, make_sender, fake_sqs):
        """Test an empty submission makes no requests."""
        sqs = fake_sqs()
        result = make_sender(sqs).send([])

        assert sqs.calls == []
        assert result.ok
        assert result.success_count == 0

    def test_to_dict(self, make_sender, make_entries, fake_sqs):
        """Test the result serializes ids and the error."""
        sqs = fake_sqs()
        result = make_sender(sqs).send(make_entries(1, size=300_000))
        data = result.to_dict()

        assert data["success_count"] == 0
        assert data["oversized_ids"] == ["0"]
        assert data["error"]["error_type"] == "BatchRequestTooLongError"


class TestSendMessageBatchWithSQS:
    """Tests against a moto SQS queue."""

    def test_send_to_queue(self, sqs_client, queue_url, make_entries):
        """Test every message lands on the queue."""
        result = send_message_batch(
            sqs_client, queue_url, make_entries(25), max_elapsed_time=10
        )

        assert result.ok
        assert result.success_count == 25
        attributes = sqs_client.get_queue_attributes(
            QueueUrl=queue_url, AttributeNames=["ApproximateNumberOfMessages"]
        )["Attributes"]
        assert attributes["ApproximateNumberOfMessages"] == "25"

    def test_sender_repr(self, sqs_client, queue_url):
        """Test repr shows the queue."""
        assert queue_url in repr(SqsBatchSender(sqs_client, queue_url))
