"""
Pytest configuration and shared fixtures for testing.
"""

import os
import threading
import time
from datetime import datetime, timedelta, timezone

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from cloudsentry.core.models import Credential, Integration
from cloudsentry.delivery.backoff import ExponentialBackoff
from cloudsentry.delivery.batch import BatchEntry
from cloudsentry.delivery.sqs_batch import SqsBatchSender

TEST_ROLE_ARN = "arn:aws:iam::123456789012:role/TestAuditRole"


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def mock_aws_environment(aws_credentials):
    """Create a mocked AWS environment."""
    with mock_aws():
        yield


@pytest.fixture
def sqs_client(mock_aws_environment):
    """Create a boto3 SQS client for setting up test queues."""
    return boto3.client("sqs", region_name="us-east-1")


@pytest.fixture
def queue_url(sqs_client):
    """Create an SQS queue for testing."""
    return sqs_client.create_queue(QueueName="cloudsentry-test")["QueueUrl"]


@pytest.fixture
def integration():
    """An integration with a role, two regions and two services."""
    return Integration(
        integration_id="test-integration",
        auth_source=TEST_ROLE_ARN,
        regions=["us-east-1", "us-west-2"],
        services=["ec2", "s3"],
        label="Test Account",
    )


# =============================================================================
# Fakes
# =============================================================================


class FakeClock:
    """Controllable wall clock for credential expiry checks."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class FakeMonotonic:
    """Monotonic clock whose sleep advances time instead of blocking."""

    def __init__(self):
        self.value = 0.0
        self.sleeps = []

    def __call__(self):
        return self.value

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.value += seconds


class FakeBroker:
    """Credential broker that counts role assumptions."""

    def __init__(self, clock, lifetime=timedelta(hours=1), delay=0.0):
        self.clock = clock
        self.lifetime = lifetime
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def assume_role(self, integration):
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.calls.append(integration.integration_id)
            serial = len(self.calls)
        return Credential(
            access_key_id=f"ASIAFAKE{serial}",
            secret_access_key="secret",
            session_token="token",
            expiration=self.clock() + self.lifetime,
            expiry_window=timedelta(seconds=5),
        )


class FakeClientFactory:
    """Client factory that returns a new marker object per build."""

    def __init__(self, services=("ec2", "s3", "iam")):
        self.services = set(services)
        self.builds = []
        self._lock = threading.Lock()

    def supports(self, service):
        return service in self.services

    def build(self, service, credential, region):
        client = {"service": service, "region": region, "credential": credential}
        with self._lock:
            self.builds.append((service, region))
        return client


class FakeSQS:
    """
    SQS client double recording every SendMessageBatch call.

    ``failures`` is a list of id sets; call N fails the ids in
    ``failures[N]`` (calls past the end of the list succeed).
    ``always_fail`` ids fail on every call. ``raise_on_call`` maps a call
    index to an exception to raise.
    """

    def __init__(self, failures=None, always_fail=(), raise_on_call=None):
        self.failures = list(failures or [])
        self.always_fail = set(always_fail)
        self.raise_on_call = dict(raise_on_call or {})
        self.calls = []

    def send_message_batch(self, QueueUrl, Entries):
        index = len(self.calls)
        self.calls.append([entry["Id"] for entry in Entries])
        if index in self.raise_on_call:
            raise self.raise_on_call[index]

        failing = set(self.always_fail)
        if index < len(self.failures):
            failing |= set(self.failures[index])

        successful, failed = [], []
        for entry in Entries:
            if entry["Id"] in failing:
                failed.append(
                    {
                        "Id": entry["Id"],
                        "SenderFault": False,
                        "Code": "InternalError",
                        "Message": "try again",
                    }
                )
            else:
                successful.append({"Id": entry["Id"], "MessageId": f"m-{entry['Id']}"})

        response = {"Successful": successful}
        if failed:
            response["Failed"] = failed
        return response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def broker(clock):
    return FakeBroker(clock)


@pytest.fixture
def client_factory():
    return FakeClientFactory()


@pytest.fixture
def make_sender(monotonic):
    """Build a sender with deterministic backoff and a fake clock."""

    def _make(client, **kwargs):
        def backoff_factory(max_elapsed_time):
            return ExponentialBackoff(
                max_elapsed_time,
                randomization_factor=0,
                clock=monotonic,
            )

        return SqsBatchSender(
            client,
            "https://sqs.us-east-1.amazonaws.com/123456789012/test",
            backoff_factory=backoff_factory,
            sleep=monotonic.sleep,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_entries():
    """Build entries with sequential ids and fixed-size bodies."""

    def _make(count, size=1000, prefix=""):
        return [BatchEntry(id=f"{prefix}{i}", body="x" * size) for i in range(count)]

    return _make


def client_error(code="AccessDenied", operation="SendMessageBatch"):
    """Build a botocore ClientError."""
    return ClientError({"Error": {"Code": code, "Message": "denied"}}, operation)


@pytest.fixture
def make_client_error():
    return client_error


@pytest.fixture
def fake_sqs():
    return FakeSQS


@pytest.fixture
def fake_broker_cls():
    return FakeBroker
