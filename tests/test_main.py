"""
Tests for the command-line interface.
"""

import json

import pytest
from click.testing import CliRunner

from cloudsentry.main import cli

ROLE_ARN = "arn:aws:iam::123456789012:role/TestAuditRole"


@pytest.fixture
def runner():
    return CliRunner()


def write_config(tmp_path, integrations):
    path = tmp_path / "integrations.json"
    path.write_text(json.dumps({"integrations": integrations}), encoding="utf-8")
    return str(path)


class TestServicesCommand:
    """Tests for the services command."""

    def test_lists_services(self, runner):
        """Test supported services are printed."""
        result = runner.invoke(cli, ["services"])
        assert result.exit_code == 0
        assert "cloudwatchlogs" in result.output
        assert "guardduty" in result.output


class TestAssumeRoleCommand:
    """Tests for the assume-role command."""

    def test_assume_role(self, runner, mock_aws_environment):
        """Test a role is assumed and its expiry reported."""
        result = runner.invoke(cli, ["assume-role", "--role-arn", ROLE_ARN])
        assert result.exit_code == 0
        assert "Role assumed successfully" in result.output
        assert "Refresh at" in result.output

    def test_missing_role_arn(self, runner):
        """Test --role-arn is required."""
        result = runner.invoke(cli, ["assume-role"])
        assert result.exit_code == 2


class TestClientsCommand:
    """Tests for the clients command."""

    def test_resolves_clients(self, runner, mock_aws_environment, tmp_path):
        """Test a client is built for every configured task."""
        config = write_config(
            tmp_path,
            [
                {
                    "integration_id": "prod",
                    "auth_source": ROLE_ARN,
                    "regions": ["us-east-1", "eu-west-1"],
                    "services": ["ec2"],
                }
            ],
        )

        result = runner.invoke(cli, ["clients", "--config", config])

        assert result.exit_code == 0
        assert "(2/2)" in result.output

    def test_unsupported_service_fails(self, runner, mock_aws_environment, tmp_path):
        """Test tasks that cannot build a client are listed and exit non-zero."""
        config = write_config(
            tmp_path,
            [
                {
                    "integration_id": "prod",
                    "auth_source": ROLE_ARN,
                    "regions": ["us-east-1"],
                    "services": ["sagemaker"],
                }
            ],
        )

        result = runner.invoke(cli, ["clients", "-c", config])

        assert result.exit_code == 1
        assert "Failures" in result.output

    def test_invalid_config(self, runner, tmp_path):
        """Test an invalid configuration exits with an error."""
        config = write_config(tmp_path, [{"label": "no id"}])

        result = runner.invoke(cli, ["clients", "-c", config])

        assert result.exit_code == 1
        assert "Configuration Error" in result.output


class TestSendCommand:
    """Tests for the send command."""

    def test_send_file(self, runner, sqs_client, queue_url, tmp_path):
        """Test each non-empty line becomes one message."""
        path = tmp_path / "messages.txt"
        path.write_text("first\n\nsecond\nthird\n", encoding="utf-8")

        result = runner.invoke(
            cli, ["send", "--queue-url", queue_url, "-f", str(path), "-r", "us-east-1"]
        )

        assert result.exit_code == 0
        assert "Delivery Summary" in result.output
        attributes = sqs_client.get_queue_attributes(
            QueueUrl=queue_url, AttributeNames=["ApproximateNumberOfMessages"]
        )["Attributes"]
        assert attributes["ApproximateNumberOfMessages"] == "3"

    def test_send_oversized_line(self, runner, sqs_client, queue_url, tmp_path):
        """Test an oversized line is reported and exits non-zero."""
        path = tmp_path / "messages.txt"
        path.write_text("small\n" + "x" * 300_000 + "\n", encoding="utf-8")

        result = runner.invoke(
            cli, ["send", "--queue-url", queue_url, "-f", str(path), "-r", "us-east-1"]
        )

        assert result.exit_code == 1
        assert "Delivery Failed" in result.output
        assert "Undelivered lines: 2" in result.output
