"""Unit tests for the boto3 client wrappers, using injected stub clients."""

import pytest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from infrastructure.aws.cloudformation_client import CloudFormationClient
from infrastructure.aws.cloudwatch_client import CloudWatchClient, MAX_METRICS_PER_CALL
from infrastructure.aws.ec2_client import EC2Client
from infrastructure.aws.sns_client import SNSClient
from infrastructure.aws.ssm_client import SSMClient
from infrastructure.aws.session_manager import AWSSessionManager


def client_error(code, message="error", operation="Operation"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class TestCloudFormationClient:
    """Test cases for CloudFormationClient."""

    def setup_method(self):
        self.boto_client = MagicMock()
        self.client = CloudFormationClient("us-east-1", client=self.boto_client)

    @pytest.mark.asyncio
    async def test_missing_stack(self):
        self.boto_client.describe_stacks.side_effect = client_error(
            "ValidationError", "Stack with id near does not exist"
        )

        assert await self.client.describe_stack("near") is None
        assert await self.client.get_stack_status("near") is None
        assert await self.client.get_stack_outputs("near") == {}

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self):
        self.boto_client.describe_stacks.side_effect = client_error("AccessDenied")

        with pytest.raises(ClientError):
            await self.client.describe_stack("near")

    @pytest.mark.asyncio
    async def test_outputs_by_export_name(self):
        self.boto_client.describe_stacks.return_value = {
            "Stacks": [{
                "StackStatus": "CREATE_COMPLETE",
                "Outputs": [
                    {"OutputKey": "InstanceId", "OutputValue": "i-1", "ExportName": "NearInstanceId"},
                    {"OutputKey": "Internal", "OutputValue": "x"},
                ],
            }]
        }

        assert await self.client.get_stack_outputs("near") == {"InstanceId": "i-1", "Internal": "x"}
        assert await self.client.get_stack_outputs("near", by_export_name=True) == {"NearInstanceId": "i-1"}


class TestCloudWatchClient:
    """Test cases for CloudWatchClient."""

    @pytest.mark.asyncio
    async def test_metrics_are_chunked(self):
        boto_client = MagicMock()
        client = CloudWatchClient("us-east-1", client=boto_client)
        metrics = [(f"Metric{i}", i, "Count") for i in range(MAX_METRICS_PER_CALL + 5)]

        sent = await client.put_metric_data("NEAR/Sync", "i-1", metrics)

        assert sent == MAX_METRICS_PER_CALL + 5
        assert boto_client.put_metric_data.call_count == 2
        first_batch = boto_client.put_metric_data.call_args_list[0].kwargs["MetricData"]
        assert len(first_batch) == MAX_METRICS_PER_CALL
        assert first_batch[0]["Dimensions"] == [{"Name": "InstanceId", "Value": "i-1"}]


class TestSNSClient:
    """Test cases for SNSClient."""

    @pytest.mark.asyncio
    async def test_long_subject_is_truncated(self):
        boto_client = MagicMock()
        boto_client.publish.return_value = {"MessageId": "m-1"}
        client = SNSClient("us-east-1", client=boto_client)

        message_id = await client.publish("arn:topic", "body", subject="x" * 150)

        assert message_id == "m-1"
        assert len(boto_client.publish.call_args.kwargs["Subject"]) == 99


class TestSSMClient:
    """Test cases for SSMClient."""

    def setup_method(self):
        self.boto_client = MagicMock()
        self.client = SSMClient("us-east-1", client=self.boto_client)

    @pytest.mark.asyncio
    async def test_invocation_not_registered_yet(self):
        self.boto_client.get_command_invocation.side_effect = client_error("InvocationDoesNotExist")

        assert await self.client.get_command_invocation("cmd-1", "i-1") == {}

    @pytest.mark.asyncio
    async def test_invocation(self):
        self.boto_client.get_command_invocation.return_value = {
            "Status": "Success",
            "StatusDetails": "Success",
            "StandardOutputContent": "ok\n",
            "ResponseCode": 0,
        }

        invocation = await self.client.get_command_invocation("cmd-1", "i-1")

        assert invocation["status"] == "Success"
        assert invocation["standard_output"] == "ok\n"
        assert invocation["response_code"] == 0

    @pytest.mark.asyncio
    async def test_run_shell_script(self):
        self.boto_client.send_command.return_value = {"Command": {"CommandId": "cmd-1"}}

        command_id = await self.client.run_shell_script("i-1", ["true"], 10, comment="c" * 150)

        assert command_id == "cmd-1"
        kwargs = self.boto_client.send_command.call_args.kwargs
        assert kwargs["DocumentName"] == "AWS-RunShellScript"
        assert kwargs["InstanceIds"] == ["i-1"]
        assert kwargs["Parameters"] == {"commands": ["true"], "executionTimeout": ["10"]}
        assert kwargs["TimeoutSeconds"] == 30
        assert len(kwargs["Comment"]) == 100


class TestEC2Client:
    """Test cases for EC2Client."""

    @pytest.mark.asyncio
    async def test_attachment_state(self):
        boto_client = MagicMock()
        paginator = MagicMock()
        paginator.paginate.return_value = [{
            "Volumes": [{
                "VolumeId": "vol-1",
                "Attachments": [{"InstanceId": "i-1", "State": "attached"}],
            }]
        }]
        boto_client.get_paginator.return_value = paginator
        client = EC2Client("us-east-1", client=boto_client)

        assert await client.get_attachment_state("vol-1", "i-1") == "attached"
        assert await client.get_attachment_state("vol-1", "i-2") is None
        paginator.paginate.assert_called_with(VolumeIds=["vol-1"])


class TestAWSSessionManager:
    """Test cases for AWSSessionManager."""

    def setup_method(self):
        AWSSessionManager._sessions.clear()
        self.manager = AWSSessionManager(region="us-east-1")

    def test_unsupported_run_mode(self):
        with pytest.raises(ValueError):
            self.manager.get_session(run_mode="lambda")

    def test_invalid_account_id(self):
        with pytest.raises(ValueError):
            self.manager.get_session(account_id="1234", role_name="Provisioner")

    @patch("infrastructure.aws.session_manager.boto3")
    def test_assumed_role_is_shared(self, mock_boto3):
        mock_boto3.client.return_value.assume_role.return_value = {
            "Credentials": {"AccessKeyId": "AK", "SecretAccessKey": "SK", "SessionToken": "ST"}
        }

        first = self.manager.get_session(account_id="123456789012", role_name="Provisioner")
        second = AWSSessionManager("us-east-1").get_session(account_id="123456789012", role_name="Provisioner")

        assert first is second
        mock_boto3.client.return_value.assume_role.assert_called_once()
        assert mock_boto3.client.return_value.assume_role.call_args.kwargs["RoleArn"] == (
            "arn:aws:iam::123456789012:role/Provisioner"
        )

    def test_pipeline_mode_requires_credentials(self, monkeypatch):
        monkeypatch.delenv("AWS_ACCESS_KEY_ID", raising=False)
        monkeypatch.delenv("AWS_SECRET_ACCESS_KEY", raising=False)

        with pytest.raises(ValueError):
            self.manager.get_session(run_mode="pipeline")

    def teardown_method(self):
        AWSSessionManager._sessions.clear()


if __name__ == "__main__":
    pytest.main([__file__])
