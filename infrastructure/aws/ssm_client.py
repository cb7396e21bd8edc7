"""AWS SSM Run Command client."""

from typing import List, Dict, Any, Optional

from botocore.exceptions import ClientError
from .base_client import BaseAWSClient


SHELL_DOCUMENT = "AWS-RunShellScript"

# send_command rejects comments longer than this
MAX_COMMENT_LENGTH = 100

# Delivery window floor accepted by SSM
MIN_DELIVERY_TIMEOUT_SECONDS = 30


class SSMClient(BaseAWSClient):
    """Submits shell scripts to managed instances and reads back their invocations."""

    service_name = "ssm"

    async def run_shell_script(
        self,
        instance_id: str,
        command_lines: List[str],
        execution_timeout_seconds: int,
        comment: Optional[str] = None,
    ) -> str:
        """Submit ``command_lines`` as one AWS-RunShellScript batch and return the command id."""
        try:
            self._ensure_client()
            params = {
                "InstanceIds": [instance_id],
                "DocumentName": SHELL_DOCUMENT,
                "TimeoutSeconds": max(MIN_DELIVERY_TIMEOUT_SECONDS, execution_timeout_seconds),
                "Parameters": {
                    "commands": list(command_lines),
                    "executionTimeout": [str(execution_timeout_seconds)],
                },
            }
            if comment:
                params["Comment"] = comment[:MAX_COMMENT_LENGTH]

            response = self._client.send_command(**params)
            command_id = response["Command"]["CommandId"]
            self.logger.debug(f"Submitted {SHELL_DOCUMENT} {command_id} to {instance_id}")
            return command_id

        except Exception as e:
            self._handle_error("run_shell_script", e)

    async def get_command_invocation(
        self, command_id: str, instance_id: str
    ) -> Dict[str, Any]:
        """Return the invocation on one instance, or {} while SSM has not registered it yet."""
        try:
            self._ensure_client()
            response = self._client.get_command_invocation(
                CommandId=command_id, InstanceId=instance_id
            )
        except ClientError as e:
            if self.error_code(e) == "InvocationDoesNotExist":
                return {}
            self._handle_error("get_command_invocation", e)

        return {
            "status": response["Status"],
            "status_details": response.get("StatusDetails", ""),
            "standard_output": response.get("StandardOutputContent", ""),
            "standard_error": response.get("StandardErrorContent", ""),
            "response_code": response.get("ResponseCode", -1),
        }
