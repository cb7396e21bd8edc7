"""AWS CloudFormation client for stack lookups and resource signals."""

from typing import Dict, Any, Optional

from botocore.exceptions import ClientError
from .base_client import BaseAWSClient


class CloudFormationClient(BaseAWSClient):
    """AWS CloudFormation client wrapper."""

    service_name = "cloudformation"

    async def describe_stack(self, stack_name: str) -> Optional[Dict[str, Any]]:
        """Describe a single stack, or None if it does not exist."""
        try:
            self._ensure_client()
            response = self._client.describe_stacks(StackName=stack_name)
            stacks = response.get("Stacks", [])
            return stacks[0] if stacks else None

        except ClientError as e:
            if self.error_code(e) == "ValidationError" and "does not exist" in str(e):
                return None
            self._handle_error("describe_stack", e)
        except Exception as e:
            self._handle_error("describe_stack", e)

    async def get_stack_status(self, stack_name: str) -> Optional[str]:
        stack = await self.describe_stack(stack_name)
        return stack.get("StackStatus") if stack else None

    async def get_stack_outputs(self, stack_name: str, by_export_name: bool = False) -> Dict[str, str]:
        """Stack outputs keyed by OutputKey (or ExportName); empty if the stack is missing."""
        stack = await self.describe_stack(stack_name)
        if not stack:
            return {}

        outputs = {}
        for output in stack.get("Outputs", []):
            key = output.get("ExportName") if by_export_name else output["OutputKey"]
            if key:
                outputs[key] = output.get("OutputValue", "")
        return outputs

    async def signal_resource(
        self,
        stack_name: str,
        logical_resource_id: str,
        unique_id: str,
        status: str = "SUCCESS",
    ) -> None:
        """Send a creation-policy signal to a stack resource."""
        try:
            self._ensure_client()
            self._client.signal_resource(
                StackName=stack_name,
                LogicalResourceId=logical_resource_id,
                UniqueId=unique_id,
                Status=status,
            )
            self.logger.info(f"Signaled {logical_resource_id} in {stack_name}: {status}")

        except Exception as e:
            self._handle_error("signal_resource", e)
