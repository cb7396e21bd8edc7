"""AWS Auto Scaling client for lifecycle hook completion."""

from typing import Optional

from .base_client import BaseAWSClient


class AutoScalingClient(BaseAWSClient):
    """AWS Auto Scaling client wrapper."""

    service_name = "autoscaling"

    async def complete_lifecycle_action(
        self,
        asg_name: str,
        hook_name: str,
        instance_id: str,
        result: str = "CONTINUE",
        action_token: Optional[str] = None,
    ) -> None:
        """Complete a pending lifecycle action for an instance."""
        try:
            self._ensure_client()
            params = {
                "AutoScalingGroupName": asg_name,
                "LifecycleHookName": hook_name,
                "InstanceId": instance_id,
                "LifecycleActionResult": result,
            }
            if action_token:
                params["LifecycleActionToken"] = action_token

            self._client.complete_lifecycle_action(**params)
            self.logger.info(f"Completed lifecycle hook {hook_name} on {asg_name}: {result}")

        except Exception as e:
            self._handle_error("complete_lifecycle_action", e)
