"""AWS SNS client for alert notifications."""

from typing import Optional

from .base_client import BaseAWSClient


class SNSClient(BaseAWSClient):
    """AWS SNS client wrapper."""

    service_name = "sns"

    async def publish(self, topic_arn: str, message: str, subject: Optional[str] = None) -> str:
        """Publish a message to a topic and return its message id."""
        try:
            self._ensure_client()
            params = {"TopicArn": topic_arn, "Message": message}
            if subject:
                # SNS rejects subjects of 100 characters or more
                params["Subject"] = subject[:99]

            response = self._client.publish(**params)
            return response["MessageId"]

        except Exception as e:
            self._handle_error("publish", e)
