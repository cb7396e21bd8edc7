"""AWS CloudWatch client for publishing node metrics."""

from typing import List, Tuple
from datetime import datetime

from .base_client import BaseAWSClient

# PutMetricData accepts at most this many datums per call
MAX_METRICS_PER_CALL = 20


class CloudWatchClient(BaseAWSClient):
    """AWS CloudWatch client wrapper."""

    service_name = "cloudwatch"

    async def put_metric_data(
        self,
        namespace: str,
        instance_id: str,
        metric_data: List[Tuple[str, float, str]],
        timestamp: datetime = None,
    ) -> int:
        """Publish (name, value, unit) metrics dimensioned by InstanceId.

        Returns the number of datums sent.
        """
        try:
            self._ensure_client()
            timestamp = timestamp or datetime.utcnow()
            datums = [
                {
                    "MetricName": name,
                    "Dimensions": [{"Name": "InstanceId", "Value": instance_id}],
                    "Value": float(value),
                    "Unit": unit,
                    "Timestamp": timestamp,
                }
                for name, value, unit in metric_data
            ]

            for i in range(0, len(datums), MAX_METRICS_PER_CALL):
                self._client.put_metric_data(
                    Namespace=namespace, MetricData=datums[i:i + MAX_METRICS_PER_CALL]
                )

            self.logger.debug(f"Published {len(datums)} metrics to {namespace}")
            return len(datums)

        except Exception as e:
            self._handle_error("put_metric_data", e)
