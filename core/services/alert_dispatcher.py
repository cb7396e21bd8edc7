"""Threshold alerting over health reports."""

import json
import logging
from typing import Dict, List, Optional, Tuple

from core.interfaces.health_interface import IHealthReportSubscriber
from core.models.alert import (
    Alert,
    AlertRule,
    AlertState,
    ComparisonOperator,
    MissingDataPolicy,
)
from core.models.config import AlertConfig
from core.models.health import HealthReport
from infrastructure.aws.sns_client import SNSClient


def default_rules(config: AlertConfig) -> List[AlertRule]:
    """Service-down and sync-stalled rules."""
    return [
        AlertRule(
            name="service-down",
            metric_name="ServiceHealth",
            threshold=1,
            comparison=ComparisonOperator.LESS_THAN,
            evaluation_periods=config.service_down_periods,
            missing_data=MissingDataPolicy.BREACHING,
            description="NEAR service is not running",
        ),
        AlertRule(
            name="sync-stalled",
            metric_name="BlockHeightDelta",
            threshold=config.stall_threshold,
            comparison=ComparisonOperator.LESS_THAN_OR_EQUAL,
            evaluation_periods=config.stall_periods,
            missing_data=MissingDataPolicy.NOT_BREACHING,
            description="NEAR sync appears to be stalled",
        ),
    ]


class AlertDispatcher(IHealthReportSubscriber):
    """Counts consecutive breaching periods per rule and raises alerts.

    A rule fires once, on the period where its run of breaches reaches
    ``evaluation_periods``, and stays in alarm until a non-breaching period
    re-arms it.
    """

    def __init__(
        self,
        rules: List[AlertRule],
        sns_client: Optional[SNSClient] = None,
        topic_arn: Optional[str] = None,
    ):
        self.rules = rules
        self.sns_client = sns_client
        self.topic_arn = topic_arn
        self.logger = logging.getLogger(__name__)
        self._breach_counts: Dict[Tuple[str, str], int] = {}
        self._states: Dict[Tuple[str, str], AlertState] = {}

    async def on_report(self, report: HealthReport) -> List[Alert]:
        alerts = self.evaluate(report.instance_id, report.alert_metrics())
        for alert in alerts:
            await self._publish(alert)
        return alerts

    def evaluate(self, instance_id: str, metrics: Dict[str, float]) -> List[Alert]:
        """Advance every rule by one period and return newly raised alerts."""
        alerts = []

        for rule in self.rules:
            key = (instance_id, rule.name)
            value = metrics.get(rule.metric_name)

            if not rule.is_breaching(value):
                self._breach_counts[key] = 0
                if self._states.get(key) == AlertState.ALARM:
                    self.logger.info(f"Alert {rule.name} on {instance_id} cleared")
                self._states[key] = AlertState.OK
                continue

            count = self._breach_counts.get(key, 0) + 1
            self._breach_counts[key] = count

            if count >= rule.evaluation_periods and self._states.get(key) != AlertState.ALARM:
                self._states[key] = AlertState.ALARM
                observed = "no data" if value is None else value
                alerts.append(
                    Alert(
                        rule_name=rule.name,
                        instance_id=instance_id,
                        message=(
                            f"{rule.description}: {rule.metric_name}={observed} for "
                            f"{count} consecutive periods"
                        ),
                        consecutive_periods=count,
                    )
                )

        return alerts

    def state_of(self, instance_id: str, rule_name: str) -> AlertState:
        return self._states.get((instance_id, rule_name), AlertState.OK)

    async def _publish(self, alert: Alert) -> None:
        self.logger.warning(f"ALERT {alert.rule_name} on {alert.instance_id}: {alert.message}")

        if not (self.sns_client and self.topic_arn):
            return

        try:
            await self.sns_client.publish(
                self.topic_arn,
                json.dumps(alert.to_dict(), indent=2),
                subject=f"NEAR node {alert.instance_id}: {alert.rule_name}",
            )
        except Exception as e:
            self.logger.error(f"Publishing alert {alert.rule_name} failed: {str(e)}")
