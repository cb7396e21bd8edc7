"""Alert rule and alert data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional


class MissingDataPolicy(Enum):
    """How a period without data counts towards a rule."""
    BREACHING = "breaching"
    NOT_BREACHING = "not_breaching"


class ComparisonOperator(Enum):
    LESS_THAN = "less_than"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"


class AlertState(Enum):
    OK = "ok"
    ALARM = "alarm"


@dataclass
class AlertRule:
    """Threshold rule over one metric and a run of consecutive periods."""
    name: str
    metric_name: str
    threshold: float
    comparison: ComparisonOperator
    evaluation_periods: int
    missing_data: MissingDataPolicy
    description: str = ""

    def is_breaching(self, value: Optional[float]) -> bool:
        if value is None:
            return self.missing_data == MissingDataPolicy.BREACHING
        if self.comparison == ComparisonOperator.LESS_THAN:
            return value < self.threshold
        return value <= self.threshold


@dataclass
class Alert:
    """A raised alert."""
    rule_name: str
    instance_id: str
    message: str
    consecutive_periods: int
    raised_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule": self.rule_name,
            "instance_id": self.instance_id,
            "message": self.message,
            "consecutive_periods": self.consecutive_periods,
            "raised_at": self.raised_at.isoformat(),
        }
