"""Health report subscriber interface."""

from abc import ABC, abstractmethod
from typing import List
from core.models.alert import Alert
from core.models.health import HealthReport


class IHealthReportSubscriber(ABC):
    """Receives every report produced by the health classifier."""

    @abstractmethod
    async def on_report(self, report: HealthReport) -> List[Alert]:
        """Handle one tick's report.

        Args:
            report: Classified health report

        Returns:
            Alerts raised by this report, if any
        """
        pass
