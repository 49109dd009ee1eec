# src/monitoring_domain/domain/notifier.py
"""Outbound ports of the monitoring scheduler."""
from abc import ABC, abstractmethod

from src.common.dtos.ledger_dtos import AlertNotificationDTO


class INotifier(ABC):

    @abstractmethod
    def notify(self, notification: AlertNotificationDTO) -> None:
        """Delivers one alert notification. Raises on delivery failure."""
        pass


class IRecentNotificationChecker(ABC):

    @abstractmethod
    def has_recent_notification(self, vendor_id: str, alert_type: str, ledger_id: str, hours_ago: int) -> bool:
        """True if a notification for this vendor, alert type and ledger was sent within `hours_ago`."""
        pass

    @abstractmethod
    def record_notification(self, notification: AlertNotificationDTO) -> None:
        """Remembers that `notification` was sent."""
        pass
