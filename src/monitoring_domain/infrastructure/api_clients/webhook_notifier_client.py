"""Notifier that posts inventory alerts to a webhook endpoint."""

import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from src.common.config.settings import settings
from src.common.dtos.ledger_dtos import AlertNotificationDTO
from src.common.exceptions.custom_exceptions import APIError
from src.monitoring_domain.domain.notifier import INotifier

logger = logging.getLogger(__name__)


class WebhookNotifierClient(INotifier):
    def __init__(self, url: Optional[str] = None, token: Optional[str] = None, timeout: int = 15) -> None:
        self.url = url or settings.NOTIFIER_WEBHOOK_URL
        self.token = token or settings.NOTIFIER_WEBHOOK_TOKEN
        self.timeout = timeout

        # Configure session with connection pooling and retry strategy
        self.session = requests.Session()
        retry_strategy = Retry(
            total=3,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["POST"],
            backoff_factor=1,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy, pool_connections=5, pool_maxsize=5)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def notify(self, notification: AlertNotificationDTO) -> None:
        if not self.url:
            raise APIError("NOTIFIER_WEBHOOK_URL is not set in environment variables.")

        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = self.session.post(
                self.url, json=notification.to_payload(), headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise APIError(f"Notification request timed out: {e}", original_exception=e)
        except requests.exceptions.RequestException as e:
            status_code = e.response.status_code if e.response is not None else None
            raise APIError(
                f"Error delivering {notification.alert_type} notification for ledger {notification.ledger_id}",
                original_exception=e,
                status_code=status_code,
            )

        logger.debug(f"Delivered {notification.alert_type} notification for ledger {notification.ledger_id}")
