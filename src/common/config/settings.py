"""Application settings and environment variables."""

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file


class Settings:
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_DATABASE: str = os.getenv("DB_NAME", "marketplace_db")
    DB_USER: str = os.getenv("DB_USER", "user")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "password")

    # Timezone used for log banners and vendor reports; stored timestamps are always UTC
    APP_TIMEZONE: str = os.getenv("APP_TIMEZONE", "Asia/Dhaka")

    # Defaults applied when a ledger is created by its first purchase
    DEFAULT_REORDER_LEVEL: float = float(os.getenv("DEFAULT_REORDER_LEVEL", "10"))
    DEFAULT_MAX_STOCK_LEVEL: float = float(os.getenv("DEFAULT_MAX_STOCK_LEVEL", "100"))
    DEFAULT_REORDER_QUANTITY: float = float(os.getenv("DEFAULT_REORDER_QUANTITY", "50"))

    # Alerting
    NO_MOVEMENT_DAYS: int = int(os.getenv("NO_MOVEMENT_DAYS", "30"))
    EXPIRY_LOOKAHEAD_DAYS: int = int(os.getenv("EXPIRY_LOOKAHEAD_DAYS", "7"))
    LOW_MARGIN_THRESHOLD_PERCENT: float = float(os.getenv("LOW_MARGIN_THRESHOLD_PERCENT", "10"))

    # Monitoring scheduler
    MONITOR_INTERVAL_MINUTES: int = int(os.getenv("MONITOR_INTERVAL_MINUTES", "60"))
    MONITOR_BATCH_SIZE: int = int(os.getenv("MONITOR_BATCH_SIZE", "50"))
    NOTIFICATION_DEDUP_HOURS: int = int(os.getenv("NOTIFICATION_DEDUP_HOURS", "24"))
    MANUAL_CHECK_DEDUP_HOURS: int = int(os.getenv("MANUAL_CHECK_DEDUP_HOURS", "1"))

    # Outbound notifier
    NOTIFIER_WEBHOOK_URL: Optional[str] = os.getenv("NOTIFIER_WEBHOOK_URL")
    NOTIFIER_WEBHOOK_TOKEN: Optional[str] = os.getenv("NOTIFIER_WEBHOOK_TOKEN")

    # Logging settings
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")  # INFO, DEBUG, WARNING, ERROR, CRITICAL
    LOG_FILE: Optional[str] = os.getenv("LOG_FILE")


settings = Settings()
