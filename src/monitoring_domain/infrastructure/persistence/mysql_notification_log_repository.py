# src/monitoring_domain/infrastructure/persistence/mysql_notification_log_repository.py
"""MySQL log of sent inventory notifications, used for the dedup window."""

import logging

import mysql.connector
from mysql.connector import Error

from src.common.config.settings import settings
from src.common.dtos.ledger_dtos import AlertNotificationDTO
from src.common.exceptions.custom_exceptions import DatabaseError
from src.common.utils.date_utils import Clock, format_datetime_for_db, utc_now
from src.monitoring_domain.domain.notifier import IRecentNotificationChecker

logger = logging.getLogger(__name__)


class MySQLNotificationLogRepository(IRecentNotificationChecker):
    def __init__(self, clock: Clock = utc_now) -> None:
        """Initializes the repository."""
        self._connection = None
        self.clock = clock

    def _get_connection(self):
        """Establishes or returns an active MySQL database connection."""
        if not self._connection or not self._connection.is_connected():
            try:
                self._connection = mysql.connector.connect(
                    host=settings.DB_HOST,
                    database=settings.DB_DATABASE,
                    user=settings.DB_USER,
                    password=settings.DB_PASSWORD,
                    autocommit=False,
                    charset="utf8mb4",
                    use_unicode=True,
                )
            except Error as e:
                raise DatabaseError(f"Failed to connect to MySQL: {e}", original_exception=e)
        return self._connection

    def create_tables(self) -> None:
        create_notification_table_query = """
        CREATE TABLE IF NOT EXISTS mkt_inventory_notifications (
            id BIGINT UNSIGNED PRIMARY KEY AUTO_INCREMENT,
            vendor_id VARCHAR(64) NOT NULL,
            ledger_id VARCHAR(64) NOT NULL,
            product_id VARCHAR(64) NOT NULL,
            alert_type VARCHAR(32) NOT NULL,
            severity VARCHAR(16) NOT NULL,
            priority VARCHAR(16),
            title VARCHAR(255),
            message TEXT,
            created_at DATETIME NOT NULL,
            INDEX idx_dedup (vendor_id, alert_type, ledger_id, created_at)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;
        """
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(create_notification_table_query)
            conn.commit()
            logger.info("MKT inventory notifications table checked/created.")
        except Error as e:
            conn.rollback()
            raise DatabaseError(f"Error creating MKT inventory notifications table: {e}", original_exception=e)
        finally:
            cursor.close()

    def has_recent_notification(self, vendor_id: str, alert_type: str, ledger_id: str, hours_ago: int) -> bool:
        query = """
        SELECT 1 FROM mkt_inventory_notifications
        WHERE vendor_id = %s AND alert_type = %s AND ledger_id = %s
          AND created_at >= (%s - INTERVAL %s HOUR)
        LIMIT 1
        """
        params = (vendor_id, alert_type, ledger_id, format_datetime_for_db(self.clock()), hours_ago)

        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(query, params)
            found = cursor.fetchone() is not None
            conn.commit()
            return found
        except Error as e:
            raise DatabaseError(f"Error checking recent notifications: {e}", original_exception=e)
        finally:
            cursor.close()

    def record_notification(self, notification: AlertNotificationDTO) -> None:
        insert_query = """
        INSERT INTO mkt_inventory_notifications (
            vendor_id, ledger_id, product_id, alert_type, severity, priority, title, message, created_at
        ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        params = (
            notification.vendor_id,
            notification.ledger_id,
            notification.product_id,
            notification.alert_type,
            notification.severity,
            notification.priority,
            notification.title,
            notification.message,
            format_datetime_for_db(notification.created_at or self.clock()),
        )

        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(insert_query, params)
            conn.commit()
        except Error as e:
            conn.rollback()
            raise DatabaseError(f"Error recording notification: {e}", original_exception=e)
        finally:
            cursor.close()

    def __del__(self) -> None:
        """Closes the database connection when the object is destroyed."""
        if self._connection and self._connection.is_connected():
            self._connection.close()
