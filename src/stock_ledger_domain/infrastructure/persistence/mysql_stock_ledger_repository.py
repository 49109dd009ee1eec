# src/stock_ledger_domain/infrastructure/persistence/mysql_stock_ledger_repository.py
"""MySQL implementation of the Stock Ledger repository."""

import json
import logging
from datetime import datetime
from typing import Iterator, Optional

import mysql.connector
from mysql.connector import Error, errorcode

from src.common.config.settings import settings
from src.common.exceptions.custom_exceptions import DatabaseError, DuplicateLedgerError, OptimisticConflictError
from src.common.utils.date_utils import format_datetime_for_db
from src.stock_ledger_domain.domain.entities.enums import LedgerStatus, LotStatus
from src.stock_ledger_domain.domain.entities.stock_ledger import StockLedger
from src.stock_ledger_domain.domain.repositories.stock_ledger_repository import IStockLedgerRepository

logger = logging.getLogger(__name__)

_ATTENTION_STATUSES = (LedgerStatus.LOW_STOCK, LedgerStatus.OUT_OF_STOCK, LedgerStatus.OVERSTOCKED)


class MySQLStockLedgerRepository(IStockLedgerRepository):
    """
    Stores each ledger as a JSON document, one row per (vendor_id, product_id).
    status, total_quantity and next_expiry are denormalised out of the document so the
    monitoring scan can filter in SQL. `version` backs optimistic concurrency.
    """

    def __init__(self) -> None:
        """Initializes the repository."""
        self._connection = None

    def _get_connection(self):
        """Establishes or returns an active MySQL database connection."""
        if not self._connection or not self._connection.is_connected():
            try:
                self._connection = mysql.connector.connect(
                    host=settings.DB_HOST,
                    database=settings.DB_DATABASE,
                    user=settings.DB_USER,
                    password=settings.DB_PASSWORD,
                    autocommit=False,  # Better control over transactions
                    charset="utf8mb4",
                    use_unicode=True,
                )
            except Error as e:
                raise DatabaseError(f"Failed to connect to MySQL: {e}", original_exception=e)
        return self._connection

    def create_tables(self) -> None:
        """Creates the ledger table with the 'mkt_' prefix."""
        create_ledger_table_query = """
        CREATE TABLE IF NOT EXISTS mkt_stock_ledgers (
            id VARCHAR(64) PRIMARY KEY,
            vendor_id VARCHAR(64) NOT NULL,
            product_id VARCHAR(64) NOT NULL,
            status VARCHAR(20) NOT NULL,
            total_quantity DOUBLE NOT NULL DEFAULT 0,
            next_expiry DATETIME NULL,
            last_stock_update DATETIME NULL,
            document JSON NOT NULL,
            version INT UNSIGNED NOT NULL DEFAULT 1,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
            UNIQUE KEY uk_vendor_product (vendor_id, product_id),
            INDEX idx_vendor_status (vendor_id, status),
            INDEX idx_status_quantity (status, total_quantity),
            INDEX idx_next_expiry (next_expiry),
            INDEX idx_last_stock_update (last_stock_update)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;
        """
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(create_ledger_table_query)
            conn.commit()
            logger.info("MKT stock ledger table checked/created.")
        except Error as e:
            conn.rollback()
            raise DatabaseError(f"Error creating MKT stock ledger table: {e}", original_exception=e)
        finally:
            cursor.close()

    @staticmethod
    def _next_expiry(ledger: StockLedger) -> Optional[str]:
        expiries = [
            lot.expiry_date
            for lot in ledger.lots
            if lot.status is LotStatus.ACTIVE and lot.remaining_quantity > 0 and lot.expiry_date is not None
        ]
        return format_datetime_for_db(min(expiries)) if expiries else None

    def add(self, ledger: StockLedger) -> None:
        conn = self._get_connection()
        cursor = conn.cursor()

        insert_query = """
        INSERT INTO mkt_stock_ledgers
        (id, vendor_id, product_id, status, total_quantity, next_expiry, last_stock_update, document, version)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, 1)
        """
        params = (
            ledger.ledger_id,
            ledger.vendor_id,
            ledger.product_id,
            ledger.status.value,
            ledger.current_stock.total_quantity,
            self._next_expiry(ledger),
            format_datetime_for_db(ledger.last_stock_update_at),
            json.dumps(ledger.to_dict()),
        )

        try:
            cursor.execute(insert_query, params)
            conn.commit()
            ledger.version = 1
        except Error as e:
            conn.rollback()
            if getattr(e, "errno", None) == errorcode.ER_DUP_ENTRY:
                raise DuplicateLedgerError(ledger.vendor_id, ledger.product_id, original_exception=e)
            raise DatabaseError(f"Error inserting ledger {ledger.ledger_id}: {e}", original_exception=e)
        finally:
            cursor.close()

    def save(self, ledger: StockLedger) -> None:
        conn = self._get_connection()
        cursor = conn.cursor()

        update_query = """
        UPDATE mkt_stock_ledgers
        SET status = %s, total_quantity = %s, next_expiry = %s, last_stock_update = %s,
            document = %s, version = version + 1
        WHERE id = %s AND version = %s
        """
        params = (
            ledger.status.value,
            ledger.current_stock.total_quantity,
            self._next_expiry(ledger),
            format_datetime_for_db(ledger.last_stock_update_at),
            json.dumps(ledger.to_dict()),
            ledger.ledger_id,
            ledger.version,
        )

        try:
            cursor.execute(update_query, params)
            if cursor.rowcount == 0:
                conn.rollback()
                raise OptimisticConflictError(ledger.ledger_id, ledger.version)
            conn.commit()
            ledger.version += 1
        except Error as e:
            conn.rollback()
            raise DatabaseError(f"Error saving ledger {ledger.ledger_id}: {e}", original_exception=e)
        finally:
            cursor.close()

    @staticmethod
    def _row_to_ledger(row: dict) -> StockLedger:
        document = row["document"]
        if isinstance(document, (bytes, bytearray)):
            document = document.decode("utf-8")
        if isinstance(document, str):
            document = json.loads(document)
        return StockLedger.from_dict(document, version=row["version"])

    def _fetch_one(self, query: str, params: tuple) -> Optional[StockLedger]:
        conn = self._get_connection()
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(query, params)
            row = cursor.fetchone()
            conn.commit()  # end the read snapshot so later loads see other writers
            return self._row_to_ledger(row) if row else None
        except Error as e:
            raise DatabaseError(f"Error fetching ledger: {e}", original_exception=e)
        finally:
            cursor.close()

    def get_by_id(self, ledger_id: str) -> Optional[StockLedger]:
        return self._fetch_one("SELECT document, version FROM mkt_stock_ledgers WHERE id = %s LIMIT 1", (ledger_id,))

    def get_by_vendor_product(self, vendor_id: str, product_id: str) -> Optional[StockLedger]:
        return self._fetch_one(
            "SELECT document, version FROM mkt_stock_ledgers WHERE vendor_id = %s AND product_id = %s LIMIT 1",
            (vendor_id, product_id),
        )

    def list_by_vendor(self, vendor_id: str, statuses: Optional[list[LedgerStatus]] = None) -> list[StockLedger]:
        conn = self._get_connection()
        cursor = conn.cursor(dictionary=True)

        query = "SELECT document, version FROM mkt_stock_ledgers WHERE vendor_id = %s"
        params: list = [vendor_id]
        if statuses:
            placeholders = ",".join(["%s"] * len(statuses))
            query += f" AND status IN ({placeholders})"
            params.extend(status.value for status in statuses)
        query += " ORDER BY total_quantity ASC"

        try:
            cursor.execute(query, tuple(params))
            rows = cursor.fetchall()
            conn.commit()
            return [self._row_to_ledger(row) for row in rows]
        except Error as e:
            raise DatabaseError(f"Error fetching ledgers for vendor {vendor_id}: {e}", original_exception=e)
        finally:
            cursor.close()

    def list_ledger_ids(self) -> list[str]:
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute("SELECT id FROM mkt_stock_ledgers ORDER BY id")
            rows = cursor.fetchall()
            conn.commit()
            return [row[0] for row in rows]
        except Error as e:
            raise DatabaseError(f"Error fetching ledger ids: {e}", original_exception=e)
        finally:
            cursor.close()

    def iter_needing_attention(self, expiring_before: datetime, batch_size: int = 50) -> Iterator[list[StockLedger]]:
        """Keyset-paginated scan so no batch holds more than batch_size documents."""
        placeholders = ",".join(["%s"] * len(_ATTENTION_STATUSES))
        query = f"""
        SELECT id, document, version
        FROM mkt_stock_ledgers
        WHERE (status IN ({placeholders}) OR next_expiry <= %s) AND id > %s
        ORDER BY id
        LIMIT %s
        """
        last_id = ""
        while True:
            conn = self._get_connection()
            cursor = conn.cursor(dictionary=True)
            params = (
                *(status.value for status in _ATTENTION_STATUSES),
                format_datetime_for_db(expiring_before),
                last_id,
                batch_size,
            )
            try:
                cursor.execute(query, params)
                rows = cursor.fetchall()
                # End the read snapshot so the next page sees fresh rows
                conn.commit()
            except Error as e:
                raise DatabaseError(f"Error scanning ledgers needing attention: {e}", original_exception=e)
            finally:
                cursor.close()

            if not rows:
                return
            yield [self._row_to_ledger(row) for row in rows]
            if len(rows) < batch_size:
                return
            last_id = rows[-1]["id"]

    def __del__(self) -> None:
        """Closes the database connection when the object is destroyed."""
        if self._connection and self._connection.is_connected():
            self._connection.close()
