# src/listing_domain/infrastructure/persistence/mysql_listing_repository.py
"""MySQL implementation of the Listing repository (availability columns only)."""

import logging
from typing import Optional

import mysql.connector
from mysql.connector import Error

from src.common.config.settings import settings
from src.common.exceptions.custom_exceptions import DatabaseError
from src.listing_domain.domain.entities.listing import Listing, ListingStatus
from src.listing_domain.domain.repositories.listing_repository import IListingRepository

logger = logging.getLogger(__name__)

_SELECT_COLUMNS = "id, listing_id, vendor_id, ledger_id, quantity_available, unit, price_per_unit, status"


class MySQLListingRepository(IListingRepository):
    """Reads and updates the stock-facing columns of mkt_listings; the catalogue layer owns the rest."""

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
                    autocommit=False,
                    charset="utf8mb4",
                    use_unicode=True,
                )
            except Error as e:
                raise DatabaseError(f"Failed to connect to MySQL: {e}", original_exception=e)
        return self._connection

    def create_tables(self) -> None:
        create_listing_table_query = """
        CREATE TABLE IF NOT EXISTS mkt_listings (
            id BIGINT UNSIGNED PRIMARY KEY AUTO_INCREMENT,
            listing_id VARCHAR(64) NOT NULL,
            vendor_id VARCHAR(64) NOT NULL,
            ledger_id VARCHAR(64) NOT NULL,
            quantity_available DOUBLE NOT NULL DEFAULT 0,
            unit VARCHAR(20) NOT NULL,
            price_per_unit DOUBLE NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'active',
            date_synced DATETIME DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
            UNIQUE KEY uk_listing_id (listing_id),
            INDEX idx_ledger_id (ledger_id),
            INDEX idx_vendor_id (vendor_id)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;
        """
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(create_listing_table_query)
            conn.commit()
            logger.info("MKT listings table checked/created.")
        except Error as e:
            conn.rollback()
            raise DatabaseError(f"Error creating MKT listings table: {e}", original_exception=e)
        finally:
            cursor.close()

    @staticmethod
    def _row_to_listing(row: dict) -> Listing:
        return Listing(
            id=row["id"],
            listing_id=row["listing_id"],
            vendor_id=row["vendor_id"],
            ledger_id=row["ledger_id"],
            advertised_quantity=row["quantity_available"],
            unit=row["unit"],
            price_per_unit=row["price_per_unit"],
            status=ListingStatus(row["status"]),
        )

    def _fetch(self, where: str, params: tuple) -> list[Listing]:
        conn = self._get_connection()
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(f"SELECT {_SELECT_COLUMNS} FROM mkt_listings WHERE {where}", params)
            rows = cursor.fetchall()
            conn.commit()
            return [self._row_to_listing(row) for row in rows]
        except Error as e:
            raise DatabaseError(f"Error fetching listings: {e}", original_exception=e)
        finally:
            cursor.close()

    def get_by_id(self, listing_id: str) -> Optional[Listing]:
        listings = self._fetch("listing_id = %s LIMIT 1", (listing_id,))
        return listings[0] if listings else None

    def list_by_ledger(self, ledger_id: str) -> list[Listing]:
        return self._fetch("ledger_id = %s", (ledger_id,))

    def list_by_vendor(self, vendor_id: str) -> list[Listing]:
        return self._fetch("vendor_id = %s AND ledger_id IS NOT NULL", (vendor_id,))

    def save_availability(self, listing: Listing) -> None:
        conn = self._get_connection()
        cursor = conn.cursor()

        update_query = """
        UPDATE mkt_listings
        SET quantity_available = %s, unit = %s, status = %s
        WHERE listing_id = %s
        """
        params = (listing.advertised_quantity, listing.unit, listing.status.value, listing.listing_id)

        try:
            cursor.execute(update_query, params)
            conn.commit()
        except Error as e:
            conn.rollback()
            raise DatabaseError(
                f"Error saving availability for listing {listing.listing_id}: {e}", original_exception=e
            )
        finally:
            cursor.close()

    def __del__(self) -> None:
        """Closes the database connection when the object is destroyed."""
        if self._connection and self._connection.is_connected():
            self._connection.close()
