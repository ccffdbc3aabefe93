# -*- coding: utf-8 -*-
"""
-------------------------------------------------------------------------------
 Name:          db_utils.py
 Purpose:       Database utility functions for SQLite.
                Handles the trade ledger: connection, schema creation, path
                management, and reading trades back as Trade records.

 Author:        Kit Matan
 Author Email:  kittiwit@gmail.com

 Copyright:     (c) Kittiwit Matan 2025
 Licence:       MIT
-------------------------------------------------------------------------------
SPDX-License-Identifier: MIT
"""
import sqlite3
from datetime import datetime, timezone
import os
import logging
from typing import Optional, Dict, Any, Tuple, List
import pandas as pd
import config
from errors import InvalidInputError, UpstreamFailureError
from finutils import parse_trade_date
from models import Trade, TradeSide

TRADE_COLUMNS = [
    "TradeId",
    "Ticker",
    "Side",
    "Quantity",
    "Price",
    "Fx",
    "TradeDate",
    "Book",
]


def get_database_path(db_filename: str = config.DB_FILENAME) -> str:
    """Full path of the ledger file inside the app data directory."""
    app_data_dir = config.get_app_data_dir()
    return os.path.join(app_data_dir, db_filename)


def get_db_connection(db_path: Optional[str] = None) -> Optional[sqlite3.Connection]:
    """Establishes a connection to the SQLite database."""
    if db_path is None:
        db_path = get_database_path()
    try:
        db_dir = os.path.dirname(db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        conn = sqlite3.connect(db_path)
        logging.info(f"Successfully connected to database: {db_path}")
        return conn
    except sqlite3.Error as e:
        logging.error(f"Error connecting to database at {db_path}: {e}", exc_info=True)
        return None
    except OSError as e_os:
        logging.error(
            f"OS error setting up database path {db_path}: {e_os}", exc_info=True
        )
        return None


def create_trades_table(conn: sqlite3.Connection):
    """Creates the trades table and schema_version table if they don't exist."""
    create_table_sql = """
    CREATE TABLE IF NOT EXISTS trades (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        TradeId TEXT,
        Ticker TEXT NOT NULL,
        Side TEXT NOT NULL,
        Quantity REAL NOT NULL,
        Price REAL NOT NULL,
        Fx REAL NOT NULL DEFAULT 1.0,
        TradeDate TEXT NOT NULL,
        Book TEXT
    );
    """
    create_version_table_sql = """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_on TEXT NOT NULL
    );
    """
    try:
        cursor = conn.cursor()
        cursor.execute(create_table_sql)
        cursor.execute(create_version_table_sql)
        cursor.execute(
            "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
        )
        row = cursor.fetchone()
        current_db_version = row[0] if row else 0
        if current_db_version < config.DB_SCHEMA_VERSION:
            cursor.execute(
                "INSERT OR REPLACE INTO schema_version (version, applied_on) VALUES (?, ?)",
                (config.DB_SCHEMA_VERSION, datetime.now(timezone.utc).isoformat()),
            )
            logging.info(f"Initialized database schema to version {config.DB_SCHEMA_VERSION}.")
        conn.commit()
    except sqlite3.Error as e:
        logging.error(f"Error creating/updating tables: {e}", exc_info=True)
        conn.rollback()
        raise


def initialize_database(db_path: Optional[str] = None) -> Optional[sqlite3.Connection]:
    conn = get_db_connection(db_path)
    if conn:
        create_trades_table(conn)
    return conn


def add_trade_to_db(
    db_conn: sqlite3.Connection, trade_data: Dict[str, Any]
) -> Tuple[bool, Optional[int]]:
    """
    Inserts one trade. `trade_data` uses the TRADE_COLUMNS keys.

    TradeDate may be an RFC3339 string or a tz-aware datetime; Side must be
    'buy' or 'sell' (any case).

    Returns:
        (success, new row id)
    """
    values = []
    for col_name in TRADE_COLUMNS:
        value = trade_data.get(col_name)
        if col_name == "TradeDate":
            if isinstance(value, datetime):
                value = value.strftime(config.TRADE_DATE_FORMAT)
            if parse_trade_date(value) is None:
                logging.error(f"Invalid trade date for DB: {value}")
                return False, None
        elif col_name == "Side":
            try:
                value = TradeSide.parse(value).value
            except InvalidInputError as e:
                logging.error(f"Invalid trade side for DB: {e}")
                return False, None
        elif col_name == "Fx" and value is None:
            value = 1.0
        values.append(value)

    placeholders = ", ".join("?" for _ in TRADE_COLUMNS)
    sql_insert = f"INSERT INTO trades ({', '.join(TRADE_COLUMNS)}) VALUES ({placeholders});"
    try:
        cursor = db_conn.cursor()
        cursor.execute(sql_insert, values)
        db_conn.commit()
        new_id = cursor.lastrowid
        logging.info(f"Successfully added trade with ID: {new_id}.")
        return True, new_id
    except sqlite3.Error as e:
        logging.error(
            f"Error adding trade to database. Data: {trade_data} - Error: {e}",
            exc_info=True,
        )
        db_conn.rollback()
        return False, None


def delete_trade_from_db(db_conn: sqlite3.Connection, row_id: int) -> bool:
    try:
        cursor = db_conn.cursor()
        cursor.execute("DELETE FROM trades WHERE id = ?", (row_id,))
        db_conn.commit()
        if cursor.rowcount == 0:
            logging.warning(f"Delete trade: No row found with ID: {row_id}")
            return False
        logging.info(f"Successfully deleted trade ID: {row_id}")
        return True
    except sqlite3.Error as e:
        logging.error(f"Error deleting trade ID {row_id}: {e}", exc_info=True)
        db_conn.rollback()
        return False


def load_all_trades_from_db(db_conn: sqlite3.Connection) -> pd.DataFrame:
    """Loads the ledger in insertion order. Raises sqlite3.Error on failure."""
    query = f"""
    SELECT id as original_index, {', '.join(TRADE_COLUMNS)}
    FROM trades
    ORDER BY original_index;
    """
    df = pd.read_sql_query(query, db_conn)
    for col in ["Quantity", "Price", "Fx"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df["Fx"] = df["Fx"].fillna(1.0)
    logging.info(f"Successfully loaded {len(df)} trades from the database.")
    return df


def trades_from_frame(df: pd.DataFrame) -> List[Trade]:
    """Converts ledger rows to Trade records, skipping rows with bad sides or numbers."""
    trades: List[Trade] = []
    for row in df.itertuples(index=False):
        if pd.isna(row.Quantity) or pd.isna(row.Price):
            logging.warning(f"Skipping trade row {row.original_index}: missing quantity/price")
            continue
        try:
            side = TradeSide.parse(row.Side)
        except InvalidInputError as e:
            logging.warning(f"Skipping trade row {row.original_index}: {e}")
            continue
        trades.append(
            Trade(
                ticker=row.Ticker,
                side=side,
                quantity=float(row.Quantity),
                price=float(row.Price),
                fx=float(row.Fx),
                trade_date=row.TradeDate,
                book=row.Book if isinstance(row.Book, str) else "",
                trade_id=row.TradeId if isinstance(row.TradeId, str) else None,
            )
        )
    return trades


class SqliteTradeSource:
    """TradeSource backed by the SQLite ledger."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or get_database_path()

    def get_trades(self) -> List[Trade]:
        try:
            conn = initialize_database(self.db_path)
        except sqlite3.Error as e:
            raise UpstreamFailureError(f"could not prepare trade ledger at {self.db_path}: {e}") from e
        if conn is None:
            raise UpstreamFailureError(f"could not open trade ledger at {self.db_path}")
        try:
            return trades_from_frame(load_all_trades_from_db(conn))
        except sqlite3.Error as e:
            raise UpstreamFailureError(f"failed to load trades: {e}") from e
        finally:
            conn.close()
