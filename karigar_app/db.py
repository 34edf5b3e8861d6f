from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Iterable

from .order_parser import ParsedOrder
from .text_normalize import normalize_cell_value


MAPPING_BLOB_KEY = "karigar_mapping_workbook"

SCHEMA_SQL = """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS daily_orders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    order_date TEXT NOT NULL,
    position INTEGER NOT NULL,
    order_no TEXT NOT NULL DEFAULT '',
    design TEXT NOT NULL DEFAULT '',
    weight TEXT NOT NULL DEFAULT '',
    size TEXT NOT NULL DEFAULT '',
    quantity TEXT NOT NULL DEFAULT '',
    remarks TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS blobs (
    key TEXT PRIMARY KEY,
    payload BLOB NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS karigar_assignments (
    order_date TEXT NOT NULL,
    order_no TEXT NOT NULL,
    karigar TEXT NOT NULL,
    factory TEXT,
    assigned_at TEXT DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY(order_date, order_no)
);

CREATE TABLE IF NOT EXISTS import_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    source_filename TEXT,
    started_at TEXT DEFAULT CURRENT_TIMESTAMP,
    finished_at TEXT,
    status TEXT NOT NULL,
    rows_imported INTEGER DEFAULT 0,
    sheets_parsed INTEGER DEFAULT 0,
    warnings_count INTEGER DEFAULT 0,
    errors_count INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS import_issues (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    import_run_id INTEGER NOT NULL,
    severity TEXT NOT NULL,
    file_path TEXT,
    sheet_name TEXT,
    message TEXT NOT NULL,
    FOREIGN KEY(import_run_id) REFERENCES import_runs(id)
);

CREATE INDEX IF NOT EXISTS idx_daily_orders_date ON daily_orders(order_date, position);
CREATE INDEX IF NOT EXISTS idx_issues_run ON import_issues(import_run_id);
"""


def get_connection(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA_SQL)
    conn.commit()


def replace_daily_orders(conn: sqlite3.Connection, order_date: str, orders: Iterable[ParsedOrder]) -> int:
    count = 0
    with conn:
        conn.execute("DELETE FROM daily_orders WHERE order_date=?", (order_date,))
        for position, order in enumerate(orders):
            conn.execute(
                """
                INSERT INTO daily_orders(order_date, position, order_no, design, weight, size, quantity, remarks)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    order_date,
                    position,
                    order.order_no,
                    order.design,
                    order.weight,
                    order.size,
                    order.quantity,
                    order.remarks,
                ),
            )
            count += 1
    return count


def get_daily_orders(conn: sqlite3.Connection, order_date: str) -> list[ParsedOrder]:
    rows = conn.execute(
        """
        SELECT order_no, design, weight, size, quantity, remarks
        FROM daily_orders
        WHERE order_date=?
        ORDER BY position
        """,
        (order_date,),
    ).fetchall()
    return [ParsedOrder.from_dict(dict(row)) for row in rows]


def remove_orders(conn: sqlite3.Connection, order_date: str, order_nos: Iterable[str]) -> int:
    numbers = [str(n) for n in order_nos]
    if not numbers:
        return 0
    placeholders = ",".join(["?"] * len(numbers))
    cur = conn.execute(
        f"DELETE FROM daily_orders WHERE order_date=? AND order_no IN ({placeholders})",
        [order_date, *numbers],
    )
    conn.execute(
        f"DELETE FROM karigar_assignments WHERE order_date=? AND order_no IN ({placeholders})",
        [order_date, *numbers],
    )
    conn.commit()
    return int(cur.rowcount)


def assign_karigar(
    conn: sqlite3.Connection,
    order_date: str,
    order_nos: Iterable[str],
    karigar: str,
    factory: str | None = None,
) -> int:
    name = normalize_cell_value(karigar)
    if not name:
        raise ValueError("Karigar name is required")
    numbers = list(dict.fromkeys(normalize_cell_value(n) for n in order_nos))
    numbers = [n for n in numbers if n]
    with conn:
        for order_no in numbers:
            conn.execute(
                """
                INSERT INTO karigar_assignments(order_date, order_no, karigar, factory, assigned_at)
                VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(order_date, order_no) DO UPDATE SET
                    karigar=excluded.karigar,
                    factory=excluded.factory,
                    assigned_at=CURRENT_TIMESTAMP
                """,
                (order_date, order_no, name, normalize_cell_value(factory) or None),
            )
    return len(numbers)


def get_karigar_assignments(conn: sqlite3.Connection, order_date: str) -> dict[str, str]:
    rows = conn.execute(
        "SELECT order_no, karigar FROM karigar_assignments WHERE order_date=? ORDER BY order_no",
        (order_date,),
    ).fetchall()
    return {str(row["order_no"]): str(row["karigar"]) for row in rows}


def list_order_dates(conn: sqlite3.Connection) -> list[str]:
    rows = conn.execute("SELECT DISTINCT order_date FROM daily_orders ORDER BY order_date").fetchall()
    return [str(row["order_date"]) for row in rows]


def save_blob(conn: sqlite3.Connection, key: str, payload: bytes) -> None:
    conn.execute(
        """
        INSERT INTO blobs(key, payload, updated_at)
        VALUES (?, ?, CURRENT_TIMESTAMP)
        ON CONFLICT(key) DO UPDATE SET
            payload=excluded.payload,
            updated_at=CURRENT_TIMESTAMP
        """,
        (key, sqlite3.Binary(payload)),
    )
    conn.commit()


def load_blob(conn: sqlite3.Connection, key: str) -> bytes | None:
    row = conn.execute("SELECT payload FROM blobs WHERE key=?", (key,)).fetchone()
    if row is None:
        return None
    return bytes(row["payload"])


def start_import_run(conn: sqlite3.Connection, kind: str, source_filename: str | None = None) -> int:
    cur = conn.execute(
        "INSERT INTO import_runs(kind, source_filename, status) VALUES (?, ?, 'running')",
        (kind, source_filename),
    )
    conn.commit()
    return int(cur.lastrowid)


def finish_import_run(conn: sqlite3.Connection, run_id: int, **stats: Any) -> None:
    updates = ["finished_at=CURRENT_TIMESTAMP", "status=:status"]
    params: dict[str, Any] = {"id": run_id, "status": stats.get("status", "completed")}
    for key in (
        "rows_imported",
        "sheets_parsed",
        "warnings_count",
        "errors_count",
    ):
        if key in stats:
            updates.append(f"{key}=:{key}")
            params[key] = stats[key]
    conn.execute(f"UPDATE import_runs SET {', '.join(updates)} WHERE id=:id", params)
    conn.commit()


def log_issue(
    conn: sqlite3.Connection,
    run_id: int,
    severity: str,
    message: str,
    file_path: str | None = None,
    sheet_name: str | None = None,
) -> None:
    conn.execute(
        """
        INSERT INTO import_issues(import_run_id, severity, file_path, sheet_name, message)
        VALUES (?, ?, ?, ?, ?)
        """,
        (
            run_id,
            severity,
            file_path,
            sheet_name,
            message,
        ),
    )


def list_issues(conn: sqlite3.Connection, run_id: int) -> list[sqlite3.Row]:
    return conn.execute(
        "SELECT severity, sheet_name, message FROM import_issues WHERE import_run_id=? ORDER BY id",
        (run_id,),
    ).fetchall()
