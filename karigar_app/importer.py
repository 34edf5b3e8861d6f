from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import sqlite3

from .codec import decode_mapping, encode_mapping
from .db import (
    MAPPING_BLOB_KEY,
    finish_import_run,
    get_daily_orders,
    get_karigar_assignments,
    load_blob,
    log_issue,
    replace_daily_orders,
    save_blob,
    start_import_run,
)
from .decoders import DEFAULT_DECODERS, Decoders
from .enrich import EnrichmentResult, apply_assignments, enrich_orders
from .mapping_parser import MappingParserConfig
from .order_parser import DEFAULT_ORDER_SCAN_ROWS, parse_order_file
from .workbook import ParsedMappingWorkbook, parse_mapping_file


logger = logging.getLogger(__name__)


@dataclass
class OrderImportStats:
    run_id: int
    orders_imported: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass
class MappingImportStats:
    run_id: int
    entries_imported: int = 0
    sheet_names: list[str] = field(default_factory=list)
    sheet_errors: list[str] = field(default_factory=list)


def import_orders_file(
    conn: sqlite3.Connection,
    path: Path,
    order_date: str,
    mime_type: str = "",
    decoders: Decoders = DEFAULT_DECODERS,
    max_rows_to_scan: int = DEFAULT_ORDER_SCAN_ROWS,
) -> OrderImportStats:
    run_id = start_import_run(conn, "orders", path.name)
    stats = OrderImportStats(run_id=run_id)
    try:
        result = parse_order_file(
            path.read_bytes(), path.name, mime_type=mime_type, decoders=decoders, max_rows_to_scan=max_rows_to_scan
        )
        for warning in result.warnings:
            stats.warnings.append(warning.message)
            log_issue(conn, run_id=run_id, severity="warning", message=warning.message, file_path=str(path))
        stats.orders_imported = replace_daily_orders(conn, order_date, result.orders)
        status = "completed_with_warnings" if stats.warnings else "completed"
        finish_import_run(
            conn,
            run_id,
            status=status,
            rows_imported=stats.orders_imported,
            sheets_parsed=1,
            warnings_count=len(stats.warnings),
        )
        logger.info("Imported %d orders for %s from %s", stats.orders_imported, order_date, path)
        return stats
    except Exception as exc:
        conn.rollback()
        log_issue(conn, run_id=run_id, severity="error", message=str(exc), file_path=str(path))
        finish_import_run(conn, run_id, status="failed", errors_count=1)
        raise


def import_mapping_file(
    conn: sqlite3.Connection,
    path: Path,
    config: MappingParserConfig | None = None,
    mime_type: str = "",
    decoders: Decoders = DEFAULT_DECODERS,
) -> MappingImportStats:
    run_id = start_import_run(conn, "mapping", path.name)
    stats = MappingImportStats(run_id=run_id)
    try:
        resolution = parse_mapping_file(path.read_bytes(), path.name, mime_type=mime_type, decoders=decoders, config=config)
        for result in resolution.sheet_results:
            if result.error:
                stats.sheet_errors.append(result.error)
                log_issue(
                    conn,
                    run_id=run_id,
                    severity="warning",
                    message=result.error,
                    file_path=str(path),
                    sheet_name=result.sheet_name,
                )
        save_blob(conn, MAPPING_BLOB_KEY, encode_mapping(resolution.workbook))
        stats.entries_imported = resolution.total_entries
        stats.sheet_names = list(resolution.workbook)
        status = "completed_with_warnings" if stats.sheet_errors else "completed"
        finish_import_run(
            conn,
            run_id,
            status=status,
            rows_imported=stats.entries_imported,
            sheets_parsed=len(stats.sheet_names),
            warnings_count=len(stats.sheet_errors),
        )
        logger.info("Imported %d mapping entries from %s", stats.entries_imported, path)
        return stats
    except Exception as exc:
        conn.rollback()
        log_issue(conn, run_id=run_id, severity="error", message=str(exc), file_path=str(path))
        finish_import_run(conn, run_id, status="failed", errors_count=1)
        raise


def load_mapping(conn: sqlite3.Connection) -> ParsedMappingWorkbook | None:
    blob = load_blob(conn, MAPPING_BLOB_KEY)
    if blob is None:
        return None
    return decode_mapping(blob)


def enrich_saved_orders(conn: sqlite3.Connection, order_date: str, fold_separators: bool = False) -> EnrichmentResult:
    # Rebuilt on every call so a newly uploaded mapping is never served stale.
    workbook = load_mapping(conn) or {}
    result = enrich_orders(get_daily_orders(conn, order_date), workbook, fold_separators=fold_separators)
    return apply_assignments(result, get_karigar_assignments(conn, order_date))
