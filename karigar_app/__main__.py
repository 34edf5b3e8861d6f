from __future__ import annotations

import argparse
from dataclasses import replace
import logging
from pathlib import Path
import sys

from .db import assign_karigar, get_connection, init_db
from .enrich import group_orders_by_karigar, mapping_summary
from .errors import user_facing_error
from .importer import enrich_saved_orders, import_mapping_file, import_orders_file, load_mapping
from .mapping_parser import PRIORITY_ONLY
from .settings_store import AppSettings, default_log_dir, load_settings
from . import __version__


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Karigar - daily order and design mapping ingestion")
    parser.add_argument("--version", action="version", version=f"Karigar {__version__}")
    parser.add_argument("--db-path", default=None, help="SQLite database path")
    sub = parser.add_subparsers(dest="command", required=True)

    orders = sub.add_parser("orders", help="Import a daily orders file (.csv, .xlsx, .xls)")
    orders.add_argument("file", type=Path)
    orders.add_argument("--date", required=True, help="Order date (YYYY-MM-DD)")

    mapping = sub.add_parser("mapping", help="Import a karigar mapping workbook (.xlsx, .xls, .pdf)")
    mapping.add_argument("file", type=Path)
    mapping.add_argument("--loose", action="store_true", help="Generic Name column is optional")
    mapping.add_argument("--priority-only", action="store_true", help='Only read sheets "1", "3" and "2"')

    enrich = sub.add_parser("enrich", help="Show saved orders grouped by karigar")
    enrich.add_argument("--date", required=True, help="Order date (YYYY-MM-DD)")
    enrich.add_argument("--fold-separators", action="store_true", help='Treat "-", "_" and "/" in design codes alike')

    assign = sub.add_parser("assign", help="Assign a karigar to saved orders by hand")
    assign.add_argument("order_nos", nargs="+", metavar="ORDER_NO")
    assign.add_argument("--date", required=True, help="Order date (YYYY-MM-DD)")
    assign.add_argument("--karigar", required=True, help="Karigar name")
    assign.add_argument("--factory", default=None, help="Factory name")

    sub.add_parser("summary", help="Show the stored mapping summary")
    return parser.parse_args(argv)


def configure_logging(level: str = "INFO") -> None:
    log_dir = default_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=[
            logging.FileHandler(log_dir / "karigar.log", encoding="utf-8"),
        ],
    )


def run_command(args: argparse.Namespace, settings: AppSettings) -> int:
    conn = get_connection(Path(settings.db_path).resolve())
    init_db(conn)
    try:
        if args.command == "orders":
            stats = import_orders_file(
                conn, args.file, args.date, max_rows_to_scan=settings.order_header_scan_rows
            )
            print(f"Imported {stats.orders_imported} orders for {args.date}")
            for warning in stats.warnings:
                print(f"  warning: {warning}")
        elif args.command == "mapping":
            config = settings.mapping_config()
            if args.loose:
                config = replace(config, generic_name_required=False)
            if args.priority_only:
                config = replace(config, sheet_scan_mode=PRIORITY_ONLY)
            stats = import_mapping_file(conn, args.file, config=config)
            print(f"Imported {stats.entries_imported} mappings from sheet(s): {', '.join(stats.sheet_names)}")
            for error in stats.sheet_errors:
                print(f"  skipped: {error}")
        elif args.command == "enrich":
            result = enrich_saved_orders(conn, args.date, fold_separators=args.fold_separators or settings.fold_design_separators)
            diag = result.diagnostics
            for karigar, orders in group_orders_by_karigar(result.orders).items():
                print(f"{karigar} ({len(orders)})")
                for order in orders:
                    print(f"  {order.order_no}\t{order.design}\t{order.generic_name or ''}\t{order.quantity}")
            print(f"Matched {diag.matched_orders}/{diag.total_orders} orders ({diag.unmatched_orders} unmatched)")
            if diag.assigned_orders:
                print(f"{diag.assigned_orders} order(s) assigned by hand")
            if diag.has_mapping_but_no_matches:
                print("No orders matched the loaded mapping. Check design code formatting:")
                print(f"  order keys:   {', '.join(diag.sample_order_keys)}")
                print(f"  mapping keys: {', '.join(diag.sample_mapping_keys)}")
        elif args.command == "assign":
            count = assign_karigar(conn, args.date, args.order_nos, args.karigar, factory=args.factory)
            print(f"Assigned {count} order(s) on {args.date} to {args.karigar}")
        elif args.command == "summary":
            workbook = load_mapping(conn)
            if not workbook:
                print("No mapping loaded")
            else:
                summary = mapping_summary(workbook)
                print(f"{summary.total_entries} design-karigar mappings loaded (sheets: {', '.join(summary.sheet_names)})")
    finally:
        conn.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    if args.db_path:
        settings = replace(settings, db_path=str(Path(args.db_path).resolve()))
    configure_logging(settings.log_level)
    try:
        return run_command(args, settings)
    except Exception as exc:
        logging.getLogger(__name__).exception("Command %s failed", args.command)
        print(user_facing_error(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
