from pathlib import Path
import sqlite3

import pytest

from karigar_app.db import (
    assign_karigar,
    get_connection,
    get_daily_orders,
    get_karigar_assignments,
    init_db,
    list_issues,
    list_order_dates,
    remove_orders,
    replace_daily_orders,
)
from karigar_app.errors import HeaderNotFoundError
from karigar_app.importer import enrich_saved_orders, import_mapping_file, import_orders_file, load_mapping
from karigar_app.mapping_parser import MappingParserConfig
from karigar_app.order_parser import ParsedOrder


@pytest.fixture
def conn(tmp_path: Path):
    connection = get_connection(tmp_path / "data" / "karigar.db")
    init_db(connection)
    yield connection
    connection.close()


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def _run(conn, run_id):
    return conn.execute("SELECT * FROM import_runs WHERE id=?", (run_id,)).fetchone()


def test_daily_orders_are_replaced_per_date(conn):
    replace_daily_orders(conn, "2024-05-01", [ParsedOrder(order_no="1", design="A"), ParsedOrder(order_no="2", design="B")])
    replace_daily_orders(conn, "2024-05-02", [ParsedOrder(order_no="9", design="Z")])
    replace_daily_orders(conn, "2024-05-01", [ParsedOrder(order_no="3", design="C")])
    assert get_daily_orders(conn, "2024-05-01") == [ParsedOrder(order_no="3", design="C")]
    assert list_order_dates(conn) == ["2024-05-01", "2024-05-02"]
    assert remove_orders(conn, "2024-05-02", ["9"]) == 1
    assert remove_orders(conn, "2024-05-02", []) == 0
    assert get_daily_orders(conn, "2024-05-02") == []


def test_import_orders_file_records_run_and_warnings(conn, tmp_path: Path):
    path = _write(tmp_path / "orders.csv", "Daily orders\nOrder No,Design,Qty\n1,AB-12,2\n2,CD-3,1\n")
    stats = import_orders_file(conn, path, "2024-05-01")
    assert stats.orders_imported == 2
    assert len(stats.warnings) == 2
    run = _run(conn, stats.run_id)
    assert run["kind"] == "orders"
    assert run["source_filename"] == "orders.csv"
    assert run["status"] == "completed_with_warnings"
    assert run["rows_imported"] == 2
    assert [issue["severity"] for issue in list_issues(conn, stats.run_id)] == ["warning", "warning"]
    assert [order.design for order in get_daily_orders(conn, "2024-05-01")] == ["AB-12", "CD-3"]


def test_failed_import_is_recorded_and_raised(conn, tmp_path: Path):
    path = _write(tmp_path / "orders.csv", "Date,Customer\n2024-05-01,Ram\n")
    with pytest.raises(HeaderNotFoundError):
        import_orders_file(conn, path, "2024-05-01")
    run = conn.execute("SELECT * FROM import_runs ORDER BY id DESC LIMIT 1").fetchone()
    assert run["status"] == "failed"
    assert run["errors_count"] == 1
    issues = list_issues(conn, run["id"])
    assert issues[0]["severity"] == "error"
    assert "Missing critical columns" in issues[0]["message"]
    assert get_daily_orders(conn, "2024-05-01") == []


def test_import_mapping_and_enrich_saved_orders(conn, tmp_path: Path):
    mapping = _write(
        tmp_path / "mapping.csv",
        "Design Code,Karigar Name,Generic Name\nAB-12,Ramesh,Ring\nCD-3,Suresh,3+1\n",
    )
    stats = import_mapping_file(conn, mapping)
    assert stats.entries_imported == 2
    assert stats.sheet_names == ["Sheet1"]
    assert _run(conn, stats.run_id)["status"] == "completed"

    workbook = load_mapping(conn)
    assert workbook["Sheet1"]["cd-3"].generic_name is None

    orders = _write(tmp_path / "orders.csv", "Order No,Design\n1,ab-12\n2,XY-9\n3,cd-3\n")
    import_orders_file(conn, orders, "2024-05-01")
    result = enrich_saved_orders(conn, "2024-05-01")
    assert [order.karigar_label for order in result.orders] == ["Ramesh", "Unmapped", "Suresh"]
    assert result.diagnostics.matched_orders == 2


def test_reimported_mapping_replaces_previous_one(conn, tmp_path: Path):
    loose = MappingParserConfig(generic_name_required=False)
    import_mapping_file(conn, _write(tmp_path / "a.csv", "Design,Karigar\nAB-12,Ramesh\n"), config=loose)
    import_mapping_file(conn, _write(tmp_path / "b.csv", "Design,Karigar\nAB-12,Suresh\n"), config=loose)
    assert load_mapping(conn)["Sheet1"]["ab-12"].karigar == "Suresh"


def test_enrich_without_mapping(conn):
    replace_daily_orders(conn, "2024-05-01", [ParsedOrder(order_no="1", design="AB-12")])
    assert load_mapping(conn) is None
    result = enrich_saved_orders(conn, "2024-05-01")
    assert result.orders[0].karigar is None
    assert not result.diagnostics.has_mapping_but_no_matches


def test_failed_replace_keeps_previous_orders(conn):
    replace_daily_orders(conn, "2024-05-01", [ParsedOrder(order_no="1", design="A")])

    def broken_orders():
        yield ParsedOrder(order_no="2", design="B")
        raise RuntimeError("decoder died")

    with pytest.raises(RuntimeError):
        replace_daily_orders(conn, "2024-05-01", broken_orders())
    conn.commit()
    assert get_daily_orders(conn, "2024-05-01") == [ParsedOrder(order_no="1", design="A")]


def test_failed_import_does_not_leave_partial_orders(conn, tmp_path: Path, monkeypatch):
    replace_daily_orders(conn, "2024-05-01", [ParsedOrder(order_no="1", design="A")])
    path = _write(tmp_path / "orders.csv", "Order No,Design\n7,AB-12\n8,CD-3\n")

    def insert_then_fail(conn, order_date, orders):
        conn.execute("DELETE FROM daily_orders WHERE order_date=?", (order_date,))
        raise sqlite3.OperationalError("disk full")

    monkeypatch.setattr("karigar_app.importer.replace_daily_orders", insert_then_fail)
    with pytest.raises(sqlite3.OperationalError):
        import_orders_file(conn, path, "2024-05-01")
    assert get_daily_orders(conn, "2024-05-01") == [ParsedOrder(order_no="1", design="A")]
    run = conn.execute("SELECT * FROM import_runs ORDER BY id DESC LIMIT 1").fetchone()
    assert run["status"] == "failed"


def test_assignments_apply_to_saved_orders(conn, tmp_path: Path):
    import_mapping_file(
        conn,
        _write(tmp_path / "mapping.csv", "Design,Karigar\nAB-12,Ramesh\n"),
        config=MappingParserConfig(generic_name_required=False),
    )
    replace_daily_orders(
        conn,
        "2024-05-01",
        [ParsedOrder(order_no="1", design="AB-12"), ParsedOrder(order_no="2", design="ZZ-9")],
    )
    assert assign_karigar(conn, "2024-05-01", [" 2 ", "2", ""], "Suresh", factory="Unit A") == 1
    assert assign_karigar(conn, "2024-05-01", ["1"], "Mahesh") == 1
    assert assign_karigar(conn, "2024-05-01", ["1"], "Dinesh") == 1
    assert get_karigar_assignments(conn, "2024-05-01") == {"1": "Dinesh", "2": "Suresh"}
    assert get_karigar_assignments(conn, "2024-05-02") == {}

    result = enrich_saved_orders(conn, "2024-05-01")
    assert [order.karigar for order in result.orders] == ["Dinesh", "Suresh"]
    assert result.diagnostics.assigned_orders == 2

    remove_orders(conn, "2024-05-01", ["2"])
    assert get_karigar_assignments(conn, "2024-05-01") == {"1": "Dinesh"}


def test_assign_requires_karigar_name(conn):
    with pytest.raises(ValueError, match="Karigar name is required"):
        assign_karigar(conn, "2024-05-01", ["1"], "  ")
