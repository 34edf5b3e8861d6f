from pathlib import Path

from karigar_app.__main__ import main


def test_cli_import_and_enrich(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setenv("APPDATA", str(tmp_path / "AppData"))
    db_path = tmp_path / "karigar.db"
    mapping = tmp_path / "mapping.csv"
    mapping.write_text("Design,Karigar\nAB-12,Ramesh\n", encoding="utf-8")
    orders = tmp_path / "orders.csv"
    orders.write_text("Order No,Design,Qty\n1,ab-12,2\n2,ZZ-1,1\n", encoding="utf-8")

    assert main(["--db-path", str(db_path), "mapping", str(mapping), "--loose"]) == 0
    assert main(["--db-path", str(db_path), "orders", str(orders), "--date", "2024-05-01"]) == 0
    assert main(["--db-path", str(db_path), "enrich", "--date", "2024-05-01"]) == 0
    assert main(["--db-path", str(db_path), "summary"]) == 0

    out = capsys.readouterr().out
    assert "Imported 1 mappings from sheet(s): Sheet1" in out
    assert "Imported 2 orders for 2024-05-01" in out
    assert "Ramesh (1)" in out
    assert "Unmapped (1)" in out
    assert "Matched 1/2 orders (1 unmatched)" in out
    assert "1 design-karigar mappings loaded (sheets: Sheet1)" in out


def test_cli_reports_parse_errors(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setenv("APPDATA", str(tmp_path / "AppData"))
    mapping = tmp_path / "mapping.csv"
    mapping.write_text("Design,Karigar\nAB-12,Ramesh\n", encoding="utf-8")

    assert main(["--db-path", str(tmp_path / "karigar.db"), "mapping", str(mapping)]) == 1
    err = capsys.readouterr().err
    assert err.startswith("No valid design-karigar mappings found in any sheet.")
    assert "Generic Name" in err


def test_cli_assign_overrides_mapping(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setenv("APPDATA", str(tmp_path / "AppData"))
    db = ["--db-path", str(tmp_path / "karigar.db")]
    orders = tmp_path / "orders.csv"
    orders.write_text("Order No,Design\n1,AB-12\n2,CD-3\n", encoding="utf-8")

    assert main([*db, "orders", str(orders), "--date", "2024-05-01"]) == 0
    assert main([*db, "assign", "1", "2", "--date", "2024-05-01", "--karigar", "Suresh"]) == 0
    assert main([*db, "enrich", "--date", "2024-05-01"]) == 0

    out = capsys.readouterr().out
    assert "Assigned 2 order(s) on 2024-05-01 to Suresh" in out
    assert "Suresh (2)" in out
    assert "2 order(s) assigned by hand" in out
    assert "Unmapped" not in out
