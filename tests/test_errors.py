import sqlite3

from karigar_app.errors import (
    HeaderNotFoundError,
    NoValidRowsError,
    format_headers,
    user_facing_error,
    with_retry_message,
)


def test_parse_errors_are_shown_as_is():
    exc = HeaderNotFoundError("Missing critical columns: Design", missing_columns=["Design"])
    assert user_facing_error(exc) == "Missing critical columns: Design"
    assert exc.missing_columns == ["Design"]
    assert exc.detected_headers == []
    assert isinstance(NoValidRowsError("x"), ValueError)


def test_other_errors_are_translated():
    assert user_facing_error(sqlite3.OperationalError("disk I/O error")) == "Storage operation failed. Please try again."
    assert user_facing_error(FileNotFoundError(2, "No such file or directory")) == "Failed to read file: No such file or directory"
    assert user_facing_error(RuntimeError("boom")) == "boom"
    assert user_facing_error(RuntimeError("")) == "An unknown error occurred"
    assert user_facing_error(None) == "An unknown error occurred"


def test_with_retry_message():
    assert with_retry_message(RuntimeError("boom")) == "boom Click retry to try again."


def test_format_headers():
    assert format_headers(["Date", "Customer"]) == "Date, Customer"
    assert format_headers([]) == "(none)"
