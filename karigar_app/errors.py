from __future__ import annotations

import sqlite3
from typing import Sequence


class KarigarParseError(ValueError):
    """Base class for upload failures. Messages are shown to users as-is."""


class UnsupportedFormatError(KarigarParseError):
    pass


class EmptyDocumentError(KarigarParseError):
    pass


class HeaderNotFoundError(KarigarParseError):
    def __init__(self, message: str, missing_columns: Sequence[str] = (), detected_headers: Sequence[str] = ()):
        super().__init__(message)
        self.missing_columns = list(missing_columns)
        self.detected_headers = list(detected_headers)


class NoValidRowsError(KarigarParseError):
    pass


class DecoderUnavailableError(KarigarParseError):
    pass


class MappingDecodeError(KarigarParseError):
    pass


def format_headers(headers: Sequence[str]) -> str:
    return ", ".join(headers) if headers else "(none)"


def user_facing_error(exc: BaseException | None) -> str:
    if exc is None:
        return "An unknown error occurred"
    if isinstance(exc, KarigarParseError):
        return str(exc)
    if isinstance(exc, sqlite3.Error):
        return "Storage operation failed. Please try again."
    if isinstance(exc, OSError):
        return f"Failed to read file: {exc.strerror or exc}"
    message = str(exc).strip()
    return message or "An unknown error occurred"


def with_retry_message(exc: BaseException | None) -> str:
    return f"{user_facing_error(exc)} Click retry to try again."
