"""Text normalization for spreadsheet/PDF cell values, headers and design codes.

All functions are pure and idempotent. Normalized values are meant to be
recomputed from source text whenever they are needed; stored normalized
keys are never trusted because the rules here evolve.
"""

from __future__ import annotations

import re


ZERO_WIDTH_PATTERN = re.compile("[\u200b-\u200d\ufeff]")
CONTROL_CHAR_PATTERN = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
DASH_PATTERN = re.compile("[\u2010-\u2015\u2212]")
SINGLE_QUOTE_PATTERN = re.compile("[\u2018\u2019\u2032\u2033]")
DOUBLE_QUOTE_PATTERN = re.compile("[\u201c\u201d]")
WHITESPACE_PATTERN = re.compile(r"\s+")
NON_WORD_PATTERN = re.compile(r"[^\w\s]")
DESIGN_SEPARATOR_PATTERN = re.compile(r"[-_/]+")


def normalize_cell_value(value: object) -> str:
    if value is None:
        return ""
    text = str(value)
    if not text:
        return ""
    text = ZERO_WIDTH_PATTERN.sub("", text)
    text = CONTROL_CHAR_PATTERN.sub("", text)
    text = text.replace("\u00a0", " ")
    text = DASH_PATTERN.sub("-", text)
    text = SINGLE_QUOTE_PATTERN.sub("'", text)
    text = DOUBLE_QUOTE_PATTERN.sub('"', text)
    text = WHITESPACE_PATTERN.sub(" ", text)
    return text.strip()


def normalize_header(value: object) -> str:
    """Normalize a header label for comparison only (never for display)."""
    text = normalize_cell_value(value).lower()
    text = NON_WORD_PATTERN.sub("", text)
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def normalize_design_code(value: object) -> str:
    """Canonical join key for design codes.

    Punctuation is preserved: "AB-12" and "ab-12" share a key, "AB-12" and
    "AB 12" do not. See fold_design_separators for the opt-in looser form.
    """
    return normalize_cell_value(value).lower()


def fold_design_separators(key: str) -> str:
    """Treat "-", "_" and "/" as the same separator in an already-normalized key."""
    return DESIGN_SEPARATOR_PATTERN.sub("-", key)


def design_lookup_key(value: object, fold_separators: bool = False) -> str:
    key = normalize_design_code(value)
    if fold_separators:
        key = fold_design_separators(key)
    return key
