# This file is part of lsst-fitsformat.
#
# Developed for the LSST Data Management System.
# This product includes software developed by the LSST Project
# (https://www.lsst.org).
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Formatting and parsing of fixed-width FITS header records.

A header record is exactly 80 ASCII characters.  Value records have the form::

    KEYWORD = value / comment

with the keyword left-justified in columns 1-8, the value indicator ``= `` in
columns 9-10, and a value field that starts in column 11.  Numeric and logical
values are right-justified in a 20-character field (ending in column 30);
string values are quoted, padded to at least 8 characters inside the quotes,
and left-justified in the same field.  Commentary records (``COMMENT``,
``HISTORY`` and blank keywords) carry free text in columns 9-80, and the
``END`` record is the keyword followed by 77 spaces.
"""

from __future__ import annotations

__all__ = (
    "BLANK_RECORD",
    "END_RECORD",
    "Card",
    "RecordBuilder",
    "Value",
    "format_keyword",
    "format_record",
    "format_value",
    "is_ascii_text",
    "parse_record",
    "parse_value",
)

import dataclasses
import math
import numbers
import re

import numpy as np

from ._common import KEYWORD_SIZE, RECORD_SIZE, RECORDS_PER_BLOCK, FitsError, FitsInputError

type Value = bool | int | float | str | None

BLANK_RECORD = " " * RECORD_SIZE
END_RECORD = "END".ljust(RECORD_SIZE)

COMMENTARY_KEYWORDS = frozenset({"COMMENT", "HISTORY", ""})

_VALUE_FIELD_SIZE = 20
# Columns available to a value and its comment after "KEYWORD= ".
_VALUE_AREA_SIZE = RECORD_SIZE - KEYWORD_SIZE - 2
# Characters of a long string that fit in one record, leaving room for the
# quotes and the '&' continuation marker.
_STRING_CHUNK_SIZE = _VALUE_AREA_SIZE - 3

_KEYWORD_PATTERN = re.compile(r"^[A-Z0-9_-]*$")
_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
_REAL_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([EeDd][+-]?\d+)?$")


def is_ascii_text(text: str) -> bool:
    """Test whether a string contains only the restricted set of ASCII text
    characters (decimal 32 through 126) allowed in headers.
    """
    return all(32 <= ord(c) <= 126 for c in text)


@dataclasses.dataclass(frozen=True)
class Card:
    """The parsed content of a header record."""

    keyword: str
    """Keyword with trailing blanks removed."""

    value: Value = None
    """Parsed value, or `None` for commentary records and undefined values."""

    comment: str = ""
    """Comment text, or the full text of a commentary record."""

    @property
    def is_commentary(self) -> bool:
        """Whether this card is a ``COMMENT``, ``HISTORY`` or blank-keyword
        record with no value indicator.
        """
        return self.keyword in COMMENTARY_KEYWORDS


def format_keyword(key: str) -> str:
    """Normalize a keyword and check it against the FITS rules.

    Parameters
    ----------
    key
        Keyword name; surrounding whitespace is removed and letters are
        upper-cased.

    Returns
    -------
    keyword
        Normalized keyword, without padding.

    Raises
    ------
    FitsInputError
        Raised if the keyword is longer than 8 characters or contains
        anything other than upper-case letters, digits, hyphens and
        underscores.
    """
    keyword = key.strip().upper()
    if len(keyword) > KEYWORD_SIZE:
        raise FitsInputError(f"Keyword {keyword!r} exceeds {KEYWORD_SIZE} characters.")
    if not _KEYWORD_PATTERN.match(keyword):
        raise FitsInputError(f"Keyword {keyword!r} contains an illegal character.")
    return keyword


def _format_real(value: float) -> str:
    if not math.isfinite(value):
        raise FitsInputError(f"Non-finite value {value} cannot be written to a header.")
    text = repr(float(value)).upper()
    if len(text) > _VALUE_FIELD_SIZE:
        text = f"{value:.16G}"
    if "E" in text:
        mantissa, exponent = text.split("E")
        if "." not in mantissa:
            mantissa += ".0"
        text = f"{mantissa}E{exponent}"
    return text


def _quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def format_value(value: Value) -> str:
    """Format a value for the value field of a header record.

    Parameters
    ----------
    value
        Value to format.  Logical, integer and real values are right-justified
        in a 20-character field; strings are quoted, padded to at least 8
        characters inside the quotes, and left-justified in the same field.
        `None` formats as an empty (undefined) field.

    Returns
    -------
    field
        Formatted value field.  Long strings may exceed 20 characters.

    Raises
    ------
    FitsInputError
        Raised for non-ASCII strings, non-finite reals, and unsupported value
        types.
    """
    if value is None:
        return " " * _VALUE_FIELD_SIZE
    if isinstance(value, bool | np.bool_):
        return ("T" if value else "F").rjust(_VALUE_FIELD_SIZE)
    if isinstance(value, numbers.Integral):
        return str(int(value)).rjust(_VALUE_FIELD_SIZE)
    if isinstance(value, numbers.Real):
        return _format_real(float(value)).rjust(_VALUE_FIELD_SIZE)
    if isinstance(value, str):
        if not is_ascii_text(value):
            raise FitsInputError(f"String value {value!r} contains non-ASCII text.")
        return _quote(value.rstrip().ljust(8)).ljust(_VALUE_FIELD_SIZE)
    raise FitsInputError(f"Values of type {type(value).__name__} cannot be written to a header.")


def _split_string(text: str) -> list[str]:
    # Split on unescaped characters so a doubled quote is never divided.
    chunks: list[str] = []
    current = ""
    for c in text:
        if len(_quote(current + c)) > _STRING_CHUNK_SIZE + 2:
            chunks.append(current)
            current = ""
        current += c
    chunks.append(current)
    return chunks


def _format_commentary(keyword: str, text: str) -> list[str]:
    if not is_ascii_text(text):
        raise FitsInputError(f"Commentary text {text!r} contains non-ASCII text.")
    width = RECORD_SIZE - KEYWORD_SIZE
    lines = [text[i : i + width] for i in range(0, len(text), width)] or [""]
    return [(keyword.ljust(KEYWORD_SIZE) + line).ljust(RECORD_SIZE) for line in lines]


def _with_comment(head: str, comment: str) -> str:
    if comment:
        head = f"{head} / {comment}"
    return head[:RECORD_SIZE].ljust(RECORD_SIZE)


def format_record(key: str, value: Value = None, comment: str = "") -> list[str]:
    """Format a keyword, value and comment as 80-character header records.

    Parameters
    ----------
    key
        Keyword name.  ``END`` produces the END record, and ``COMMENT``,
        ``HISTORY`` and the blank keyword produce commentary records whose
        text is ``comment``.
    value, optional
        Value of the keyword.
    comment, optional
        Comment, truncated to fit on the (last) record.

    Returns
    -------
    records
        One record in almost all cases; string values that do not fit in a
        single record are continued on ``CONTINUE`` records with a trailing
        ``&`` in each string segment but the last.  Long commentary text is
        split across multiple commentary records.

    Raises
    ------
    FitsInputError
        Raised if the keyword, value or comment is invalid.
    """
    keyword = format_keyword(key)
    if not is_ascii_text(comment):
        raise FitsInputError(f"Comment for {keyword!r} contains non-ASCII text.")
    if keyword == "END":
        return [END_RECORD]
    if keyword in COMMENTARY_KEYWORDS:
        return _format_commentary(keyword, comment)
    head = keyword.ljust(KEYWORD_SIZE) + "= "
    field = format_value(value)
    if not isinstance(value, str) or len(field.rstrip()) <= _VALUE_AREA_SIZE:
        return [_with_comment(head + field, comment)]
    chunks = _split_string(value.rstrip())
    records = [head + _quote(chunks[0] + "&")]
    records.extend("CONTINUE  " + _quote(chunk + "&") for chunk in chunks[1:-1])
    records.append("CONTINUE  " + _quote(chunks[-1]))
    records = [r.ljust(RECORD_SIZE) for r in records[:-1]] + [_with_comment(records[-1], comment)]
    return records


def parse_value(text: str) -> Value:
    """Parse the text of a value field (without its comment).

    Parameters
    ----------
    text
        Value text, possibly padded with blanks.

    Returns
    -------
    value
        `True`/`False` for ``T``/``F``, `int` for integers, `float` for reals
        (with ``E`` or ``D`` exponents), `str` for quoted strings (with
        trailing blanks removed and doubled quotes unescaped), `None` for an
        empty field.  Text that matches none of these is returned unchanged
        (stripped).
    """
    text = text.strip()
    if not text:
        return None
    if text.startswith("'"):
        value, _ = _parse_string(text)
        return value
    if text == "T":
        return True
    if text == "F":
        return False
    if _INTEGER_PATTERN.match(text):
        return int(text)
    if _REAL_PATTERN.match(text):
        return float(text.upper().replace("D", "E"))
    return text


def _parse_string(text: str) -> tuple[str, str]:
    # Returns the unescaped string and whatever follows its closing quote.
    chars: list[str] = []
    i = 1
    while i < len(text):
        if text[i] == "'":
            if text[i + 1 : i + 2] == "'":
                chars.append("'")
                i += 2
                continue
            return "".join(chars).rstrip(), text[i + 1 :]
        chars.append(text[i])
        i += 1
    # Unterminated string; keep what is there.
    return "".join(chars).rstrip(), ""


def parse_record(record: str) -> Card:
    """Parse a single 80-character header record.

    Parameters
    ----------
    record
        Record text.

    Returns
    -------
    card
        Parsed keyword, value and comment.
    """
    keyword = record[:KEYWORD_SIZE].rstrip()
    if keyword == "CONTINUE":
        rest = record[KEYWORD_SIZE:].strip()
    elif record[KEYWORD_SIZE : KEYWORD_SIZE + 2] == "= " and keyword not in COMMENTARY_KEYWORDS:
        rest = record[KEYWORD_SIZE + 2 :].strip()
    else:
        return Card(keyword, None, record[KEYWORD_SIZE:].rstrip())
    if rest.startswith("'"):
        value, tail = _parse_string(rest)
        _, _, comment = tail.partition("/")
        return Card(keyword, value, comment.strip())
    field, _, comment = rest.partition("/")
    return Card(keyword, parse_value(field), comment.strip())


class RecordBuilder:
    """Single-pass accumulator of header records.

    Records are appended in order; `seal` appends the ``END`` record and pads
    the header with blank records to a whole number of blocks, after which no
    more records may be added.
    """

    def __init__(self) -> None:
        self._records: list[str] = []
        self._sealed = False

    def __len__(self) -> int:
        return len(self._records)

    def append(self, key: str, value: Value = None, comment: str = "") -> None:
        """Append the record(s) for a keyword.

        See `format_record` for the meaning of the arguments.
        """
        if self._sealed:
            raise FitsError("Cannot add records to a sealed header.")
        if format_keyword(key) == "END":
            raise FitsInputError("The END record is added by 'seal'.")
        self._records.extend(format_record(key, value, comment))

    def comment(self, text: str) -> None:
        """Append a ``COMMENT`` record."""
        self.append("COMMENT", comment=text)

    def extend(self, records: list[str] | tuple[str, ...]) -> None:
        """Append already-formatted records verbatim.

        Parameters
        ----------
        records
            Records to append; each must be exactly 80 characters.
        """
        if self._sealed:
            raise FitsError("Cannot add records to a sealed header.")
        for record in records:
            if len(record) != RECORD_SIZE:
                raise FitsInputError(f"Record {record!r} is not {RECORD_SIZE} characters long.")
            self._records.append(record)

    def seal(self) -> tuple[str, ...]:
        """Terminate the header and return its records.

        Returns
        -------
        records
            All records appended so far, followed by the ``END`` record and
            enough blank records to make the count a multiple of 36.
        """
        if self._sealed:
            raise FitsError("Header has already been sealed.")
        self._sealed = True
        self._records.append(END_RECORD)
        remainder = len(self._records) % RECORDS_PER_BLOCK
        if remainder:
            self._records.extend([BLANK_RECORD] * (RECORDS_PER_BLOCK - remainder))
        return tuple(self._records)
