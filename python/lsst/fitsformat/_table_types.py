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

from __future__ import annotations

__all__ = (
    "ColumnFormat",
    "infer_column_format",
    "infer_table_formats",
    "render_cell",
)

import dataclasses
import numbers
import re
from collections.abc import Sequence
from typing import Any, Self

import numpy as np

from ._common import FitsFormatError, FitsInputError, FitsTypeError
from ._dtypes import ElementKind

_TFORM_PATTERN = re.compile(r"^\s*([AIFEDX])(\d+)(?:\.(\d+))?\s*$")


@dataclasses.dataclass(frozen=True)
class ColumnFormat:
    """The format of an ASCII-table column, as written to ``TFORMn``."""

    code: str
    """Format code: ``I`` (integer), ``F`` (fixed decimal), ``E`` (real),
    ``D`` (double precision), ``A`` (character), or ``X`` (unrecognized).
    """

    width: int
    """Widest rendering of any value in the column."""

    decimals: int | None = None
    """Number of digits after the decimal point, for real columns."""

    @property
    def token(self) -> str:
        """The format as a ``TFORM`` token, e.g. ``I4`` or ``F5.2``."""
        if self.decimals is None:
            return f"{self.code}{self.width}"
        return f"{self.code}{self.width}.{self.decimals}"

    @classmethod
    def parse(cls, token: str) -> Self:
        """Parse a ``TFORM`` token.

        Parameters
        ----------
        token
            Token such as ``I4``, ``A20`` or ``E10.3``.

        Raises
        ------
        FitsFormatError
            Raised if the token is not a valid ASCII-table format.
        """
        if (match := _TFORM_PATTERN.match(token)) is None:
            raise FitsFormatError(f"{token!r} is not a valid ASCII table column format.")
        code, width, decimals = match.groups()
        return cls(code, int(width), int(decimals) if decimals is not None else None)

    def __str__(self) -> str:
        return self.token


def render_cell(value: Any) -> str:
    """Return the text rendering of a table cell."""
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return str(value)


def _type_code(value: Any) -> str:
    if isinstance(value, bool | np.bool_):
        return "X"
    if isinstance(value, np.generic):
        try:
            return ElementKind.from_numpy(value.dtype).tform_code
        except FitsTypeError:
            return "E" if isinstance(value, np.floating) else "X"
    if isinstance(value, numbers.Integral):
        return "I"
    if isinstance(value, float):
        return ElementKind.float64.tform_code
    if isinstance(value, numbers.Real):
        return "E"
    if isinstance(value, str | bytes):
        return "A"
    return "X"


def infer_column_format(column: Sequence[Any]) -> ColumnFormat:
    """Derive the ASCII-table format of a column from its values.

    Parameters
    ----------
    column
        Values of the column; must not be empty.

    Returns
    -------
    format
        Inferred column format.

    Notes
    -----
    Only the first value decides the type code and, for reals, the number of
    decimals; the width is the widest rendering over all rows.  A real column
    whose first value renders without an exponent (no ``e``, or ``p`` for
    hexadecimal floats) is classified as fixed decimal (``F``) even if later
    rows render in exponential notation.  This sampling is kept as-is so that
    the formats of existing files do not change.
    """
    if len(column) == 0:
        raise FitsInputError("Cannot infer the format of an empty column.")
    first = column[0]
    code = _type_code(first)
    width = max(len(render_cell(value)) for value in column)
    if code not in ("E", "D"):
        return ColumnFormat(code, width)
    text = render_cell(first)
    if "e" not in text and "p" not in text:
        code = "F"
    mantissa = re.split("[ep]", text, maxsplit=1)[0]
    _, dot, fraction = mantissa.partition(".")
    return ColumnFormat(code, width, len(fraction) if dot else 0)


def infer_table_formats(columns: Sequence[Sequence[Any]]) -> list[ColumnFormat]:
    """Derive the formats of several columns; see `infer_column_format`."""
    return [infer_column_format(column) for column in columns]
