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

"""Construction of the headers (and payloads) of Primary, Image and ASCII
table HDUs.
"""

from __future__ import annotations

__all__ = (
    "HDUContent",
    "TableOptions",
    "build_image",
    "build_primary",
    "build_table",
)

import dataclasses
from collections.abc import Sequence
from logging import getLogger
from typing import Any

import numpy as np

from ._common import MAX_TABLE_COLUMNS, FitsInputError, FitsTypeError
from ._dtypes import ElementKind
from ._header import Header
from ._records import RecordBuilder
from ._table_types import ColumnFormat, infer_table_formats, render_cell

_LOG = getLogger(__name__)

PRIMARY_COMMENT = "   Primary FITS HDU    / http://fits.gsfc.nasa.gov/iaufwg"
EXTENSION_COMMENT = "   Extended FITS HDU   / http://fits.gsfc.nasa.gov/iaufwg"


@dataclasses.dataclass(frozen=True)
class HDUContent:
    """The sealed header records of an HDU together with its data."""

    records: tuple[str, ...]
    """Header records, ending with ``END`` and blank padding."""

    data: np.ndarray | tuple[str, ...] | None = None
    """The image array, the rows of an ASCII table, or `None` for no data."""

    @property
    def header(self) -> Header:
        """A parsed view of the header records."""
        return Header(self.records)

    @property
    def hdu_type(self) -> str:
        """``PRIMARY``, ``IMAGE`` or ``TABLE``."""
        return self.header.hdu_type


@dataclasses.dataclass(frozen=True)
class TableOptions:
    """Configuration options for building an ASCII table HDU."""

    names: Sequence[str] | None = None
    """Column names for ``TTYPEn``; defaults to ``HEAD1``, ``HEAD2``, ..."""

    max_columns: int = MAX_TABLE_COLUMNS
    """Number of columns beyond which the table is truncated (with a
    warning).  May not exceed 999.
    """


def _numeric_kind(array: np.ndarray) -> ElementKind:
    kind = ElementKind.from_numpy(array.dtype)
    if kind is ElementKind.string:
        raise FitsTypeError(f"Array of real numbers expected, not {array.dtype}.")
    return kind


def _append_array_keywords(builder: RecordBuilder, kind: ElementKind, shape: tuple[int, ...]) -> None:
    builder.append("BITPIX", kind.bitpix, "number of bits per data pixel")
    builder.append("NAXIS", len(shape), "number of data axes")
    # FITS axes run fastest-first, the reverse of numpy's C order.
    for n, size in enumerate(reversed(shape), start=1):
        builder.append(f"NAXIS{n}", size, f"length of data axis {n}")


def build_primary(data: np.ndarray | None = None) -> HDUContent:
    """Build the header of a primary HDU.

    Parameters
    ----------
    data, optional
        Primary data array of real numbers.  `None`, a zero-dimensional
        array, or an array with no elements all mean "no data".

    Returns
    -------
    content
        Sealed header records and the data (`None` if there is none).

    Raises
    ------
    FitsTypeError
        Raised if ``data`` is not an array of real numbers.
    """
    builder = RecordBuilder()
    builder.append("SIMPLE", True, "file does conform to FITS standard")
    if data is None:
        builder.append("BITPIX", 8, "number of bits per data pixel")
        builder.append("NAXIS", 0, "number of data axes")
    else:
        data = np.asarray(data)
        kind = _numeric_kind(data)
        if data.ndim == 0 or data.size == 0:
            builder.append("BITPIX", kind.bitpix, "number of bits per data pixel")
            builder.append("NAXIS", 0, "number of data axes")
            data = None
        else:
            _append_array_keywords(builder, kind, data.shape)
            builder.append("BZERO", kind.bzero, "offset data range to that of unsigned integer")
            builder.append("BSCALE", 1.0, "default scaling factor")
    builder.append("EXTEND", True, "FITS dataset may contain extensions")
    builder.comment(PRIMARY_COMMENT)
    return HDUContent(builder.seal(), data)


def build_image(array: np.ndarray) -> HDUContent:
    """Build the header of an image extension HDU.

    Parameters
    ----------
    array
        Non-empty array of real numbers with at least one dimension.

    Returns
    -------
    content
        Sealed header records and the (untouched) input array.

    Raises
    ------
    FitsInputError
        Raised if the array is zero-dimensional or empty.
    FitsTypeError
        Raised if the array is not an array of real numbers.
    """
    if not isinstance(array, np.ndarray):
        raise FitsTypeError(f"Image data must be a numpy array, not {type(array).__name__}.")
    kind = _numeric_kind(array)
    if array.ndim == 0 or array.size == 0:
        raise FitsInputError(
            f"Image data must be a non-empty array with at least one axis (shape={array.shape})."
        )
    builder = RecordBuilder()
    builder.append("XTENSION", "IMAGE", "FITS standard extension")
    _append_array_keywords(builder, kind, array.shape)
    builder.append("PCOUNT", 0, "number of bytes in supplemental data area")
    builder.append("GCOUNT", 1, "data blocks contain single image")
    builder.append("BZERO", kind.bzero, "offset data range to that of unsigned integer")
    builder.append("BSCALE", 1.0, "default scaling factor")
    builder.comment(EXTENSION_COMMENT)
    return HDUContent(builder.seal(), array)


def _check_columns(columns: Sequence[Sequence[Any]]) -> int:
    if len(columns) == 0:
        raise FitsInputError("A table needs at least one column.")
    nrows = len(columns[0])
    for n, column in enumerate(columns, start=1):
        if len(column) != nrows:
            raise FitsInputError(
                f"Cannot create ASCII table: column {n} has {len(column)} rows, but column 1 has {nrows}."
            )
    if nrows == 0:
        raise FitsInputError("A table needs at least one row.")
    for n, column in enumerate(columns, start=1):
        for value in column:
            if isinstance(value, str | bytes | np.str_ | np.bytes_) and not render_cell(value).isascii():
                raise FitsInputError(f"Non-ASCII character in table column {n}.")
    return nrows


def build_table(columns: Sequence[Sequence[Any]], options: TableOptions | None = None) -> HDUContent:
    """Build the header and rows of an ASCII table extension HDU.

    Parameters
    ----------
    columns
        Table columns, all with the same number of rows.  Each column's
        format is inferred from its values (see `infer_column_format`).
    options, optional
        Column names and the column limit.

    Returns
    -------
    content
        Sealed header records and the fixed-width rows of the table.

    Raises
    ------
    FitsInputError
        Raised if there are no columns or rows, if the columns have different
        lengths, or if a string cell has non-ASCII content.

    Notes
    -----
    Each field is one character wider than the widest value in its column,
    which leaves at least one blank between fields.
    """
    options = options if options is not None else TableOptions()
    max_columns = min(options.max_columns, MAX_TABLE_COLUMNS)
    columns = list(columns)
    if len(columns) > max_columns:
        _LOG.warning(
            "Maximum number of table columns exceeded; truncating %d columns to %d.",
            len(columns),
            max_columns,
        )
        columns = columns[:max_columns]
    nrows = _check_columns(columns)
    names = list(options.names) if options.names is not None else []
    names.extend(f"HEAD{n}" for n in range(len(names) + 1, len(columns) + 1))
    formats: list[ColumnFormat] = infer_table_formats(columns)
    widths = [f.width + 1 for f in formats]
    starts = [1]
    for width in widths[:-1]:
        starts.append(starts[-1] + width)
    rows = tuple(
        "".join(render_cell(column[i]).ljust(w)[:w] for column, w in zip(columns, widths, strict=True))
        for i in range(nrows)
    )
    builder = RecordBuilder()
    builder.append("XTENSION", "TABLE", "FITS standard extension")
    builder.append("BITPIX", 8, "number of bits per data pixel")
    builder.append("NAXIS", 2, "number of data axes")
    builder.append("NAXIS1", sum(widths), "number of bytes/row")
    builder.append("NAXIS2", nrows, "number of rows")
    builder.append("PCOUNT", 0, "number of bytes in supplemental data area")
    builder.append("GCOUNT", 1, "data blocks contain single table")
    builder.append("TFIELDS", len(columns), "number of data fields (columns)")
    builder.append("COLSEP", 1, "number of spaces in column separator")
    for n, name in enumerate(names[: len(columns)], start=1):
        builder.append(f"TTYPE{n}", name, f"header of column {n}")
    for n, start in enumerate(starts, start=1):
        builder.append(f"TBCOL{n}", start, f"pointer to column {n}")
    for n, fmt in enumerate(formats, start=1):
        builder.append(f"TFORM{n}", fmt.token, f"data type of column {n}")
    for n, fmt in enumerate(formats, start=1):
        builder.append(f"TDISP{n}", fmt.token, f"data type of column {n}")
    builder.comment(EXTENSION_COMMENT)
    return HDUContent(builder.seal(), rows)
