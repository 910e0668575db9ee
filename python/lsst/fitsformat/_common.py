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
    "BLOCK_SIZE",
    "KEYWORD_SIZE",
    "MAX_TABLE_COLUMNS",
    "RECORDS_PER_BLOCK",
    "RECORD_SIZE",
    "FitsError",
    "FitsFormatError",
    "FitsInputError",
    "FitsTypeError",
    "IncompleteBlockError",
    "stream_size",
)

import os
from typing import IO

BLOCK_SIZE = 2880
"""Size of a FITS block in bytes."""

RECORD_SIZE = 80
"""Size of a header record (card image) in bytes."""

RECORDS_PER_BLOCK = BLOCK_SIZE // RECORD_SIZE
"""Number of header records in a block (36)."""

KEYWORD_SIZE = 8
"""Number of bytes at the start of a record that hold its keyword."""

MAX_TABLE_COLUMNS = 999
"""Largest number of fields an ASCII table extension may declare."""


class FitsError(RuntimeError):
    """Base class for all errors raised by this package."""


class FitsFormatError(FitsError):
    """The error type raised when a byte stream does not have the structure
    of a FITS file.
    """


class IncompleteBlockError(FitsFormatError):
    """The error type raised when a length is not a whole number of FITS
    blocks or records.

    This is raised instead of silently discarding a trailing partial block,
    which would otherwise hide a malformed file.
    """


class FitsInputError(FitsError, ValueError):
    """The error type raised when the arguments to a header builder do not
    satisfy its input contract.
    """


class FitsTypeError(FitsError, TypeError):
    """The error type raised when data with an element type that cannot be
    represented in a FITS HDU is passed to a header builder.
    """


def stream_size(stream: IO[bytes]) -> int:
    """Return the total length of a seekable binary stream.

    The stream's position is left at the end.
    """
    return stream.seek(0, os.SEEK_END)
