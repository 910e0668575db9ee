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

"""Byte offsets of the records, blocks and HDUs in a FITS byte stream.

All functions here take an already-open, seekable binary stream, seek to
every position they read from, and keep no state between calls; the stream's
position afterwards is unspecified.  Each call is a full O(size) scan.
"""

from __future__ import annotations

__all__ = (
    "HDUPointers",
    "block_pointers",
    "data_pointers",
    "end_pointers",
    "hdu_layout",
    "hdu_pointers",
    "header_pointers",
    "record_pointers",
)

import dataclasses
from typing import IO

from ._common import (
    BLOCK_SIZE,
    KEYWORD_SIZE,
    RECORD_SIZE,
    FitsFormatError,
    IncompleteBlockError,
    stream_size,
)

_HEADER_START_KEYWORDS = (b"SIMPLE  ", b"XTENSION")
_END_KEYWORD = b"END     "


def _whole_units(size: int, unit: int, what: str) -> int:
    count, remainder = divmod(size, unit)
    if remainder:
        raise IncompleteBlockError(
            f"Stream of {size} bytes is not a whole number of {unit}-byte {what} "
            f"({count} complete, {remainder} bytes left over)."
        )
    return count


def record_pointers(stream: IO[bytes]) -> list[int]:
    """Return the offsets of every 80-byte record in a stream.

    Raises
    ------
    IncompleteBlockError
        Raised if the stream length is not a multiple of 80.
    """
    count = _whole_units(stream_size(stream), RECORD_SIZE, "records")
    return [n * RECORD_SIZE for n in range(count)]


def block_pointers(stream: IO[bytes]) -> list[int]:
    """Return the offsets of every 2880-byte block in a stream.

    Raises
    ------
    IncompleteBlockError
        Raised if the stream length is not a multiple of 2880.
    """
    count = _whole_units(stream_size(stream), BLOCK_SIZE, "blocks")
    return [n * BLOCK_SIZE for n in range(count)]


def header_pointers(stream: IO[bytes]) -> list[int]:
    """Return the offsets of the blocks that start a header, i.e. whose first
    eight bytes are ``SIMPLE`` or ``XTENSION``.

    Every block is examined, data blocks included, so a data block whose
    first eight bytes happen to spell one of those keywords (for example
    an ASCII-table row starting with ``XTENSION``) is taken for a header.
    Layouts derived from such a stream are wrong and usually fail with
    `FitsFormatError` for lack of an ``END`` record.
    """
    result = []
    for offset in block_pointers(stream):
        stream.seek(offset)
        if stream.read(KEYWORD_SIZE) in _HEADER_START_KEYWORDS:
            result.append(offset)
    return result


def hdu_pointers(stream: IO[bytes]) -> list[int]:
    """Return the offsets at which each HDU starts.

    An HDU starts with its header, so this is the same as `header_pointers`.
    """
    return header_pointers(stream)


def _find_data_start(stream: IO[bytes], header_start: int, size: int) -> int:
    offset = header_start
    while offset + RECORD_SIZE <= size:
        stream.seek(offset)
        if stream.read(KEYWORD_SIZE) == _END_KEYWORD:
            # Data starts at the first block boundary after the END record.
            return (offset // BLOCK_SIZE + 1) * BLOCK_SIZE
        offset += RECORD_SIZE
    raise FitsFormatError(f"No END record found for the header starting at byte {header_start}.")


def data_pointers(stream: IO[bytes]) -> list[int]:
    """Return the offset at which the data of each HDU starts.

    Records are scanned from each header start, across as many blocks as the
    header spans, until the ``END`` record; the data starts at the next block
    boundary.  For an HDU with no data, this is also where the next HDU (or
    the end of the stream) is.

    Raises
    ------
    FitsFormatError
        Raised if a header has no ``END`` record.
    """
    size = stream_size(stream)
    return [_find_data_start(stream, start, size) for start in header_pointers(stream)]


def end_pointers(stream: IO[bytes]) -> list[int]:
    """Return the offset just past the end of each HDU: the start of the next
    HDU, or the length of the stream for the last one.
    """
    starts = hdu_pointers(stream)
    return starts[1:] + [stream_size(stream)] if starts else []


@dataclasses.dataclass(frozen=True)
class HDUPointers:
    """Byte offsets that delimit one HDU in a stream."""

    header: int
    """Offset of the first header record."""

    data: int
    """Offset of the first data byte (block-aligned)."""

    end: int
    """Offset just past the last (padded) data block."""

    @property
    def header_size(self) -> int:
        """Size of the header in bytes, including blank padding."""
        return self.data - self.header

    @property
    def data_size(self) -> int:
        """Size of the data segment in bytes, including padding."""
        return self.end - self.data


def hdu_layout(stream: IO[bytes]) -> list[HDUPointers]:
    """Return the header, data and end offsets of every HDU in a stream."""
    return [
        HDUPointers(header=h, data=d, end=e)
        for h, d, e in zip(header_pointers(stream), data_pointers(stream), end_pointers(stream), strict=True)
    ]
