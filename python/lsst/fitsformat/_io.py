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

"""Encoding and decoding of HDU payloads, and reading and writing of HDUs
to and from binary streams.
"""

from __future__ import annotations

__all__ = (
    "HDU",
    "encode_data",
    "open_stream",
    "parse_table",
    "read_hdus",
    "record_dump",
    "write_hdus",
)

import dataclasses
import io
import math
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from logging import getLogger
from typing import IO, Any

import fsspec
import numpy as np

from lsst.resources import ResourcePath, ResourcePathExpression

from ._addressing import HDUPointers, hdu_layout
from ._builders import HDUContent
from ._common import BLOCK_SIZE, RECORD_SIZE, FitsFormatError
from ._dtypes import ElementKind, is_offset_integer
from ._header import Header
from ._table_types import ColumnFormat

_LOG = getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class HDU:
    """A header-data unit read from a stream."""

    index: int
    """Position of the HDU in the stream, starting from 1 for the primary."""

    header: Header
    """The HDU's header, including its blank padding records."""

    data: np.ndarray | tuple[str, ...] | None
    """The image array, the rows of an ASCII table, or `None`."""

    pointers: HDUPointers
    """Byte offsets of the HDU within the stream it was read from."""

    @property
    def hdu_type(self) -> str:
        """``PRIMARY``, ``IMAGE``, ``TABLE``, or another ``XTENSION``
        value.
        """
        return self.header.hdu_type

    @property
    def records(self) -> tuple[str, ...]:
        """The header records."""
        return self.header.records


def _pad(payload: bytes, fill: bytes) -> bytes:
    remainder = len(payload) % BLOCK_SIZE
    if remainder:
        payload += fill * (BLOCK_SIZE - remainder)
    return payload


def _sign_bit_flipped(array: np.ndarray) -> np.ndarray:
    unsigned = array.view(f"u{array.itemsize}")
    return unsigned ^ unsigned.dtype.type(1 << (8 * array.itemsize - 1))


def _encode_array(array: np.ndarray) -> bytes:
    kind = ElementKind.from_numpy(array.dtype)
    array = np.ascontiguousarray(array, dtype=kind.to_numpy())
    storage = kind.storage_dtype()
    if is_offset_integer(kind):
        # Subtracting BZERO from these types is the same as flipping the sign
        # bit, which does not overflow.
        array = _sign_bit_flipped(array).view(storage.newbyteorder("="))
    return array.astype(storage).tobytes()


def encode_data(content: HDUContent) -> bytes:
    """Encode the data of an HDU as it is stored on disk.

    Parameters
    ----------
    content
        Header and data from one of the builders.

    Returns
    -------
    payload
        Big-endian array bytes (zero-padded) or table rows (blank-padded),
        padded to a whole number of blocks; empty if there is no data.
    """
    if content.data is None:
        return b""
    if isinstance(content.data, np.ndarray):
        return _pad(_encode_array(content.data), b"\0")
    return _pad("".join(content.data).encode("ascii"), b" ")


def write_hdus(stream: IO[bytes], contents: Iterable[HDUContent]) -> int:
    """Write HDUs to a binary stream at its current position.

    Parameters
    ----------
    stream
        Open, writeable binary stream.
    contents
        Headers and data from the builders; the first must be a primary HDU.

    Returns
    -------
    size
        Number of bytes written.
    """
    size = 0
    for content in contents:
        size += stream.write("".join(content.records).encode("ascii"))
        size += stream.write(encode_data(content))
    return size


def _require_int(header: Header, keyword: str, *, minimum: int | None = None) -> int:
    value = header.get(keyword)
    if not isinstance(value, int) or isinstance(value, bool):
        raise FitsFormatError(f"Header keyword {keyword} must be an integer, not {value!r}.")
    if minimum is not None and value < minimum:
        raise FitsFormatError(f"Header keyword {keyword} must be at least {minimum}, not {value}.")
    return value


def _require_real(header: Header, keyword: str, default: float) -> float:
    value = header.get(keyword, default)
    if not isinstance(value, int | float) or isinstance(value, bool):
        raise FitsFormatError(f"Header keyword {keyword} must be a number, not {value!r}.")
    return value


def _read_array(stream: IO[bytes], header: Header, pointers: HDUPointers) -> np.ndarray | None:
    naxis = _require_int(header, "NAXIS", minimum=0)
    if naxis == 0:
        return None
    shape = tuple(_require_int(header, f"NAXIS{n}", minimum=0) for n in range(naxis, 0, -1))
    if math.prod(shape) == 0:
        return None
    bitpix = _require_int(header, "BITPIX")
    bzero = _require_real(header, "BZERO", 0.0)
    bscale = _require_real(header, "BSCALE", 1.0)
    kind = ElementKind.from_bitpix(bitpix, bzero)
    storage = kind.storage_dtype()
    nbytes = math.prod(shape) * storage.itemsize
    if nbytes > pointers.data_size:
        raise FitsFormatError(
            f"Data segment of {pointers.data_size} bytes at {pointers.data} is too small for "
            f"{nbytes} bytes of array data."
        )
    stream.seek(pointers.data)
    stored = np.frombuffer(stream.read(nbytes), dtype=storage).astype(storage.newbyteorder("="))
    if bscale == 1.0 and is_offset_integer(kind):
        array = _sign_bit_flipped(stored).view(kind.to_numpy())
    elif bscale == 1.0 and bzero == 0.0:
        array = stored
    else:
        array = stored * bscale + bzero
    return array.reshape(shape)


def _read_rows(stream: IO[bytes], header: Header, pointers: HDUPointers) -> tuple[str, ...]:
    row_size = _require_int(header, "NAXIS1", minimum=1)
    nrows = _require_int(header, "NAXIS2", minimum=0)
    if row_size * nrows > pointers.data_size:
        raise FitsFormatError(
            f"Data segment of {pointers.data_size} bytes at {pointers.data} is too small for "
            f"{nrows} rows of {row_size} bytes."
        )
    stream.seek(pointers.data)
    text = stream.read(row_size * nrows).decode("latin-1")
    return tuple(text[i : i + row_size] for i in range(0, len(text), row_size))


def read_hdus(stream: IO[bytes]) -> list[HDU]:
    """Read all HDUs from a binary stream.

    Parameters
    ----------
    stream
        Open, seekable binary stream holding a whole FITS file.

    Returns
    -------
    hdus
        HDUs in stream order.  Image arrays have the native byte order and
        the element type implied by ``BITPIX`` and ``BZERO``; table data is
        a tuple of row strings.  Data of other extension types is not
        decoded.

    Raises
    ------
    FitsFormatError
        Raised if the stream is not a whole number of blocks, a header has no
        ``END`` record, or a header does not describe its data.
    """
    result: list[HDU] = []
    for n, pointers in enumerate(hdu_layout(stream), start=1):
        stream.seek(pointers.header)
        header = Header.from_bytes(stream.read(pointers.header_size))
        hdu_type = header.hdu_type
        _LOG.debug("Found %s HDU %d at byte %d.", hdu_type, n, pointers.header)
        data: np.ndarray | tuple[str, ...] | None
        match hdu_type:
            case "PRIMARY" | "IMAGE":
                data = _read_array(stream, header, pointers)
            case "TABLE":
                data = _read_rows(stream, header, pointers)
            case _:
                _LOG.warning("Data of %s HDU %d is not decoded.", hdu_type, n)
                data = None
        result.append(HDU(n, header, data, pointers))
    return result


def _parse_field(text: str, fmt: ColumnFormat) -> Any:
    if fmt.code == "A":
        return text.rstrip()
    if fmt.code == "X":
        return text
    text = text.strip()
    if not text:
        return None
    if fmt.code == "I":
        return int(text)
    return float(text.upper().replace("D", "E"))


def parse_table(hdu: HDU) -> list[list[Any]]:
    """Split the rows of an ASCII table HDU into columns.

    Parameters
    ----------
    hdu
        An HDU with ``XTENSION='TABLE'``.

    Returns
    -------
    columns
        One list per field; ``I`` fields hold `int`, ``F``/``E``/``D`` fields
        hold `float`, and ``A`` fields hold `str` with trailing blanks
        removed.  Blank numeric fields are `None`.
    """
    if hdu.hdu_type != "TABLE" or not isinstance(hdu.data, tuple):
        raise FitsFormatError(f"HDU {hdu.index} is a {hdu.hdu_type} HDU, not an ASCII table.")
    header = hdu.header
    columns = []
    for n in range(1, _require_int(header, "TFIELDS", minimum=0) + 1):
        start = _require_int(header, f"TBCOL{n}", minimum=1) - 1
        tform = header.get(f"TFORM{n}")
        if not isinstance(tform, str):
            raise FitsFormatError(f"TFORM{n} of HDU {hdu.index} is missing or not a string.")
        fmt = ColumnFormat.parse(tform)
        try:
            columns.append([_parse_field(row[start : start + fmt.width], fmt) for row in hdu.data])
        except ValueError as err:
            raise FitsFormatError(f"Field {n} of HDU {hdu.index} does not match TFORM{n}={tform!r}.") from err
    return columns


def _render_data_record(chunk: bytes) -> str:
    if all(32 <= b <= 126 for b in chunk):
        return chunk.decode("ascii")
    return chunk.hex(" ")


def record_dump(
    stream: IO[bytes], hdu_index: int | None = None, *, header: bool = True, data: bool = True
) -> list[tuple[int, str]]:
    """Return the raw 80-byte records of a stream.

    Parameters
    ----------
    stream
        Open, seekable binary stream.
    hdu_index, optional
        1-based index of the HDU to dump; all HDUs if `None`.
    header, optional
        Whether to include header records.
    data, optional
        Whether to include data records.

    Returns
    -------
    records
        ``(record_number, text)`` pairs, with 1-based record numbers counted
        from the start of the stream.  Header records are returned as text;
        data records are returned as text if they are printable ASCII and as
        space-separated hexadecimal bytes otherwise.
    """
    result: list[tuple[int, str]] = []
    for n, pointers in enumerate(hdu_layout(stream), start=1):
        if hdu_index is not None and n != hdu_index:
            continue
        if header:
            stream.seek(pointers.header)
            for offset in range(pointers.header, pointers.data, RECORD_SIZE):
                result.append((offset // RECORD_SIZE + 1, stream.read(RECORD_SIZE).decode("latin-1")))
        if data:
            stream.seek(pointers.data)
            for offset in range(pointers.data, pointers.end, RECORD_SIZE):
                result.append((offset // RECORD_SIZE + 1, _render_data_record(stream.read(RECORD_SIZE))))
    return result


@contextmanager
def open_stream(
    path: ResourcePathExpression, *, partial: bool = False, page_size: int = BLOCK_SIZE * 50
) -> Iterator[IO[bytes]]:
    """Open a file for reading as a seekable binary stream.

    Parameters
    ----------
    path
        File to read; convertible to `lsst.resources.ResourcePath`.
    partial, optional
        If `False` (default), the entire raw file is read into memory up
        front.  If `True`, it is read through an fsspec file object a page at
        a time.
    page_size, optional
        Minimum number of bytes to read at once when ``partial=True``.
        Making this a multiple of the FITS block size (2880) is recommended.

    Returns
    -------
    `contextlib.AbstractContextManager` [`typing.IO` [`bytes`]]
        A context manager that returns the stream when entered.
    """
    path = ResourcePath(path)
    if not partial:
        yield io.BytesIO(path.read())
    else:
        fs: fsspec.AbstractFileSystem
        fs, fp = path.to_fsspec()
        with fs.open(fp, mode="rb", block_size=page_size) as stream:
            yield stream
