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

__all__ = ("FitsFile",)

import io
from collections.abc import Sequence
from typing import Any, Self, final

import numpy as np

from lsst.resources import ResourcePath, ResourcePathExpression

from ._builders import HDUContent, TableOptions, build_image, build_primary, build_table
from ._common import BLOCK_SIZE, RECORDS_PER_BLOCK, FitsInputError
from ._header import Header, is_mandatory
from ._io import HDU, encode_data, open_stream, read_hdus, write_hdus
from ._validation import ValidationReport, verify


def _structural_cards(header: Header) -> list[tuple[str, Any]]:
    return [(card.keyword, card.value) for card in header.cards if is_mandatory(card.keyword)]


@final
class FitsFile:
    """An in-memory FITS file.

    Parameters
    ----------
    data
        The raw bytes of the file.

    Notes
    -----
    The raw bytes are the only state; HDUs, headers and byte offsets are
    parsed from them again on every access.  Methods that add to the file
    return a new `FitsFile`.
    """

    def __init__(self, data: bytes):
        self._data = bytes(data)

    @classmethod
    def create(cls, data: np.ndarray | None = None) -> Self:
        """Create a file holding just a primary HDU.

        Parameters
        ----------
        data, optional
            Primary data array, or `None` for a header-only primary HDU.
        """
        return cls.from_contents([build_primary(data)])

    @classmethod
    def from_contents(cls, contents: Sequence[HDUContent]) -> Self:
        """Create a file from the output of the header builders.

        Parameters
        ----------
        contents
            HDU headers and data, starting with a primary HDU.
        """
        if not contents or contents[0].hdu_type != "PRIMARY":
            raise FitsInputError("The first HDU of a FITS file must be a primary HDU.")
        if any(content.hdu_type == "PRIMARY" for content in contents[1:]):
            raise FitsInputError("Only the first HDU of a FITS file may be a primary HDU.")
        stream = io.BytesIO()
        write_hdus(stream, contents)
        return cls(stream.getvalue())

    @classmethod
    def read(
        cls, path: ResourcePathExpression, *, partial: bool = False, page_size: int = BLOCK_SIZE * 50
    ) -> Self:
        """Read a file.

        Parameters
        ----------
        path
            File to read; convertible to `lsst.resources.ResourcePath`.
        partial, optional
            Whether to read through an fsspec file object a page at a time
            instead of all at once.
        page_size, optional
            Minimum number of bytes to read at once when ``partial=True``.
        """
        with open_stream(path, partial=partial, page_size=page_size) as stream:
            return cls(stream.read())

    def save(self, path: ResourcePathExpression, *, overwrite: bool = False) -> None:
        """Write the file.

        Parameters
        ----------
        path
            File to write; convertible to `lsst.resources.ResourcePath`.
        overwrite, optional
            Whether an existing file may be replaced.
        """
        ResourcePath(path).write(self._data, overwrite=overwrite)

    def extend(self, data: Any, hdu_type: str = "IMAGE", *, options: TableOptions | None = None) -> FitsFile:
        """Return a new file with an extension HDU appended.

        Parameters
        ----------
        data
            An array of real numbers for an ``IMAGE`` extension, or a sequence
            of equal-length columns for a ``TABLE`` extension.
        hdu_type, optional
            ``IMAGE`` or ``TABLE`` (case-insensitive, quotes and padding
            ignored).
        options, optional
            Table options; only used for ``TABLE`` extensions.
        """
        match hdu_type.strip(" '").upper():
            case "IMAGE":
                content = build_image(np.asarray(data))
            case "TABLE":
                content = build_table(data, options)
            case other:
                raise FitsInputError(f"Cannot create an extension of type {other!r}.")
        return FitsFile(self._data + "".join(content.records).encode("ascii") + encode_data(content))

    def with_header(self, index: int, header: Header) -> FitsFile:
        """Return a new file with the header of one HDU replaced.

        Parameters
        ----------
        index
            1-based index of the HDU.
        header
            The new header, usually made from the old one with
            `Header.with_card`, `Header.without_card`,
            `Header.with_edited_card` or `Header.with_renamed_card`.

        Raises
        ------
        FitsInputError
            Raised if the new header is not a sealed header, or if its
            mandatory keywords differ from those of the header it replaces.

        Notes
        -----
        The data of the HDU and all other HDUs are kept byte for byte.
        """
        hdu = self[index]
        if not header.has_end or len(header) % RECORDS_PER_BLOCK:
            raise FitsInputError("A replacement header must end with END and fill whole blocks.")
        if _structural_cards(header) != _structural_cards(hdu.header):
            raise FitsInputError(f"The new header does not describe the data of HDU {index}.")
        pointers = hdu.pointers
        return FitsFile(self._data[: pointers.header] + header.to_bytes() + self._data[pointers.data :])

    def to_bytes(self) -> bytes:
        """Return the raw bytes of the file."""
        return self._data

    def stream(self) -> io.BytesIO:
        """Return a new seekable stream over the raw bytes."""
        return io.BytesIO(self._data)

    @property
    def hdus(self) -> list[HDU]:
        """All HDUs in the file."""
        return read_hdus(self.stream())

    def __len__(self) -> int:
        return len(self.hdus)

    def __getitem__(self, index: int) -> HDU:
        """Return an HDU by its 1-based index."""
        if index < 1:
            raise IndexError(f"HDU indices start at 1, not {index}.")
        return self.hdus[index - 1]

    def header(self, index: int = 1) -> Header:
        """Return the header of an HDU by its 1-based index."""
        return self[index].header

    def validate(self) -> ValidationReport:
        """Run the structural checks on the file."""
        return verify(self.stream())

    def info(self, index: int = 1) -> str:
        """Return a summary of an HDU: its type, data type and size, and its
        header records.
        """
        hdu = self[index]
        if isinstance(hdu.data, np.ndarray):
            dtype, size = str(hdu.data.dtype), str(hdu.data.shape)
        elif isinstance(hdu.data, tuple):
            dtype, size = "str", f"({len(hdu.data)},)"
        else:
            dtype, size = "None", "(0,)"
        lines = [
            f"hdu: {hdu.index}",
            f"hdutype: {hdu.hdu_type}",
            f"DataType: {dtype}",
            f"Datasize: {size}",
            "",
            "Metainformation:",
            str(hdu.header),
        ]
        return "\n".join(lines)
