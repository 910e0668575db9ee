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
    "ElementKind",
    "FloatKind",
    "IntegerKind",
    "NumericKind",
    "is_offset_integer",
)

import enum
from typing import Literal, TypeGuard, assert_never

import numpy as np
import numpy.typing as npt

from ._common import FitsTypeError


class ElementKind(enum.StrEnum):
    """Enumeration of the element types that can be written to a FITS HDU.

    Every member maps to a ``BITPIX`` value and a ``BZERO`` offset (numeric
    members only) and to an ASCII-table format code.
    """

    uint8 = enum.auto()
    uint16 = enum.auto()
    uint32 = enum.auto()
    uint64 = enum.auto()
    int8 = enum.auto()
    int16 = enum.auto()
    int32 = enum.auto()
    int64 = enum.auto()
    float32 = enum.auto()
    float64 = enum.auto()
    string = enum.auto()

    def to_numpy(self) -> np.dtype:
        """Return the native-endian `numpy.dtype` for this kind.

        Raises
        ------
        FitsTypeError
            Raised for `string`, which has no fixed-size numpy equivalent.
        """
        if self is ElementKind.string:
            raise FitsTypeError("String elements have no fixed-size numpy dtype.")
        return np.dtype(self.value)

    @classmethod
    def from_numpy(cls, dtype: npt.DTypeLike) -> ElementKind:
        """Construct an enumeration member from anything that can be coerced
        to `numpy.dtype`.

        Parameters
        ----------
        dtype
            Object convertible to `numpy.dtype`.

        Returns
        -------
        member
            Enumeration member.

        Raises
        ------
        FitsTypeError
            Raised if the dtype is not one of the supported element types.
        """
        dtype = np.dtype(dtype)
        if dtype.kind in "US":
            return cls.string
        try:
            return cls(dtype.name)
        except ValueError:
            raise FitsTypeError(f"Element type {dtype} cannot be stored in a FITS HDU.") from None

    @classmethod
    def from_bitpix(cls, bitpix: int, bzero: float = 0.0) -> NumericKind:
        """Return the element kind described by a ``BITPIX`` value and a
        ``BZERO`` offset.

        Parameters
        ----------
        bitpix
            Value of the ``BITPIX`` header keyword.
        bzero, optional
            Value of the ``BZERO`` header keyword.  Offsets that correspond to
            the unsigned (or, for 8-bit, signed) variant of an integer type
            select that variant.

        Returns
        -------
        member
            Enumeration member.
        """
        match bitpix:
            case 8:
                return cls.int8 if bzero == -128 else cls.uint8
            case 16:
                return cls.uint16 if bzero == 2**15 else cls.int16
            case 32:
                return cls.uint32 if bzero == 2**31 else cls.int32
            case 64:
                return cls.uint64 if bzero == 2**63 else cls.int64
            case -32:
                return cls.float32
            case -64:
                return cls.float64
        raise FitsTypeError(f"BITPIX={bitpix} is not a valid FITS element type.")

    @property
    def bitpix(self) -> int:
        """The ``BITPIX`` value for this kind: the number of bits per
        element, negated for floating-point types.
        """
        match self:
            case ElementKind.uint8 | ElementKind.int8:
                return 8
            case ElementKind.uint16 | ElementKind.int16:
                return 16
            case ElementKind.uint32 | ElementKind.int32:
                return 32
            case ElementKind.uint64 | ElementKind.int64:
                return 64
            case ElementKind.float32:
                return -32
            case ElementKind.float64:
                return -64
            case ElementKind.string:
                raise FitsTypeError("String elements cannot be stored in an image array.")
            case _:
                assert_never(self)

    @property
    def bzero(self) -> int | float:
        """The ``BZERO`` offset that maps this kind onto the signed (or, for
        8-bit, unsigned) type FITS stores.
        """
        match self:
            case ElementKind.int8:
                return -128
            case ElementKind.uint16:
                return 2**15
            case ElementKind.uint32:
                return 2**31
            case ElementKind.uint64:
                return 2**63
            case (
                ElementKind.uint8
                | ElementKind.int16
                | ElementKind.int32
                | ElementKind.int64
                | ElementKind.float32
                | ElementKind.float64
            ):
                return 0.0
            case ElementKind.string:
                raise FitsTypeError("String elements have no BZERO offset.")
            case _:
                assert_never(self)

    @property
    def tform_code(self) -> str:
        """The ASCII-table format code for this kind."""
        match self:
            case (
                ElementKind.uint8
                | ElementKind.uint16
                | ElementKind.uint32
                | ElementKind.uint64
                | ElementKind.int8
                | ElementKind.int16
                | ElementKind.int32
                | ElementKind.int64
            ):
                return "I"
            case ElementKind.float32:
                return "E"
            case ElementKind.float64:
                return "D"
            case ElementKind.string:
                return "A"
            case _:
                assert_never(self)

    def storage_dtype(self) -> np.dtype:
        """Return the big-endian `numpy.dtype` used to store this kind in a
        FITS data segment.
        """
        match self.bitpix:
            case 8:
                return np.dtype(">u1")
            case -32:
                return np.dtype(">f4")
            case -64:
                return np.dtype(">f8")
            case bitpix:
                return np.dtype(f">i{bitpix // 8}")


type IntegerKind = (
    Literal[ElementKind.uint8]
    | Literal[ElementKind.uint16]
    | Literal[ElementKind.uint32]
    | Literal[ElementKind.uint64]
    | Literal[ElementKind.int8]
    | Literal[ElementKind.int16]
    | Literal[ElementKind.int32]
    | Literal[ElementKind.int64]
)

type FloatKind = Literal[ElementKind.float32] | Literal[ElementKind.float64]

type NumericKind = IntegerKind | FloatKind


def is_offset_integer(kind: ElementKind) -> TypeGuard[IntegerKind]:
    """Test whether an `ElementKind` is stored with a nonzero ``BZERO``
    offset, i.e. whether its sign bit is flipped on disk.
    """
    return kind in (ElementKind.int8, ElementKind.uint16, ElementKind.uint32, ElementKind.uint64)
