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

import unittest

import numpy as np

from lsst.fitsformat import (
    ColumnFormat,
    ElementKind,
    FitsFormatError,
    FitsInputError,
    FitsTypeError,
    infer_column_format,
    infer_table_formats,
    render_cell,
)


class ColumnFormatTestCase(unittest.TestCase):
    """Tests for ASCII-table column format inference."""

    def test_integers(self) -> None:
        self.assertEqual(infer_column_format([1, 2, 3]).token, "I1")
        self.assertEqual(infer_column_format([10, 200, -5]).token, "I3")
        self.assertEqual(infer_column_format(np.array([1, 2000], dtype=np.int16)).token, "I4")
        self.assertEqual(infer_column_format([np.uint64(7)]).token, "I1")

    def test_fixed_decimal(self) -> None:
        """Test that reals rendered without an exponent become F."""
        fmt = infer_column_format([1.5, 2.25])
        self.assertEqual(fmt, ColumnFormat("F", 4, 1))
        self.assertEqual(fmt.token, "F4.1")
        self.assertEqual(infer_column_format(np.array([0.5, 100.25], dtype=np.float32)).token, "F6.1")
        self.assertEqual(infer_column_format([3.0]).token, "F3.1")
        self.assertEqual(infer_column_format(np.array([0.5, 2.25], dtype=np.float16)).token, "F4.1")

    def test_exponential(self) -> None:
        """Test that reals rendered with an exponent keep E or D."""
        self.assertEqual(infer_column_format([1e-30, 1.5]).token, "D5.0")
        self.assertEqual(infer_column_format([1.25e-30]).token, "D8.2")
        self.assertEqual(infer_column_format([np.float32(1e-30)]).token, "E5.0")
        self.assertEqual(infer_column_format([np.float16(6e-05)]).code, "E")

    def test_first_row_sampling(self) -> None:
        """Test that only the first row decides the type code and decimals,
        while the width covers every row.
        """
        fmt = infer_column_format([1.5, 1e-30, 22.125])
        self.assertEqual(fmt.code, "F")
        self.assertEqual(fmt.decimals, 1)
        self.assertEqual(fmt.width, 6)
        self.assertEqual(infer_column_format([1, "long string"]).token, "I11")
        self.assertEqual(infer_column_format(["a", 12345]).token, "A5")

    def test_strings_and_fallback(self) -> None:
        self.assertEqual(infer_column_format(["a", "abc"]).token, "A3")
        self.assertEqual(infer_column_format([b"ab", b"c"]).token, "A2")
        self.assertEqual(infer_column_format(np.array(["xy", "z"])).token, "A2")
        self.assertEqual(infer_column_format([True, False]).token, "X5")
        self.assertEqual(infer_column_format([None]).token, "X4")
        self.assertEqual(infer_column_format([np.complex64(1)]).code, "X")
        self.assertEqual(render_cell(b"ab"), "ab")
        self.assertEqual(
            [f.token for f in infer_table_formats([[1], ["abc"], [0.5]])],
            ["I1", "A3", "F3.1"],
        )
        with self.assertRaises(FitsInputError):
            infer_column_format([])

    def test_parse(self) -> None:
        """Test reading TFORM tokens back."""
        self.assertEqual(ColumnFormat.parse("E10.3"), ColumnFormat("E", 10, 3))
        self.assertEqual(ColumnFormat.parse(" I4 "), ColumnFormat("I", 4))
        self.assertEqual(str(ColumnFormat.parse("A20")), "A20")
        with self.assertRaises(FitsFormatError):
            ColumnFormat.parse("Q3")


class ElementKindTestCase(unittest.TestCase):
    """Tests for the ElementKind enumeration."""

    def test_mappings(self) -> None:
        for kind in ElementKind:
            if kind is ElementKind.string:
                with self.assertRaises(FitsTypeError):
                    kind.bitpix
                self.assertEqual(kind.tform_code, "A")
                continue
            dtype = kind.to_numpy()
            self.assertIs(ElementKind.from_numpy(dtype), kind)
            self.assertEqual(abs(kind.bitpix), 8 * dtype.itemsize)
            self.assertEqual(kind.bitpix < 0, dtype.kind == "f")
            self.assertIs(ElementKind.from_bitpix(kind.bitpix, kind.bzero), kind)
            self.assertEqual(kind.storage_dtype().itemsize, dtype.itemsize)
            self.assertEqual(kind.storage_dtype().byteorder in (">", "|"), True)
        self.assertEqual(ElementKind.uint16.bzero, 32768)
        self.assertEqual(ElementKind.int8.bzero, -128)
        self.assertEqual(ElementKind.from_numpy("U5"), ElementKind.string)
        for bad in (np.bool_, np.complex128, np.float16, object):
            with self.assertRaises(FitsTypeError):
                ElementKind.from_numpy(bad)
        with self.assertRaises(FitsTypeError):
            ElementKind.from_bitpix(12)


if __name__ == "__main__":
    unittest.main()
