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

import json
import os
import tempfile
import unittest

import numpy as np
from click.testing import CliRunner

from lsst.fitsformat import (
    FitsFile,
    FitsInputError,
    Header,
    TableOptions,
    build_image,
    build_primary,
    parse_table,
)
from lsst.fitsformat.cli import fitsformat


class FitsFileTestCase(unittest.TestCase):
    """Tests for the FitsFile class."""

    def setUp(self) -> None:
        self.fits_file = (
            FitsFile.create(np.arange(6, dtype=np.int16).reshape(2, 3))
            .extend(np.ones(4, dtype=np.float64), "image")
            .extend([[1, 2], ["ab", "c"]], "'TABLE   '", options=TableOptions(names=["n", "s"]))
        )

    def test_structure(self) -> None:
        fits_file = self.fits_file
        self.assertEqual(len(fits_file), 3)
        self.assertEqual([hdu.hdu_type for hdu in fits_file.hdus], ["PRIMARY", "IMAGE", "TABLE"])
        self.assertEqual(fits_file[1].index, 1)
        self.assertEqual(fits_file.header(3)["TTYPE1"], "n")
        self.assertEqual(parse_table(fits_file[3]), [[1, 2], ["ab", "c"]])
        self.assertEqual(len(fits_file.to_bytes()) % 2880, 0)
        with self.assertRaises(IndexError):
            fits_file[0]
        with self.assertRaises(IndexError):
            fits_file[4]
        with self.assertRaises(FitsInputError):
            fits_file.extend([1, 2], "BINTABLE")

    def test_immutability(self) -> None:
        """Test that extending a file returns a new one."""
        original = FitsFile.create()
        extended = original.extend(np.ones(3, dtype=np.int32))
        self.assertEqual(len(original), 1)
        self.assertEqual(len(extended), 2)
        self.assertTrue(extended.to_bytes().startswith(original.to_bytes()))

    def test_with_header(self) -> None:
        """Test putting an edited header back into a file."""
        original = self.fits_file
        header = original.header(2).with_card("OBSERVER", "E. Hubble", "who took the data")
        edited = original.with_header(2, header)
        self.assertEqual(edited.header(2)["OBSERVER"], "E. Hubble")
        self.assertEqual(len(edited.to_bytes()), len(original.to_bytes()))
        np.testing.assert_array_equal(edited[2].data, original[2].data)
        self.assertTrue(edited.validate().passed)
        # Enough new cards to need a second header block.
        header = original.header(1)
        for n in range(40):
            header = header.with_card(f"KEY{n}", n)
        edited = original.with_header(1, header).with_header(
            3, original.header(3).with_renamed_card("TDISP1", "TUNIT1")
        )
        self.assertEqual(len(edited.to_bytes()), len(original.to_bytes()) + 2880)
        self.assertEqual(edited.header(1)["KEY39"], 39)
        self.assertIn("TUNIT1", edited.header(3))
        np.testing.assert_array_equal(edited[1].data, original[1].data)
        self.assertEqual(parse_table(edited[3]), [[1, 2], ["ab", "c"]])
        self.assertTrue(edited.validate().passed)
        edited = edited.with_header(1, edited.header(1).without_card("KEY0").with_edited_card("KEY1", -1))
        self.assertNotIn("KEY0", edited.header(1))
        self.assertEqual(edited.header(1)["KEY1"], -1)
        self.assertTrue(edited.validate().passed)

    def test_with_header_errors(self) -> None:
        with self.assertRaises(FitsInputError):
            self.fits_file.with_header(1, self.fits_file.header(2))
        header = self.fits_file.header(2)
        with self.assertRaises(FitsInputError):
            self.fits_file.with_header(2, Header(header.records[:35]))
        with self.assertRaises(IndexError):
            self.fits_file.with_header(4, header)

    def test_from_contents(self) -> None:
        image = build_image(np.ones(3, dtype=np.uint8))
        self.assertEqual(len(FitsFile.from_contents([build_primary(), image])), 2)
        with self.assertRaises(FitsInputError):
            FitsFile.from_contents([image])
        with self.assertRaises(FitsInputError):
            FitsFile.from_contents([build_primary(), build_primary()])
        with self.assertRaises(FitsInputError):
            FitsFile.from_contents([])

    def test_info(self) -> None:
        info = self.fits_file.info()
        self.assertIn("hdutype: PRIMARY", info)
        self.assertIn("DataType: int16", info)
        self.assertIn("Datasize: (2, 3)", info)
        self.assertIn("NAXIS1  =                    3", info)
        info = self.fits_file.info(3)
        self.assertIn("hdutype: TABLE", info)
        self.assertIn("Datasize: (2,)", info)
        self.assertTrue(info.endswith("END"))
        self.assertIn("Datasize: (0,)", FitsFile.create().info())


class CommandLineTestCase(unittest.TestCase):
    """Tests for the fitsformat command-line tool."""

    def setUp(self) -> None:
        self.runner = CliRunner()
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.filename = os.path.join(self.tmpdir.name, "test.fits")
        FitsFile.create(np.arange(4, dtype=np.int16)).extend([[1, 2]], "TABLE").save(self.filename)

    def test_verify(self) -> None:
        result = self.runner.invoke(fitsformat, ["verify", self.filename])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("passed block test", result.stdout)
        result = self.runner.invoke(fitsformat, ["verify", "--json", self.filename])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(len(json.loads(result.stdout)["checks"]), 7)
        bad = os.path.join(self.tmpdir.name, "bad.fits")
        with open(bad, "wb") as stream:
            stream.write(b" " * 2881)
        result = self.runner.invoke(fitsformat, ["verify", bad])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("non-integer block count", result.stdout)

    def test_dump(self) -> None:
        result = self.runner.invoke(fitsformat, ["dump", "--hdu", "2", self.filename])
        self.assertEqual(result.exit_code, 0, result.output)
        lines = result.stdout.splitlines()
        self.assertEqual(len(lines), 72)
        self.assertEqual(lines[0], "    73 XTENSION= 'TABLE   '           / FITS standard extension")

    def test_info(self) -> None:
        result = self.runner.invoke(fitsformat, ["info", "--hdu", "2", self.filename])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("hdutype: TABLE", result.stdout)
        result = self.runner.invoke(fitsformat, ["info", "--hdu", "5", self.filename])
        self.assertNotEqual(result.exit_code, 0)


if __name__ == "__main__":
    unittest.main()
