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
    FitsInputError,
    Header,
    IncompleteBlockError,
    build_image,
    build_primary,
)


class HeaderTestCase(unittest.TestCase):
    """Tests for the Header class."""

    def setUp(self) -> None:
        self.header = build_primary().header

    def test_lookup(self) -> None:
        """Test keyword access on a builder-produced header."""
        header = self.header
        self.assertEqual(header.hdu_type, "PRIMARY")
        self.assertEqual(len(header), 36)
        self.assertTrue(header.has_end)
        self.assertEqual(header.keywords, ["SIMPLE", "BITPIX", "NAXIS", "EXTEND", "COMMENT"])
        self.assertIs(header["SIMPLE"], True)
        self.assertEqual(header["NAXIS"], 0)
        self.assertIn("EXTEND", header)
        self.assertNotIn("NAXIS1", header)
        self.assertNotIn("COMMENT", header)
        self.assertIsNone(header.get("NAXIS1"))
        self.assertEqual(header.get("NAXIS1", 5), 5)
        self.assertEqual(header.index["EXTEND"], 3)
        self.assertEqual(header.comment_of("NAXIS"), "number of data axes")
        self.assertEqual([card.keyword for card in header], header.keywords)
        with self.assertRaises(KeyError):
            header["NAXIS1"]
        self.assertEqual(build_image(np.ones(3, dtype=np.int32)).header.hdu_type, "IMAGE")

    def test_bytes(self) -> None:
        """Test conversion to and from bytes."""
        data = self.header.to_bytes()
        self.assertEqual(len(data), 2880)
        self.assertEqual(Header.from_bytes(data), self.header)
        self.assertEqual(hash(Header.from_bytes(data)), hash(self.header))
        with self.assertRaises(IncompleteBlockError):
            Header.from_bytes(data[:-1])
        text = str(self.header)
        self.assertTrue(text.startswith("SIMPLE  ="))
        self.assertTrue(text.endswith("END"))

    def test_editing(self) -> None:
        """Test the methods that return modified headers."""
        added = self.header.with_card("OBSERVER", "Hubble", "who took the data")
        self.assertNotIn("OBSERVER", self.header)
        self.assertEqual(added["OBSERVER"], "Hubble")
        self.assertEqual(added.keywords[-1], "OBSERVER")
        self.assertEqual(len(added) % 36, 0)
        with self.assertRaises(FitsInputError):
            added.with_card("OBSERVER", "Hubble")
        history = added.with_card("HISTORY", comment="one").with_card("HISTORY", comment="two")
        self.assertEqual(history.keywords.count("HISTORY"), 2)
        edited = added.with_edited_card("OBSERVER", "Herschel")
        self.assertEqual(edited["OBSERVER"], "Herschel")
        self.assertEqual(edited.comment_of("OBSERVER"), "who took the data")
        self.assertEqual(edited.keywords, added.keywords)
        renamed = edited.with_renamed_card("OBSERVER", "OBSERVR")
        self.assertNotIn("OBSERVER", renamed)
        self.assertEqual(renamed["OBSERVR"], "Herschel")
        self.assertEqual(renamed.keywords.index("OBSERVR"), added.keywords.index("OBSERVER"))
        removed = renamed.without_card("OBSERVR")
        self.assertEqual(removed, self.header)
        with self.assertRaises(KeyError):
            removed.without_card("OBSERVR")

    def test_mandatory_keywords(self) -> None:
        """Test that mandatory keywords cannot be modified."""
        header = build_image(np.zeros((2, 2), dtype=np.float64)).header
        with self.assertRaises(FitsInputError):
            header.without_card("NAXIS2")
        with self.assertRaises(FitsInputError):
            header.with_edited_card("BITPIX", 16)
        with self.assertRaises(FitsInputError):
            header.with_renamed_card("PCOUNT", "PCNT")
        self.assertEqual(header.without_card("BSCALE").keywords.count("BSCALE"), 0)


if __name__ == "__main__":
    unittest.main()
