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

"""Structural compliance checks for FITS files.

Every check is independent and reports a `CheckResult` instead of raising, so
a validation run always reports on everything it can see.
"""

from __future__ import annotations

__all__ = (
    "CheckResult",
    "ParsedHDU",
    "ValidationReport",
    "check_ascii",
    "check_block_count",
    "check_header_blocks",
    "check_keyword_order",
    "validate_format",
    "verify",
)

from collections.abc import Sequence
from logging import getLogger
from typing import IO, Protocol

import pydantic

from ._common import BLOCK_SIZE, KEYWORD_SIZE, RECORDS_PER_BLOCK, FitsError, stream_size
from ._io import read_hdus
from ._records import END_RECORD, is_ascii_text, parse_record

_LOG = getLogger(__name__)


class ParsedHDU(Protocol):
    """Interface for the HDUs the validator inspects."""

    @property
    def index(self) -> int:
        """Position of the HDU in its file, starting from 1."""
        ...

    @property
    def records(self) -> tuple[str, ...]:
        """All header records, including blank padding."""
        ...


class CheckResult(pydantic.BaseModel):
    """The outcome of one structural check."""

    model_config = pydantic.ConfigDict(frozen=True)

    name: str
    """Short name of the check (``block``, ``records``, ``ascii``,
    ``keywords`` or ``read``).
    """

    hdu: int | None = None
    """Index of the HDU the check applies to, or `None` for whole-file
    checks.
    """

    passed: bool
    """Whether the check passed."""

    message: str
    """Human-readable diagnostic."""

    def __str__(self) -> str:
        return self.message


class ValidationReport(pydantic.BaseModel):
    """The ordered results of a validation run."""

    checks: list[CheckResult] = pydantic.Field(default_factory=list)

    @property
    def results(self) -> list[bool]:
        """Pass/fail flag of every check, in the order they were run."""
        return [check.passed for check in self.checks]

    @property
    def passed(self) -> bool:
        """Whether every check passed."""
        return all(self.results)

    @property
    def diagnostics(self) -> list[str]:
        """One diagnostic line per check."""
        return [check.message for check in self.checks]

    @property
    def failures(self) -> list[CheckResult]:
        """The checks that failed."""
        return [check for check in self.checks if not check.passed]


def _log_result(result: CheckResult) -> CheckResult:
    if result.passed:
        _LOG.info("%s", result.message)
    else:
        _LOG.warning("%s", result.message)
    return result


def check_block_count(stream: IO[bytes]) -> CheckResult:
    """Check that a stream is a whole number of 2880-byte blocks."""
    size = stream_size(stream)
    nblocks, remainder = divmod(size, BLOCK_SIZE)
    if remainder:
        return CheckResult(
            name="block",
            passed=False,
            message=(
                f"failed block test: non-integer block count ({size} bytes is {nblocks} blocks "
                f"of {BLOCK_SIZE} bytes plus {remainder} bytes)."
            ),
        )
    noun = "block" if nblocks == 1 else "blocks"
    return CheckResult(
        name="block",
        passed=True,
        message=f"passed block test: stream consists of exactly {nblocks} {noun} (of {BLOCK_SIZE} bytes).",
    )


def check_header_blocks(hdu: ParsedHDU) -> CheckResult:
    """Check that a header is a whole number of 36-record blocks."""
    nrec = len(hdu.records)
    nblocks, remainder = divmod(nrec, RECORDS_PER_BLOCK)
    if remainder:
        return CheckResult(
            name="records",
            hdu=hdu.index,
            passed=False,
            message=(
                f"HDU{hdu.index} - header failed block test: header shall consist of an integer number "
                f"of blocks - nrec = {nrec}, nblock = {nblocks}, remainder = {remainder}."
            ),
        )
    noun = "block" if nblocks == 1 else "blocks"
    return CheckResult(
        name="records",
        hdu=hdu.index,
        passed=True,
        message=(
            f"HDU{hdu.index} - header passed block test: header consists of exactly {nblocks} {noun} "
            f"(of {RECORDS_PER_BLOCK} records of 80 bytes)."
        ),
    )


def check_ascii(hdu: ParsedHDU) -> CheckResult:
    """Check that a header holds only ASCII text characters (decimal 32
    through 126).
    """
    if is_ascii_text("".join(hdu.records)):
        return CheckResult(
            name="ascii",
            hdu=hdu.index,
            passed=True,
            message=(
                f"HDU{hdu.index} - header passed ASCII test: header contains only the restricted set "
                "of ASCII text characters, decimal 32 through 126."
            ),
        )
    return CheckResult(
        name="ascii",
        hdu=hdu.index,
        passed=False,
        message=(
            f"HDU{hdu.index} - header failed ASCII test: header blocks shall contain only the restricted "
            "set of ASCII text characters, decimal 32 through 126."
        ),
    )


def _expected_keywords(hdu: ParsedHDU, keywords: Sequence[str]) -> list[str] | str:
    # Returns the mandatory keyword sequence, or a diagnostic if NAXIS itself
    # cannot be interpreted.
    head = ["SIMPLE"] if hdu.index == 1 else ["XTENSION"]
    head += ["BITPIX", "NAXIS"]
    if keywords[: len(head)] != head:
        return head
    naxis = parse_record(hdu.records[2]).value
    if not isinstance(naxis, int) or isinstance(naxis, bool) or not 0 <= naxis <= 999:
        return f"NAXIS value {naxis!r} is not an integer between 0 and 999"
    expected = head + [f"NAXIS{n}" for n in range(1, naxis + 1)]
    if hdu.index != 1:
        expected += ["PCOUNT", "GCOUNT"]
    return expected


def check_keyword_order(hdu: ParsedHDU) -> CheckResult:
    """Check that the mandatory keywords are present and in order.

    The primary HDU must start with ``SIMPLE, BITPIX, NAXIS, NAXIS1 ...
    NAXISn``; extensions must start with ``XTENSION, BITPIX, NAXIS, NAXIS1
    ... NAXISn, PCOUNT, GCOUNT``.
    """
    keywords = []
    for record in hdu.records:
        if record == END_RECORD:
            break
        keywords.append(record[:KEYWORD_SIZE].rstrip())
    expected = _expected_keywords(hdu, keywords)
    problem: str | None = None
    if isinstance(expected, str):
        problem = expected
    else:
        for n, keyword in enumerate(expected):
            if n >= len(keywords):
                problem = f"mandatory keyword {keyword} not present (header ends after {len(keywords)} cards)"
                break
            if keywords[n] != keyword:
                problem = (
                    f"mandatory keyword {keyword} not present or out of order "
                    f"(card {n + 1} is {keywords[n]!r})"
                )
                break
    if problem is None:
        return CheckResult(
            name="keywords",
            hdu=hdu.index,
            passed=True,
            message=(
                f"HDU{hdu.index} - header passed keyword test: mandatory keywords all present and "
                "in proper order."
            ),
        )
    return CheckResult(
        name="keywords",
        hdu=hdu.index,
        passed=False,
        message=f"HDU{hdu.index} - header failed keyword test: {problem}.",
    )


def validate_format(stream: IO[bytes], hdus: Sequence[ParsedHDU]) -> ValidationReport:
    """Run all structural checks on a parsed file.

    Parameters
    ----------
    stream
        Open, seekable binary stream holding the file.
    hdus
        HDUs parsed from the stream.

    Returns
    -------
    report
        The block-count check, then the header block check of every HDU,
        then the ASCII check of every HDU, then the keyword-order check of
        every HDU.  All checks run regardless of earlier failures.
    """
    checks = [check_block_count(stream)]
    checks.extend(check_header_blocks(hdu) for hdu in hdus)
    checks.extend(check_ascii(hdu) for hdu in hdus)
    checks.extend(check_keyword_order(hdu) for hdu in hdus)
    return ValidationReport(checks=[_log_result(check) for check in checks])


def verify(stream: IO[bytes]) -> ValidationReport:
    """Read the HDUs of a stream and validate them.

    Parameters
    ----------
    stream
        Open, seekable binary stream holding the file.

    Returns
    -------
    report
        See `validate_format`.  If the stream cannot be split into HDUs at
        all, the report holds the block-count check followed by a failed
        ``read`` check describing the problem.
    """
    try:
        hdus = read_hdus(stream)
    except FitsError as err:
        checks = [
            check_block_count(stream),
            CheckResult(name="read", passed=False, message=f"failed read test: {err}"),
        ]
        return ValidationReport(checks=[_log_result(check) for check in checks])
    if not hdus:
        checks = [
            check_block_count(stream),
            CheckResult(name="read", passed=False, message="failed read test: no HDUs found."),
        ]
        return ValidationReport(checks=[_log_result(check) for check in checks])
    return validate_format(stream, hdus)
