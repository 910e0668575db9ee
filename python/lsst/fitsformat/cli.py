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

__all__ = ("fitsformat",)

import logging

import click

from ._common import FitsError
from ._file import FitsFile
from ._io import open_stream, record_dump
from ._validation import verify


@click.group("fitsformat")
@click.option("-v", "--verbose", is_flag=True, help="Log every check, not just failures.")
def fitsformat(verbose: bool) -> None:
    """Inspect and validate FITS files."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s"
    )


@fitsformat.command("verify")
@click.argument("path")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON.")
def verify_command(path: str, as_json: bool) -> None:
    """Check the structure of a FITS file."""
    with open_stream(path) as stream:
        report = verify(stream)
    if as_json:
        click.echo(report.model_dump_json(indent=2))
    else:
        for check in report.checks:
            click.echo(check.message)
    if not report.passed:
        raise SystemExit(1)


@fitsformat.command("dump")
@click.argument("path")
@click.option("--hdu", type=int, default=None, help="1-based index of the HDU to dump (default: all).")
def dump_command(path: str, hdu: int | None) -> None:
    """Print the raw 80-byte records of a FITS file."""
    with open_stream(path) as stream:
        try:
            records = record_dump(stream, hdu)
        except FitsError as err:
            raise click.ClickException(str(err)) from err
    for number, text in records:
        click.echo(f"{number:6d} {text.rstrip()}")


@fitsformat.command("info")
@click.argument("path")
@click.option("--hdu", type=int, default=1, help="1-based index of the HDU to describe.")
def info_command(path: str, hdu: int) -> None:
    """Summarize one HDU of a FITS file."""
    fits_file = FitsFile.read(path)
    try:
        click.echo(fits_file.info(hdu))
    except (FitsError, IndexError) as err:
        raise click.ClickException(str(err)) from err


if __name__ == "__main__":
    fitsformat()
