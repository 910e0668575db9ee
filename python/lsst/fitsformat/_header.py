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

__all__ = ("MANDATORY_KEYWORDS", "Header", "is_mandatory")

from collections.abc import Iterable, Iterator, Sequence
from functools import cached_property
from typing import Self, final

from ._common import RECORD_SIZE, FitsFormatError, FitsInputError, IncompleteBlockError
from ._records import (
    END_RECORD,
    Card,
    RecordBuilder,
    Value,
    format_keyword,
    format_record,
    parse_record,
)

MANDATORY_KEYWORDS = frozenset(
    {"SIMPLE", "XTENSION", "BITPIX", "NAXIS", "PCOUNT", "GCOUNT", "TFIELDS", "EXTEND", "END"}
)


def is_mandatory(keyword: str) -> bool:
    """Whether a keyword is one whose value is fixed by the HDU structure."""
    return keyword in MANDATORY_KEYWORDS or (keyword.startswith("NAXIS") and keyword[5:].isdigit())


@final
class Header:
    """An immutable view of the records of a FITS header.

    Parameters
    ----------
    records
        The header's 80-character records, in order.  Blank padding after the
        ``END`` record is kept, so the number of records reflects the size of
        the header on disk.

    Notes
    -----
    Keyword lookups use the first card with a given keyword.  Long string
    values continued on ``CONTINUE`` records are joined into the value of the
    card they continue.  Methods that modify the header return a new `Header`
    whose records have been re-sealed.
    """

    def __init__(self, records: Iterable[str]):
        self._records = tuple(records)

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        """Construct a header from raw bytes.

        Parameters
        ----------
        data
            Raw header bytes; must be a whole number of records.  Bytes are
            decoded as Latin-1 so that non-ASCII content survives for
            validation instead of raising.
        """
        if len(data) % RECORD_SIZE:
            raise IncompleteBlockError(
                f"Header of {len(data)} bytes is not a whole number of {RECORD_SIZE}-byte records."
            )
        text = data.decode("latin-1")
        return cls(text[i : i + RECORD_SIZE] for i in range(0, len(text), RECORD_SIZE))

    @property
    def records(self) -> tuple[str, ...]:
        """All records, including the ``END`` record and blank padding."""
        return self._records

    @cached_property
    def cards(self) -> tuple[Card, ...]:
        """Parsed cards up to (not including) the ``END`` record."""
        cards: list[Card] = []
        for record in self._records:
            card = parse_record(record)
            if card.keyword == "END":
                break
            if (
                card.keyword == "CONTINUE"
                and cards
                and isinstance(cards[-1].value, str)
                and cards[-1].value.endswith("&")
                and isinstance(card.value, str)
            ):
                previous = cards.pop()
                cards.append(Card(previous.keyword, previous.value[:-1] + card.value, card.comment))
                continue
            cards.append(card)
        return tuple(cards)

    @cached_property
    def index(self) -> dict[str, int]:
        """Mapping from keyword to the position of its first card."""
        result: dict[str, int] = {}
        for n, card in enumerate(self.cards):
            if not card.is_commentary:
                result.setdefault(card.keyword, n)
        return result

    @property
    def keywords(self) -> list[str]:
        """Keywords of all cards, in order."""
        return [card.keyword for card in self.cards]

    @property
    def has_end(self) -> bool:
        """Whether the records include an ``END`` record."""
        return END_RECORD in self._records

    @property
    def hdu_type(self) -> str:
        """``PRIMARY`` for a header that starts with ``SIMPLE``, otherwise the
        value of ``XTENSION``.
        """
        if "SIMPLE" in self:
            return "PRIMARY"
        xtension = self.get("XTENSION")
        if not isinstance(xtension, str):
            raise FitsFormatError("Header has neither SIMPLE nor a string-valued XTENSION keyword.")
        return xtension.strip().upper()

    def __contains__(self, keyword: str) -> bool:
        return keyword in self.index

    def __getitem__(self, keyword: str) -> Value:
        return self.cards[self.index[keyword]].value

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)

    def __len__(self) -> int:
        return len(self._records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Header):
            return NotImplemented
        return self._records == other._records

    def __hash__(self) -> int:
        return hash(self._records)

    def get(self, keyword: str, default: Value = None) -> Value:
        """Return the value of a keyword, or a default if it is absent."""
        if (n := self.index.get(keyword)) is None:
            return default
        return self.cards[n].value

    def comment_of(self, keyword: str) -> str:
        """Return the comment of a keyword's card."""
        return self.cards[self.index[keyword]].comment

    def to_bytes(self) -> bytes:
        """Return the header as ASCII bytes."""
        return "".join(self._records).encode("ascii")

    def __str__(self) -> str:
        lines = []
        for record in self._records:
            lines.append(record.rstrip())
            if record == END_RECORD:
                break
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"Header(<{len(self._records)} records>)"

    def _card_records(self) -> list[list[str]]:
        # Group records into the record(s) belonging to each card, stopping
        # at END; CONTINUE records stay with the card they continue.
        groups: list[list[str]] = []
        for record in self._records:
            if record == END_RECORD:
                break
            if record.startswith("CONTINUE") and groups:
                groups[-1].append(record)
            else:
                groups.append([record])
        return groups

    def _reseal(self, groups: Sequence[list[str]]) -> Header:
        builder = RecordBuilder()
        for group in groups:
            builder.extend(group)
        return Header(builder.seal())

    def _position(self, keyword: str) -> int:
        keyword = format_keyword(keyword)
        for n, group in enumerate(self._card_records()):
            if parse_record(group[0]).keyword == keyword:
                return n
        raise KeyError(keyword)

    def with_card(self, key: str, value: Value = None, comment: str = "") -> Header:
        """Return a new header with a card appended before ``END``.

        Parameters
        ----------
        key
            Keyword to add.  Must not already be present unless it is a
            commentary keyword.
        value, optional
            Value of the new card.
        comment, optional
            Comment of the new card.
        """
        keyword = format_keyword(key)
        if keyword in self:
            raise FitsInputError(f"Keyword {keyword!r} is already present in the header.")
        groups = self._card_records()
        groups.append(format_record(keyword, value, comment))
        return self._reseal(groups)

    def without_card(self, key: str) -> Header:
        """Return a new header without the card for a keyword.

        Mandatory keywords cannot be removed.
        """
        keyword = format_keyword(key)
        if is_mandatory(keyword):
            raise FitsInputError(f"Mandatory keyword {keyword!r} cannot be removed.")
        groups = self._card_records()
        del groups[self._position(keyword)]
        return self._reseal(groups)

    def with_edited_card(self, key: str, value: Value, comment: str | None = None) -> Header:
        """Return a new header with the value (and optionally comment) of a
        card replaced, keeping its position.

        Mandatory keywords cannot be edited, since their values are derived
        from the data.
        """
        keyword = format_keyword(key)
        if is_mandatory(keyword):
            raise FitsInputError(f"Mandatory keyword {keyword!r} cannot be edited.")
        groups = self._card_records()
        n = self._position(keyword)
        if comment is None:
            comment = self.comment_of(keyword)
        groups[n] = format_record(keyword, value, comment)
        return self._reseal(groups)

    def with_renamed_card(self, old: str, new: str) -> Header:
        """Return a new header with a card's keyword replaced, keeping its
        position, value and comment.
        """
        old_keyword = format_keyword(old)
        new_keyword = format_keyword(new)
        if is_mandatory(old_keyword) or is_mandatory(new_keyword):
            raise FitsInputError(f"Mandatory keyword cannot be renamed ({old_keyword!r} -> {new_keyword!r}).")
        if new_keyword in self:
            raise FitsInputError(f"Keyword {new_keyword!r} is already present in the header.")
        groups = self._card_records()
        n = self._position(old_keyword)
        groups[n] = [new_keyword.ljust(8) + groups[n][0][8:]] + groups[n][1:]
        return self._reseal(groups)
