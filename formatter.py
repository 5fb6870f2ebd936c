"""Helpers to split receipt body text into printable segments.

Body text may contain the in-band marker ``{{divider}}``. Each marker ends
one segment and starts the next; a divider image is printed in every gap
between two segments, never before the first or after the last.

Whitespace-only segments are not printed, but they still take part in
divider placement: ``"A{{divider}}   {{divider}}B"`` prints two dividers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

DIVIDER_MARKER = "{{divider}}"


@dataclass(frozen=True)
class BodySegment:
    """Single body segment and whether a divider follows it."""

    text: str
    divider_after: bool

    @property
    def printable(self) -> bool:
        return bool(self.text.strip())


def split_body(text: str, marker: str = DIVIDER_MARKER) -> List[str]:
    """Split text on the divider marker. No marker gives exactly one segment."""
    return text.split(marker)


def build_body_segments(text: str, marker: str = DIVIDER_MARKER) -> List[BodySegment]:
    parts = split_body(text, marker)
    last = len(parts) - 1
    return [
        BodySegment(text=part, divider_after=index < last)
        for index, part in enumerate(parts)
    ]
