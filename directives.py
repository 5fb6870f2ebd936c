"""Print directive model: the ordered instruction stream sent to the printer.

A receipt is an immutable tuple of directives handed to the printer
transport in one pass. Order is the only contract the transport relies on.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Tuple, Union

# ESC @ (initialize)
INIT = b"\x1b\x40"


def density(level: int) -> bytes:
    """GS ( E pL pH fn m: set print density (1..15, 8 is the usual default)."""
    return bytes((0x1D, 0x28, 0x45, 0x02, 0x00, 0x31, level))


DENSITY_DARK = density(15)
DENSITY_DEFAULT = density(8)


class AssetRole(str, Enum):
    HEADER = "header"
    FOOTER = "footer"
    DIVIDER = "divider"
    BODY = "body"
    GIFT = "gift"


@dataclass(frozen=True)
class ImageAsset:
    """A monochrome raster file resolved for one role."""

    role: AssetRole
    path: str


@dataclass(frozen=True)
class RawBytes:
    data: bytes


@dataclass(frozen=True)
class SetAlign:
    align: Literal["left", "center", "right"]


@dataclass(frozen=True)
class SetStyle:
    style: Literal["normal", "bold"]


@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Raster:
    asset: ImageAsset


@dataclass(frozen=True)
class Feed:
    lines: int = 1


@dataclass(frozen=True)
class Cut:
    pass


PrintDirective = Union[RawBytes, SetAlign, SetStyle, Text, Raster, Feed, Cut]
DirectiveSequence = Tuple[PrintDirective, ...]
