#!/usr/bin/env python3
"""Capability demo: fonts, styles, sizes, alignment, density, barcode and QR.

Usage (from project root, with venv activated):

  python demo_print.py
      → prints the demo on PRINTER_HOST:PRINTER_PORT from config / .env

  python demo_print.py --host 10.0.0.20 --no-logo
      → different printer, skip the header logo
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime
from pathlib import Path

from escpos.printer import Network  # type: ignore[import]

import config
from directives import AssetRole, density
from raster import PillowRasterConverter
from receipt import TempRasters

logger = logging.getLogger(__name__)

SEP = "=" * 32
SEP_THIN = "-" * 32
DENSITY_LEVELS = (
    (1, "lightest"),
    (4, "light"),
    (8, "default"),
    (12, "dark"),
    (15, "darkest"),
)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Print a font/style/density test page.")
    parser.add_argument("--host", default=config.PRINTER_HOST, help="Printer host (default from config).")
    parser.add_argument("--port", type=int, default=config.PRINTER_PORT, help="Printer port (default from config).")
    parser.add_argument(
        "--timeout",
        type=float,
        default=15.0,
        help="Socket timeout in seconds (default: 15).",
    )
    parser.add_argument(
        "--logo",
        type=Path,
        default=config.ASSET_DIR / config.HEADER_IMAGE,
        help="Header logo path (default: configured header image).",
    )
    parser.add_argument("--no-logo", dest="logo", action="store_const", const=None, help="Skip the logo.")
    return parser


def section(p: Network, title: str) -> None:
    p.textln(title)
    p.textln(SEP_THIN)


def print_demo(p: Network, logo_path: str | None) -> None:
    p._raw(b"\x1b\x40")

    p.set(align="center")
    if logo_path:
        p.image(logo_path, impl="bitImageRaster")
        p.ln()
    p.set(bold=True)
    p.textln("FONT & STYLE TEST PRINT")
    p.set(bold=False)
    p.textln(SEP)
    p.ln()

    p.set(align="left")
    section(p, "FONT COMPARISON")
    for font in ("a", "b"):
        p.set(font=font)
        name = font.upper()
        p.textln(f"Font {name}: ABCDEFGHIJKLMNOPQRSTUVWXYZ")
        p.textln(f"Font {name}: abcdefghijklmnopqrstuvwxyz")
        p.textln(f"Font {name}: 0123456789 !@#$%^&*()")
    p.set(font="a")
    p.ln()

    section(p, "TEXT STYLES")
    p.textln("Normal text (default)")
    styles = (
        ({"bold": True}, "Bold text"),
        ({"underline": 1}, "Underlined text"),
        ({"underline": 2}, "Double underline"),
        ({"bold": True, "underline": 1}, "Bold + Underline"),
        ({"invert": True}, "Inverted/Reverse"),
    )
    for kwargs, label in styles:
        p.set(**kwargs)
        p.textln(label)
        p.set(bold=False, underline=0, invert=False)
    p.ln()

    section(p, "SIZE VARIATIONS")
    sizes = (
        (1, 1, "Size 1x1 (normal)"),
        (2, 1, "Size 2x1 (double width)"),
        (1, 2, "Size 1x2 (double height)"),
        (2, 2, "Size 2x2 (double both)"),
    )
    for width, height, label in sizes:
        p.set(custom_size=True, width=width, height=height)
        p.textln(label)
    p.set(normal_textsize=True)
    p.ln()

    section(p, "ALIGNMENT")
    for align in ("left", "center", "right"):
        p.set(align=align)
        p.textln(f"{align.capitalize()} aligned text")
    p.set(align="left")
    p.ln()

    section(p, "DENSITY / DARKNESS TEST")
    p.textln("(Note: Density control varies by printer)")
    p.ln()
    for level, label in DENSITY_LEVELS:
        p._raw(density(level))
        p.textln(f"Density {level} ({label}): Sample text")
    p._raw(density(8))
    p.ln()

    section(p, "BARCODE SAMPLE")
    p.set(align="center")
    p.barcode("123456789012", "EAN13", width=2, height=60, pos="BELOW")
    p.ln()

    section(p, "QR CODE SAMPLE")
    p.qr("https://example.com", size=6, center=True)
    p.ln()

    p.set(align="center")
    p.textln(SEP)
    p.set(font="b")
    p.textln("Test print completed")
    p.textln(datetime.now().strftime("%d.%m.%Y %H:%M:%S"))
    p.set(font="a")

    p.ln(4)
    try:
        p.cut(mode="FULL")
    except TypeError:
        p.cut()


def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    with TempRasters() as temp:
        logo_path: str | None = None
        if args.logo is not None:
            if not args.logo.is_file():
                raise SystemExit(f"Logo not found: {args.logo} (use --no-logo to skip)")
            raster = PillowRasterConverter().convert(args.logo.read_bytes(), config.PRINTER_WIDTH_PX)
            logo_path = temp.write(AssetRole.HEADER, raster).path

        p = Network(args.host, port=args.port, timeout=args.timeout)
        try:
            print_demo(p, logo_path)
        finally:
            p.close()
    logger.info("Test print sent to %s:%d", args.host, args.port)


if __name__ == "__main__":
    main()
