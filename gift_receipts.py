#!/usr/bin/env python3
"""Print gift receipts: bow image with a From / To block.

Usage (from project root, with venv activated):

  python gift_receipts.py Miles:Mama Papa:Mama
      → one receipt per FROM:TO pair, printed in order
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from errors import ComposeError
from printer import AsyncPrinter
from receipt import ReceiptComposer

logger = logging.getLogger(__name__)


def parse_pair(value: str) -> tuple[str, str]:
    from_name, sep, to_name = value.partition(":")
    if not sep or not from_name.strip() or not to_name.strip():
        raise argparse.ArgumentTypeError(f"expected FROM:TO, got {value!r}")
    return from_name.strip(), to_name.strip()


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Print gift receipts.")
    parser.add_argument("pairs", nargs="+", type=parse_pair, metavar="FROM:TO")
    return parser


async def print_gift_receipts(composer: ReceiptComposer, pairs: list[tuple[str, str]]) -> None:
    for index, (from_name, to_name) in enumerate(pairs, start=1):
        logger.info("Printing receipt %d: From %s to %s", index, from_name, to_name)
        await composer.compose_gift(from_name, to_name)


async def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    printer = AsyncPrinter()
    try:
        await print_gift_receipts(ReceiptComposer(printer), args.pairs)
    except ComposeError as e:
        logger.error("Error: %s", e)
        return 1
    finally:
        await printer.close()
    logger.info("All receipts printed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
