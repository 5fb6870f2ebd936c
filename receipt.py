"""Receipt composition: branding assets + request -> directive sequence -> printer.

Layout, top to bottom::

    header logo (full width)
    body segments, left aligned, divider image between segments
    optional body image
    branded footer (bold, dark density)
    optional order details
    optional footer image
    feed + cut

Rasters are written to temp files before the directive sequence is built
and removed once the printer reports completion, whatever the outcome.
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import config
from directives import (
    DENSITY_DARK,
    DENSITY_DEFAULT,
    INIT,
    AssetRole,
    Cut,
    DirectiveSequence,
    Feed,
    ImageAsset,
    PrintDirective,
    Raster,
    RawBytes,
    SetAlign,
    SetStyle,
    Text,
)
from errors import AssetMissing
from formatter import DIVIDER_MARKER, build_body_segments
from printer import PrinterTransport
from raster import PillowRasterConverter, RasterConverter

logger = logging.getLogger(__name__)

# Always printed on every receipt
BRANDED_FOOTER = """- - -

Unusual Coffee
Visit us at unusual.coffee

- - -

Thank you!"""

BLANK_LINES = 3
TRAILING_FEED = 3


@dataclass(frozen=True)
class ReceiptRequest:
    body: str
    body_image: Optional[bytes] = None
    order_details: Optional[str] = None


@dataclass(frozen=True)
class ReceiptSettings:
    """Explicit layout/asset settings for a composer."""

    asset_dir: Path
    printer_width_px: int = 576
    narrow_ratio: float = 0.8
    header_image: str = "logo.png"
    footer_image: str = "footer-image-1.png"
    divider_image: str = "divider-long.png"
    gift_image: str = "bow.png"
    temp_dir: Optional[Path] = None
    divider_marker: str = DIVIDER_MARKER

    @classmethod
    def from_config(cls) -> "ReceiptSettings":
        return cls(
            asset_dir=config.ASSET_DIR,
            printer_width_px=config.PRINTER_WIDTH_PX,
            narrow_ratio=config.NARROW_IMAGE_RATIO,
            header_image=config.HEADER_IMAGE,
            footer_image=config.FOOTER_IMAGE,
            divider_image=config.DIVIDER_IMAGE,
            gift_image=config.GIFT_IMAGE,
        )

    @property
    def narrow_width_px(self) -> int:
        return int(round(self.printer_width_px * self.narrow_ratio))

    def width_for(self, role: AssetRole) -> int:
        if role in (AssetRole.HEADER, AssetRole.GIFT):
            return self.printer_width_px
        return self.narrow_width_px

    def asset_path(self, role: AssetRole) -> Path:
        names = {
            AssetRole.HEADER: self.header_image,
            AssetRole.FOOTER: self.footer_image,
            AssetRole.DIVIDER: self.divider_image,
            AssetRole.GIFT: self.gift_image,
        }
        if role not in names:
            raise ValueError(f"No asset file for role: {role.value}")
        return self.asset_dir / names[role]


@dataclass(frozen=True)
class ReceiptAssets:
    header: ImageAsset
    divider: Optional[ImageAsset] = None
    body: Optional[ImageAsset] = None
    footer: Optional[ImageAsset] = None


class TempRasters:
    """Scoped temp raster files; every file is deleted on exit."""

    def __init__(self, directory: Optional[Path] = None) -> None:
        self.directory = Path(directory or tempfile.gettempdir())
        self.paths: List[Path] = []

    def __enter__(self) -> "TempRasters":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

    def write(self, role: AssetRole, data: bytes) -> ImageAsset:
        path = self.directory / f"receipt-{role.value}-{time.time_ns()}-{uuid.uuid4().hex[:8]}.png"
        self.paths.append(path)
        path.write_bytes(data)
        return ImageAsset(role=role, path=str(path))

    def cleanup(self) -> None:
        while self.paths:
            path = self.paths.pop()
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to delete temp file %s: %s", path, e)


def build_receipt(request: ReceiptRequest, assets: ReceiptAssets, marker: str = DIVIDER_MARKER) -> DirectiveSequence:
    """Build the full directive sequence for one receipt."""
    out: List[PrintDirective] = [
        RawBytes(INIT),
        Feed(BLANK_LINES),
        SetAlign("center"),
        Raster(assets.header),
        Feed(BLANK_LINES),
    ]

    for segment in build_body_segments(request.body, marker):
        if segment.printable:
            out += [SetAlign("left"), Text(segment.text)]
        if segment.divider_after and assets.divider is not None:
            out += [SetAlign("center"), Raster(assets.divider)]

    out.append(Feed(BLANK_LINES))

    if assets.body is not None:
        out += [SetAlign("center"), Raster(assets.body), Feed(BLANK_LINES)]

    out += [
        SetAlign("center"),
        RawBytes(DENSITY_DARK),
        SetStyle("bold"),
        Text(BRANDED_FOOTER),
        SetStyle("normal"),
        RawBytes(DENSITY_DEFAULT),
        Feed(BLANK_LINES),
    ]

    details = (request.order_details or "").strip()
    if details:
        out += [Feed(BLANK_LINES), SetAlign("left"), Text(details), Feed(BLANK_LINES)]

    if assets.footer is not None:
        out += [SetAlign("center"), Raster(assets.footer)]

    out += [Feed(TRAILING_FEED), Cut()]
    return tuple(out)


def build_gift_receipt(bow: ImageAsset, from_name: str, to_name: str) -> DirectiveSequence:
    """Gift tag: bow image over a centred bold From/To block."""
    return (
        RawBytes(INIT),
        Feed(BLANK_LINES),
        SetAlign("center"),
        Raster(bow),
        Feed(4),
        SetAlign("center"),
        SetStyle("bold"),
        Text(f"From: {from_name}"),
        Text(f"To: {to_name}"),
        SetStyle("normal"),
        Feed(TRAILING_FEED),
        Cut(),
    )


class ReceiptComposer:
    """Compose receipts and hand them to a printer transport."""

    def __init__(
        self,
        transport: PrinterTransport,
        converter: Optional[RasterConverter] = None,
        settings: Optional[ReceiptSettings] = None,
    ) -> None:
        self.transport = transport
        self.converter = converter or PillowRasterConverter()
        self.settings = settings or ReceiptSettings.from_config()

    async def compose(self, request: ReceiptRequest) -> None:
        """Print one receipt. Raises a ComposeError subclass on failure."""
        with TempRasters(self.settings.temp_dir) as temp:
            assets = await self.resolve_assets(request, temp)
            directives = build_receipt(request, assets, self.settings.divider_marker)
            logger.info(
                "Composed receipt: %d directives, divider=%s body_image=%s footer=%s",
                len(directives),
                assets.divider is not None,
                assets.body is not None,
                assets.footer is not None,
            )
            await self._send(directives)

    async def compose_gift(self, from_name: str, to_name: str) -> None:
        with TempRasters(self.settings.temp_dir) as temp:
            bow = await self._load_asset(AssetRole.GIFT, temp, required=True)
            await self._send(build_gift_receipt(bow, from_name, to_name))

    async def _send(self, directives: DirectiveSequence) -> None:
        """Send directives; returns only once the transport is finished with them.

        Temp rasters are referenced by path until the printer has read them, so a
        cancelled caller still waits for the job before cleanup runs.
        """
        job = asyncio.ensure_future(self.transport.send(directives))
        try:
            await asyncio.shield(job)
        except asyncio.CancelledError:
            logger.info("Receipt cancelled while printing; waiting for printer before cleanup")
            try:
                await job
            except Exception as e:
                logger.warning("Cancelled print job failed: %s", e)
            raise

    async def resolve_assets(self, request: ReceiptRequest, temp: TempRasters) -> ReceiptAssets:
        header = await self._load_asset(AssetRole.HEADER, temp, required=True)
        divider = await self._load_asset(AssetRole.DIVIDER, temp)
        footer = await self._load_asset(AssetRole.FOOTER, temp)
        body = None
        if request.body_image:
            body = await self._rasterize(AssetRole.BODY, request.body_image, temp)
        return ReceiptAssets(header=header, divider=divider, body=body, footer=footer)

    async def _load_asset(self, role: AssetRole, temp: TempRasters, required: bool = False) -> Optional[ImageAsset]:
        path = self.settings.asset_path(role)
        if not path.is_file():
            if required:
                raise AssetMissing(role.value)
            logger.debug("Optional %s asset not found: %s", role.value, path)
            return None
        return await self._rasterize(role, path.read_bytes(), temp)

    async def _rasterize(self, role: AssetRole, data: bytes, temp: TempRasters) -> ImageAsset:
        width = self.settings.width_for(role)
        raster = await asyncio.get_running_loop().run_in_executor(
            None, self.converter.convert, data, width
        )
        return temp.write(role, raster)
