"""Convert arbitrary images into 1-bit rasters for an 80mm / 203dpi printer."""

from __future__ import annotations

import io
import logging
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from errors import DecodeError

logger = logging.getLogger(__name__)

# Luminance at or above this prints white
THRESHOLD = 128


class RasterConverter(Protocol):
    def convert(self, data: bytes, width: int) -> bytes:
        """Return monochrome PNG bytes no wider than ``width``."""
        ...


class PillowRasterConverter:
    """Raster converter backed by Pillow.

    Images are fit to the target width preserving aspect ratio and are never
    upscaled. Transparent areas are flattened onto white before thresholding,
    otherwise a transparent logo background would print solid black.
    """

    def __init__(self, threshold: int = THRESHOLD) -> None:
        self.threshold = threshold

    def convert(self, data: bytes, width: int) -> bytes:
        img = self._open(data)

        if img.mode in ("RGBA", "LA", "P"):
            img = img.convert("RGBA")
            background = Image.new("RGBA", img.size, (255, 255, 255, 255))
            img = Image.alpha_composite(background, img)

        img = img.convert("L")

        if img.width > width:
            ratio = width / img.width
            new_height = max(1, int(round(img.height * ratio)))
            img = img.resize((width, new_height), Image.Resampling.LANCZOS)

        threshold = self.threshold
        mono = img.point(lambda v: 255 if v >= threshold else 0).convert("1", dither=Image.Dither.NONE)
        logger.debug("Rasterized image: size=%s target_width=%d", mono.size, width)

        out = io.BytesIO()
        mono.save(out, format="PNG")
        return out.getvalue()

    @staticmethod
    def _open(data: bytes) -> Image.Image:
        if not data:
            raise DecodeError("Failed to load image: empty image data")
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except Image.DecompressionBombError as e:
            raise DecodeError(f"Image too large: {e}") from e
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise DecodeError(f"Failed to load image: {e}") from e
        return img
