"""Configuration module - loads settings from .env file."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent

# .env is optional; every setting has a default
if not load_dotenv():
    logger.debug(".env file not found, using defaults")


def _get(key: str, default: str, *fallbacks: str) -> str:
    """Get env var, trying legacy key names before the default."""
    for name in (key, *fallbacks):
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return default


def _parse_bool(value: str | None) -> bool:
    """Parse string to bool; default False for missing/invalid."""
    if not value:
        return False
    return value.strip().lower() in ("true", "1", "yes", "on")


# Network printer (ESC/POS over raw TCP)
PRINTER_HOST: str = _get("PRINTER_HOST", "10.0.0.158", "EPSON_PRINTER_HOST")
PRINTER_PORT: int = int(_get("PRINTER_PORT", "9100", "EPSON_PRINTER_PORT"))
PRINTER_TIMEOUT: float = float(_get("PRINTER_TIMEOUT", "10.0"))
MOCK_PRINTER: bool = _parse_bool(os.getenv("MOCK_PRINTER", "false"))

# 80mm paper at 203dpi
PRINTER_WIDTH_PX: int = int(_get("PRINTER_WIDTH_PX", "576"))
# Footer, divider and body images print narrower than the header logo
NARROW_IMAGE_RATIO: float = float(_get("NARROW_IMAGE_RATIO", "0.8"))

# Branding assets
ASSET_DIR: Path = Path(_get("ASSET_DIR", str(BASE_DIR)))
HEADER_IMAGE: str = _get("HEADER_IMAGE", "logo.png")
FOOTER_IMAGE: str = _get("FOOTER_IMAGE", "footer-image-1.png")
DIVIDER_IMAGE: str = _get("DIVIDER_IMAGE", "divider-long.png")
GIFT_IMAGE: str = _get("GIFT_IMAGE", "bow.png")

# Request limits
MAX_BODY_CHARS: int = int(_get("MAX_BODY_CHARS", "4000"))
MAX_IMAGE_BYTES: int = int(_get("MAX_IMAGE_BYTES", str(1 * 1024 * 1024)))

# HTTP server
SERVER_HOST: str = _get("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(_get("SERVER_PORT", "3333", "PORT"))

LOG_FILE: str = _get("LOG_FILE", "logs/app.log")
LOG_LEVEL: str = _get("LOG_LEVEL", "INFO").upper()
