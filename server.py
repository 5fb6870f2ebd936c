"""HTTP server: POST /print turns a request into a printed receipt."""

import base64
import binascii
import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

import config
from errors import ComposeError, ValidationError
from printer import AsyncPrinter
from receipt import ReceiptComposer, ReceiptRequest

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/jpg"}
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPEG_MAGIC = b"\xff\xd8\xff"

printer = AsyncPrinter()
composer = ReceiptComposer(printer)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("Printer target: %s (mock=%s)", printer.address, config.MOCK_PRINTER)
    yield
    await printer.close()


app = FastAPI(title="Receipt printer", lifespan=lifespan)


def get_composer() -> ReceiptComposer:
    return composer


def get_printer() -> AsyncPrinter:
    return printer


def json_error(message: str, status: int = 400) -> JSONResponse:
    return JSONResponse(content={"ok": False, "error": message}, status_code=status)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return json_error(str(exc.detail), exc.status_code)


def _sniff_image_type(data: bytes) -> str | None:
    if data.startswith(PNG_MAGIC):
        return "image/png"
    if data.startswith(JPEG_MAGIC):
        return "image/jpeg"
    return None


def check_image(data: bytes, content_type: str | None) -> None:
    """Reject oversized or non PNG/JPEG body images."""
    if len(data) > config.MAX_IMAGE_BYTES:
        limit_mb = config.MAX_IMAGE_BYTES // (1024 * 1024)
        raise ValidationError(f"Image exceeds {limit_mb}MB limit")
    if (content_type or "").lower() not in ALLOWED_IMAGE_TYPES:
        raise ValidationError("Only PNG and JPG images are allowed")


def check_body(body: Any) -> str:
    """Return trimmed body text or raise ValidationError."""
    if not isinstance(body, str) or not body.strip():
        raise ValidationError("Body text is required")
    if len(body) > config.MAX_BODY_CHARS:
        raise ValidationError(f"Body text exceeds {config.MAX_BODY_CHARS} characters")
    return body.strip()


def check_order_details(value: Any) -> str | None:
    """Return order details text, None when absent, or raise ValidationError."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError("Order details must be text")
    return value


def _decode_base64_image(value: Any) -> bytes:
    if not isinstance(value, str):
        raise ValidationError("bodyImage must be a base64 string")
    # Accept data URLs as sent by browsers
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("bodyImage is not valid base64")


async def read_print_request(request: Request) -> ReceiptRequest:
    """Parse a multipart/form or JSON request into a ReceiptRequest."""
    content_type = request.headers.get("content-type", "")
    image: bytes | None = None
    image_type: str | None = None

    if "application/json" in content_type:
        try:
            data = await request.json()
        except ValueError:
            raise ValidationError("Invalid JSON body")
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON body")
        body = data.get("body")
        order_details = data.get("orderDetails")
        if data.get("bodyImage"):
            image = _decode_base64_image(data["bodyImage"])
            image_type = _sniff_image_type(image)
    else:
        try:
            form = await request.form()
        except MultiPartException as e:
            raise ValidationError(f"Invalid form body: {e.message}")
        except StarletteHTTPException as e:
            raise ValidationError(f"Invalid form body: {e.detail}")
        body = form.get("body")
        order_details = form.get("orderDetails")
        upload = form.get("bodyImage")
        if isinstance(upload, UploadFile):
            # Read one byte past the limit so oversize is detectable
            image = await upload.read(config.MAX_IMAGE_BYTES + 1) or None
            image_type = upload.content_type

    if image is not None:
        check_image(image, image_type)

    return ReceiptRequest(
        body=check_body(body),
        body_image=image,
        order_details=check_order_details(order_details),
    )


@app.get("/health")
async def health() -> JSONResponse:
    return JSONResponse(content={"ok": True}, status_code=200)


@app.get("/status")
async def status(printer: AsyncPrinter = Depends(get_printer)) -> JSONResponse:
    stat = await printer.status()
    return JSONResponse(content={"ok": bool(stat.get("online")), **stat}, status_code=200)


@app.post("/print")
async def print_receipt(request: Request, composer: ReceiptComposer = Depends(get_composer)) -> JSONResponse:
    """Print a receipt.

    Header logo and branded footer are added automatically; only ``body`` is
    required. ``bodyImage`` prints between body and footer, ``orderDetails``
    below the branded footer.
    """
    try:
        receipt = await read_print_request(request)
    except ValidationError as e:
        logger.info("Rejected print request: %s", e)
        return json_error(str(e), 400)

    logger.info("Print request: %s", receipt.body[:50])
    try:
        await composer.compose(receipt)
    except ComposeError as e:
        logger.error("Print error: %s", e)
        return json_error(str(e) or "Print failed", 500)
    except Exception as e:
        logger.exception("Unexpected print error: %s", e)
        return json_error("Print failed", 500)

    return JSONResponse(content={"ok": True}, status_code=200)


def setup_logging() -> None:
    """Rotating file logging plus console."""
    log_path = Path(config.LOG_FILE)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
    )
    logging.basicConfig(
        handlers=[handler, logging.StreamHandler()],
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    import uvicorn

    setup_logging()
    logger.info("Receipt printer server running on http://%s:%d", config.SERVER_HOST, config.SERVER_PORT)
    logger.info("Header logo: %s (auto-loaded)", config.ASSET_DIR / config.HEADER_IMAGE)
    logger.info("Footer image: %s (auto-loaded)", config.ASSET_DIR / config.FOOTER_IMAGE)
    uvicorn.run(app, host=config.SERVER_HOST, port=config.SERVER_PORT)


if __name__ == "__main__":
    main()
