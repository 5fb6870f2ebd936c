"""Async driver for networked ESC/POS thermal printers (raw TCP, usually port 9100)."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

import config
from directives import (
    Cut,
    DirectiveSequence,
    Feed,
    PrintDirective,
    Raster,
    RawBytes,
    SetAlign,
    SetStyle,
    Text,
)
from errors import ConnectError, ConnectTimeout, PrinterError, TransmitError

logger = logging.getLogger(__name__)


class PrinterTransport(Protocol):
    async def send(self, directives: Sequence[PrintDirective]) -> None:
        """Print directives in order; raise PrinterError on failure."""
        ...


class MockPrinter:
    """Stub printer for running without hardware; records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    def _record(self, name: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((name, args, kwargs))

    def open(self) -> None:
        self._record("open")

    def close(self) -> None:
        self._record("close")

    def text(self, data: str) -> None:
        self._record("text", data)

    def textln(self, data: str = "") -> None:
        self._record("textln", data)

    def ln(self, count: int = 1) -> None:
        self._record("ln", count)

    def set(self, **kwargs: Any) -> None:
        self._record("set", **kwargs)

    def image(self, img_source: Any, **kwargs: Any) -> None:
        self._record("image", img_source, **kwargs)

    def qr(self, content: str, **kwargs: Any) -> None:
        self._record("qr", content, **kwargs)

    def barcode(self, code: str, bc: str, **kwargs: Any) -> None:
        self._record("barcode", code, bc, **kwargs)

    def cut(self, mode: str = "FULL", **kwargs: Any) -> None:
        self._record("cut", mode, **kwargs)

    def _raw(self, data: bytes) -> None:
        self._record("_raw", data)

    def is_online(self) -> bool:
        """Return online status (python-escpos compatible)."""
        return True

    def paper_status(self) -> int:
        """Return paper status (python-escpos compatible)."""
        return 2


@dataclass
class PrintJob:
    directives: DirectiveSequence
    done: "asyncio.Future[None]"


def _is_timeout(exc: BaseException) -> bool:
    """True if exc or anything it was raised from is a socket timeout."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, TimeoutError):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


class AsyncPrinter:
    """Async wrapper for a network ESC/POS printer using python-escpos.

    Jobs go through a single queue so receipts from concurrent requests are
    never interleaved on the wire. Each job opens its own connection and
    closes it before the next job starts.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        timeout: float | None = None,
        mock: bool | None = None,
    ) -> None:
        self.host = host or config.PRINTER_HOST
        self.port = int(port or config.PRINTER_PORT)
        self.timeout = float(timeout or config.PRINTER_TIMEOUT)
        self._mock = config.MOCK_PRINTER if mock is None else mock
        self.mock_printer = MockPrinter() if self._mock else None

        self.queue: asyncio.Queue[PrintJob] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    async def send(self, directives: Sequence[PrintDirective]) -> None:
        """Queue directives as one job and wait until it is printed."""
        loop = asyncio.get_running_loop()
        job = PrintJob(directives=tuple(directives), done=loop.create_future())
        self._ensure_worker()
        await self.queue.put(job)
        logger.debug("Queued print job (%d directives, %d waiting)", len(job.directives), self.queue.qsize())
        await job.done

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._process_queue())

    async def close(self) -> None:
        """Stop the queue worker and fail every job that has not finished."""
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        while not self.queue.empty():
            job = self.queue.get_nowait()
            if not job.done.done():
                job.done.set_exception(TransmitError("Printer closed"))
            self.queue.task_done()

    async def _process_queue(self) -> None:
        """Process print queue continuously."""
        while True:
            job: PrintJob = await self.queue.get()
            try:
                if job.done.cancelled():
                    logger.info("Skipping print job cancelled by caller")
                    continue
                await self._transmit(job.directives)
            except asyncio.CancelledError:
                if not job.done.done():
                    job.done.set_exception(TransmitError("Printer closed"))
                raise
            except PrinterError as e:
                logger.error("Print job failed: %s", e)
                if not job.done.done():
                    job.done.set_exception(e)
            except Exception as e:
                logger.error("Unexpected print job failure: %s", e, exc_info=True)
                if not job.done.done():
                    job.done.set_exception(TransmitError(f"Print failed: {e}"))
            else:
                if not job.done.done():
                    job.done.set_result(None)
            finally:
                self.queue.task_done()

    async def _transmit(self, directives: DirectiveSequence) -> None:
        await asyncio.get_running_loop().run_in_executor(None, self._do_send, directives)
        if self._mock:
            logger.info("Printed (mock): %d directives", len(directives))
        else:
            logger.info("Printed: %d directives to %s", len(directives), self.address)

    def _connect(self) -> Any:
        """Open one connection to the printer, mapping socket failures."""
        if self.mock_printer is not None:
            self.mock_printer.open()
            return self.mock_printer

        # Import lazily so dev/tests can run without escpos installed
        from escpos.exceptions import DeviceNotFoundError  # type: ignore
        from escpos.printer import Network  # type: ignore

        try:
            device = Network(self.host, port=self.port, timeout=self.timeout)
            device.open()
        except (DeviceNotFoundError, OSError) as e:
            if _is_timeout(e):
                raise ConnectTimeout(
                    f"Printer connection timeout after {self.timeout:g}s ({self.address})"
                ) from e
            raise ConnectError(f"Failed to connect to printer {self.address}: {e}") from e
        return device

    def _do_send(self, directives: DirectiveSequence) -> None:
        """Blocking print of a whole job (runs in executor)."""
        device = self._connect()
        try:
            for directive in directives:
                self._apply(device, directive)
        except Exception as e:
            # Some directives may already be on paper; never resume mid-stream
            raise TransmitError(f"Print failed: {e}") from e
        finally:
            self._close(device)

    def _apply(self, device: Any, directive: PrintDirective) -> None:
        """Translate one directive into python-escpos calls."""
        if isinstance(directive, RawBytes):
            device._raw(directive.data)
        elif isinstance(directive, SetAlign):
            device.set(align=directive.align)
        elif isinstance(directive, SetStyle):
            device.set(bold=directive.style == "bold")
        elif isinstance(directive, Text):
            device.textln(directive.text)
        elif isinstance(directive, Raster):
            device.image(
                directive.asset.path,
                impl="bitImageRaster",
                high_density_vertical=True,
                high_density_horizontal=True,
            )
        elif isinstance(directive, Feed):
            device.ln(directive.lines)
        elif isinstance(directive, Cut):
            self._cut(device)
        else:
            raise ValueError(f"Unknown directive type: {type(directive)}")

    @staticmethod
    def _cut(device: Any) -> None:
        """Full cut with python-escpos version compatibility."""
        try:
            device.cut(mode="FULL")
            return
        except TypeError:
            pass
        device.cut()

    @staticmethod
    def _close(device: Any) -> None:
        try:
            device.close()
        except Exception as e:
            logger.warning("Failed to close printer connection: %s", e)

    def _query_status_sync(self) -> dict[str, object]:
        """Query printer status synchronously (runs in executor)."""
        device = self._connect()
        try:
            online = bool(device.is_online())
            paper: int | None
            try:
                paper = int(device.paper_status())
            except Exception:
                paper = None
        finally:
            self._close(device)
        return {"online": online, "paper": paper}

    async def status(self) -> dict[str, object]:
        """Return printer online + paper status."""
        try:
            return await asyncio.get_running_loop().run_in_executor(
                None, self._query_status_sync
            )
        except Exception as e:
            logger.error("Status check failed: %s", e, exc_info=True)
            return {"online": False, "paper": None}
