"""Tests for receipt composition: directive layout, assets and temp cleanup."""

import asyncio
import io
import time
from pathlib import Path
from unittest.mock import patch

import pytest
from PIL import Image

from directives import (
    DENSITY_DARK,
    DENSITY_DEFAULT,
    INIT,
    AssetRole,
    Cut,
    Feed,
    ImageAsset,
    Raster,
    RawBytes,
    SetAlign,
    SetStyle,
    Text,
)
from errors import AssetMissing, ConnectTimeout, DecodeError
from printer import AsyncPrinter
from receipt import (
    BRANDED_FOOTER,
    ReceiptAssets,
    ReceiptComposer,
    ReceiptRequest,
    ReceiptSettings,
    TempRasters,
    build_gift_receipt,
    build_receipt,
)

HEADER = ImageAsset(AssetRole.HEADER, "/tmp/header.png")
DIVIDER = ImageAsset(AssetRole.DIVIDER, "/tmp/divider.png")
BODY = ImageAsset(AssetRole.BODY, "/tmp/body.png")
FOOTER = ImageAsset(AssetRole.FOOTER, "/tmp/footer.png")


def _png_bytes(size=(800, 200)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color="white").save(buf, format="PNG")
    return buf.getvalue()


def _content(directives):
    """Keep only directives that put something on paper."""
    return [d for d in directives if isinstance(d, (Raster, Text, Cut))]


class FakeConverter:
    """Records conversions instead of decoding images."""

    def __init__(self) -> None:
        self.calls = []

    def convert(self, data: bytes, width: int) -> bytes:
        self.calls.append((data, width))
        return b"raster"


class FakeTransport:
    """Records directive sequences; optionally fails."""

    def __init__(self, error: Exception | None = None) -> None:
        self.sent = []
        self.error = error
        self.files_present_during_send: list[bool] = []

    async def send(self, directives) -> None:
        self.sent.append(tuple(directives))
        self.files_present_during_send = [
            Path(d.asset.path).exists() for d in directives if isinstance(d, Raster)
        ]
        if self.error is not None:
            raise self.error


@pytest.fixture
def asset_dir(tmp_path):
    path = tmp_path / "assets"
    path.mkdir()
    return path


@pytest.fixture
def temp_dir(tmp_path):
    path = tmp_path / "tmp"
    path.mkdir()
    return path


@pytest.fixture
def settings(asset_dir, temp_dir):
    return ReceiptSettings(asset_dir=asset_dir, temp_dir=temp_dir)


def _write_asset(asset_dir: Path, name: str) -> None:
    (asset_dir / name).write_bytes(_png_bytes())


class TestBuildReceipt:
    """Tests for the pure directive builder."""

    def test_hello_divider_world_order(self):
        request = ReceiptRequest(body="Hello{{divider}}World")
        directives = build_receipt(request, ReceiptAssets(header=HEADER, divider=DIVIDER))

        assert _content(directives) == [
            Raster(HEADER),
            Text("Hello"),
            Raster(DIVIDER),
            Text("World"),
            Text(BRANDED_FOOTER),
            Cut(),
        ]

    def test_full_layout(self):
        request = ReceiptRequest(body="Hi", order_details="  Order #42  ")
        assets = ReceiptAssets(header=HEADER, divider=DIVIDER, body=BODY, footer=FOOTER)

        assert build_receipt(request, assets) == (
            RawBytes(INIT),
            Feed(3),
            SetAlign("center"),
            Raster(HEADER),
            Feed(3),
            SetAlign("left"),
            Text("Hi"),
            Feed(3),
            SetAlign("center"),
            Raster(BODY),
            Feed(3),
            SetAlign("center"),
            RawBytes(DENSITY_DARK),
            SetStyle("bold"),
            Text(BRANDED_FOOTER),
            SetStyle("normal"),
            RawBytes(DENSITY_DEFAULT),
            Feed(3),
            Feed(3),
            SetAlign("left"),
            Text("Order #42"),
            Feed(3),
            SetAlign("center"),
            Raster(FOOTER),
            Feed(3),
            Cut(),
        )

    def test_no_marker_single_text_equal_to_body(self):
        directives = build_receipt(ReceiptRequest(body="Plain body"), ReceiptAssets(header=HEADER, divider=DIVIDER))
        texts = [d for d in directives if isinstance(d, Text)]

        assert texts == [Text("Plain body"), Text(BRANDED_FOOTER)]
        assert Raster(DIVIDER) not in directives

    @pytest.mark.parametrize("k", [1, 3])
    def test_k_markers_give_k_dividers_between_segments(self, k):
        body = "{{divider}}".join(f"s{i}" for i in range(k + 1))
        content = _content(build_receipt(ReceiptRequest(body=body), ReceiptAssets(header=HEADER, divider=DIVIDER)))

        body_part = content[1 : content.index(Text(BRANDED_FOOTER))]
        assert body_part.count(Raster(DIVIDER)) == k
        assert body_part[0] != Raster(DIVIDER)
        assert body_part[-1] != Raster(DIVIDER)

    def test_blank_segment_not_printed_but_counts_for_dividers(self):
        request = ReceiptRequest(body="A{{divider}}  \n {{divider}}B")
        content = _content(build_receipt(request, ReceiptAssets(header=HEADER, divider=DIVIDER)))

        assert content[:6] == [
            Raster(HEADER),
            Text("A"),
            Raster(DIVIDER),
            Raster(DIVIDER),
            Text("B"),
            Text(BRANDED_FOOTER),
        ]

    def test_missing_divider_drops_gap_directives(self):
        request = ReceiptRequest(body="Hello{{divider}}World")
        content = _content(build_receipt(request, ReceiptAssets(header=HEADER)))

        assert content == [Raster(HEADER), Text("Hello"), Text("World"), Text(BRANDED_FOOTER), Cut()]

    def test_blank_order_details_omitted(self):
        directives = build_receipt(ReceiptRequest(body="x", order_details="   "), ReceiptAssets(header=HEADER))
        assert [d for d in directives if isinstance(d, Text)] == [Text("x"), Text(BRANDED_FOOTER)]

    def test_branded_footer_emitted_once(self):
        directives = build_receipt(ReceiptRequest(body="x"), ReceiptAssets(header=HEADER))
        assert directives.count(Text(BRANDED_FOOTER)) == 1

    def test_result_is_immutable_tuple(self):
        directives = build_receipt(ReceiptRequest(body="x"), ReceiptAssets(header=HEADER))
        assert isinstance(directives, tuple)


class TestGiftReceipt:
    def test_gift_layout(self):
        bow = ImageAsset(AssetRole.GIFT, "/tmp/bow.png")
        directives = build_gift_receipt(bow, "Miles", "Mama")
        assert _content(directives) == [Raster(bow), Text("From: Miles"), Text("To: Mama"), Cut()]
        assert directives[directives.index(Raster(bow)) + 1] == Feed(4)


class TestReceiptSettings:
    def test_widths_per_role(self, settings):
        assert settings.width_for(AssetRole.HEADER) == 576
        assert settings.width_for(AssetRole.FOOTER) == 461
        assert settings.width_for(AssetRole.DIVIDER) == 461
        assert settings.width_for(AssetRole.BODY) == 461

    def test_body_role_has_no_asset_file(self, settings):
        with pytest.raises(ValueError):
            settings.asset_path(AssetRole.BODY)


class TestTempRasters:
    def test_files_removed_on_exit(self, temp_dir):
        with TempRasters(temp_dir) as temp:
            asset = temp.write(AssetRole.HEADER, b"data")
            assert Path(asset.path).read_bytes() == b"data"
            assert Path(asset.path).name.startswith("receipt-header-")
        assert list(temp_dir.iterdir()) == []

    def test_unique_names(self, temp_dir):
        with TempRasters(temp_dir) as temp:
            a = temp.write(AssetRole.BODY, b"1")
            b = temp.write(AssetRole.BODY, b"2")
            assert a.path != b.path

    def test_cleanup_tolerates_already_deleted(self, temp_dir):
        with TempRasters(temp_dir) as temp:
            asset = temp.write(AssetRole.FOOTER, b"x")
            Path(asset.path).unlink()


@pytest.mark.asyncio
class TestReceiptComposer:
    """Tests for ReceiptComposer.compose with fake converter and transport."""

    async def test_missing_header_raises_asset_missing(self, settings, asset_dir):
        _write_asset(asset_dir, "divider-long.png")
        transport = FakeTransport()
        composer = ReceiptComposer(transport, FakeConverter(), settings)

        with pytest.raises(AssetMissing) as exc:
            await composer.compose(ReceiptRequest(body="", body_image=b"img"))

        assert exc.value.role == "header"
        assert transport.sent == []

    async def test_header_only_prints_without_optional_assets(self, settings, asset_dir, temp_dir):
        _write_asset(asset_dir, "logo.png")
        transport = FakeTransport()
        converter = FakeConverter()
        composer = ReceiptComposer(transport, converter, settings)

        await composer.compose(ReceiptRequest(body="Hello{{divider}}World"))

        assert len(transport.sent) == 1
        rasters = [d.asset.role for d in transport.sent[0] if isinstance(d, Raster)]
        assert rasters == [AssetRole.HEADER]
        assert [width for _, width in converter.calls] == [576]
        assert list(temp_dir.iterdir()) == []

    async def test_all_assets_resolved_with_role_widths(self, settings, asset_dir):
        for name in ("logo.png", "divider-long.png", "footer-image-1.png"):
            _write_asset(asset_dir, name)
        transport = FakeTransport()
        converter = FakeConverter()
        composer = ReceiptComposer(transport, converter, settings)

        await composer.compose(ReceiptRequest(body="A{{divider}}B", body_image=b"upload"))

        rasters = [d.asset.role for d in transport.sent[0] if isinstance(d, Raster)]
        assert rasters == [AssetRole.HEADER, AssetRole.DIVIDER, AssetRole.BODY, AssetRole.FOOTER]
        assert sorted(width for _, width in converter.calls) == [461, 461, 461, 576]
        assert (b"upload", 461) in converter.calls
        assert all(transport.files_present_during_send)

    async def test_connect_timeout_propagates_and_cleans_up(self, settings, asset_dir, temp_dir):
        _write_asset(asset_dir, "logo.png")
        _write_asset(asset_dir, "footer-image-1.png")
        transport = FakeTransport(error=ConnectTimeout("Printer connection timeout"))
        composer = ReceiptComposer(transport, FakeConverter(), settings)

        with pytest.raises(ConnectTimeout):
            await composer.compose(ReceiptRequest(body="x", body_image=b"img"))

        assert transport.files_present_during_send == [True, True, True]
        assert list(temp_dir.iterdir()) == []

    async def test_cancelled_caller_keeps_rasters_until_printer_finishes(self, settings, asset_dir, temp_dir):
        _write_asset(asset_dir, "logo.png")
        printer = AsyncPrinter(mock=True)
        seen = []

        def slow_send(directives):
            time.sleep(0.3)
            seen.append([Path(d.asset.path).exists() for d in directives if isinstance(d, Raster)])

        composer = ReceiptComposer(printer, FakeConverter(), settings)
        with patch.object(printer, "_do_send", side_effect=slow_send):
            task = asyncio.ensure_future(composer.compose(ReceiptRequest(body="x")))
            await asyncio.sleep(0.1)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
        await printer.close()

        assert seen == [[True]]
        assert list(temp_dir.iterdir()) == []

    async def test_decode_error_cleans_up_earlier_rasters(self, settings, asset_dir, temp_dir):
        _write_asset(asset_dir, "logo.png")
        transport = FakeTransport()
        composer = ReceiptComposer(transport, settings=settings)

        with pytest.raises(DecodeError):
            await composer.compose(ReceiptRequest(body="x", body_image=b"not an image"))

        assert transport.sent == []
        assert list(temp_dir.iterdir()) == []

    async def test_real_converter_end_to_end(self, settings, asset_dir):
        _write_asset(asset_dir, "logo.png")
        transport = FakeTransport()
        composer = ReceiptComposer(transport, settings=settings)

        await composer.compose(ReceiptRequest(body="Hello", body_image=_png_bytes((1000, 100))))

        assert _content(transport.sent[0])[1] == Text("Hello")

    async def test_compose_gift_requires_bow(self, settings):
        composer = ReceiptComposer(FakeTransport(), FakeConverter(), settings)
        with pytest.raises(AssetMissing) as exc:
            await composer.compose_gift("Papa", "Mama")
        assert exc.value.role == "gift"

    async def test_compose_gift_sends_from_to(self, settings, asset_dir):
        _write_asset(asset_dir, "bow.png")
        transport = FakeTransport()
        composer = ReceiptComposer(transport, FakeConverter(), settings)

        await composer.compose_gift("Papa", "Mama")

        texts = [d.text for d in transport.sent[0] if isinstance(d, Text)]
        assert texts == ["From: Papa", "To: Mama"]
