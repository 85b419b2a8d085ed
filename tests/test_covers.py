"""Tests for cover caching."""

import base64
import io

import pytest
from PIL import Image

from conftest import FakeSource, ImageSource, make_png
from novelsync.covers import CoverStamp, bust_cache, cache_cover
from novelsync.gateway import SourceGateway
from novelsync.plugins import PluginRegistry
from novelsync.storage import LocalFileCache


def test_cover_stamps_strictly_increase(monkeypatch):
    stamp = CoverStamp()
    monkeypatch.setattr("novelsync.covers.time.time", lambda: 1000.0)

    values = [stamp.next() for _ in range(3)]

    assert values == [1000000, 1000001, 1000002]


def test_bust_cache_appends_stamp():
    assert bust_cache("file:///x/cover.png", 42) == "file:///x/cover.png?42"
    assert bust_cache("a") != bust_cache("a")


@pytest.mark.asyncio
async def test_cache_cover_accepts_base64_and_converts_to_png(tmp_path):
    img = Image.new("L", (4, 4), color=128)
    buf = io.BytesIO()
    img.save(buf, format="JPEG")
    source = ImageSource(image=base64.b64encode(buf.getvalue()).decode())
    gateway = SourceGateway(PluginRegistry([source]))

    cover = await cache_cover(gateway, LocalFileCache(), tmp_path, "images", 3, "https://img/c.jpg")

    cover_file = tmp_path / "images" / "3" / "cover.png"
    assert cover.startswith(f"file://{cover_file}?")
    with Image.open(cover_file) as im:
        assert im.format == "PNG"


@pytest.mark.asyncio
async def test_cache_cover_without_image_support(tmp_path):
    gateway = SourceGateway(PluginRegistry([FakeSource()]))

    assert await cache_cover(gateway, LocalFileCache(), tmp_path, "fake", 1, "https://img") is None
    assert not (tmp_path / "fake").exists()


@pytest.mark.asyncio
async def test_cache_cover_overwrites_previous_file(tmp_path):
    source = ImageSource(image=make_png("red"))
    gateway = SourceGateway(PluginRegistry([source]))
    await cache_cover(gateway, LocalFileCache(), tmp_path, "images", 1, "https://img")

    source.image = make_png("blue")
    await cache_cover(gateway, LocalFileCache(), tmp_path, "images", 1, "https://img")

    with Image.open(tmp_path / "images" / "1" / "cover.png") as im:
        assert im.convert("RGB").getpixel((0, 0)) == (0, 0, 255)
