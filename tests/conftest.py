"""Shared pytest fixtures for the novelsync test suite."""

import io

import pytest
from PIL import Image
from sqlmodel import Session

from novelsync.config import default_config
from novelsync.database import create_db_engine, init_db
from novelsync.gateway import SourceGateway
from novelsync.plugins import ContentSource, PluginRegistry
from novelsync.repository import Repository
from novelsync.storage import LocalFileCache, MemoryKeyValueCache
from novelsync.updates import LibrarySync


def make_png(color: str = "red") -> bytes:
    """Return the bytes of a tiny PNG image."""
    img = Image.new("RGB", (10, 10), color=color)
    out = io.BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()


def make_novel(chapters, **fields) -> dict:
    """Build a parse_novel payload; chapters given as (path, name) pairs or dicts."""
    payload = {
        "path": "/novel/1",
        "name": "Test Novel",
        "chapters": [
            c if isinstance(c, dict) else {"path": c[0], "name": c[1]} for c in chapters
        ],
    }
    payload.update(fields)
    return payload


class FakeSource(ContentSource):
    """Content source serving canned data and recording every call."""

    id = "fake"
    name = "Fake Source"
    site = "https://fake.example"

    def __init__(self, novel=None, texts=None, error=None):
        self.novel = novel or make_novel([])
        self.texts = texts or {}
        self.error = error
        self.calls = []

    async def parse_novel(self, novel_path):
        self.calls.append(("parse_novel", novel_path))
        if self.error:
            raise self.error
        return self.novel

    async def parse_chapter(self, chapter_path):
        self.calls.append(("parse_chapter", chapter_path))
        if chapter_path not in self.texts:
            raise RuntimeError(f"404 {chapter_path}")
        return self.texts[chapter_path]


class ImageSource(FakeSource):
    """Fake source that can also serve cover images."""

    id = "images"

    def __init__(self, image=None, **kwargs):
        super().__init__(**kwargs)
        self.image = image

    async def fetch_image(self, url):
        self.calls.append(("fetch_image", url))
        return self.image


class PagedSource(FakeSource):
    """Fake source with paginated chapter lists."""

    id = "paged"

    def __init__(self, pages=None, **kwargs):
        super().__init__(**kwargs)
        self.pages = pages or {}

    async def parse_page(self, novel_path, page):
        self.calls.append(("parse_page", novel_path, page))
        return self.pages[page]


@pytest.fixture
def engine(tmp_path):
    """SQLite engine on a temp file with the schema created."""
    db_engine = create_db_engine(tmp_path / "library.db")
    init_db(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def config(tmp_path):
    return default_config(tmp_path)


@pytest.fixture
def add_novel(engine):
    """Insert a library novel and return its id."""

    def _add(plugin_id="fake", path="/novel/1", name="Test Novel", **fields):
        with Session(engine) as session:
            repo = Repository(session)
            novel = repo.insert_novel(plugin_id, path, name, in_library=True, **fields)
            repo.commit()
            return novel.id

    return _add


@pytest.fixture
def make_sync(engine, config):
    """Build a LibrarySync around the given sources with in-memory caches."""

    def _make(*sources, kv_cache=None, downloader=None):
        gateway = SourceGateway(PluginRegistry(list(sources)))
        return LibrarySync(
            gateway,
            engine=engine,
            file_cache=LocalFileCache(),
            kv_cache=kv_cache or MemoryKeyValueCache(),
            downloader=downloader,
            config=config,
        )

    return _make
