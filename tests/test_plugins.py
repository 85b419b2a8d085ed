"""Tests for the plugin contract, registry and error hierarchy."""

import pytest

from conftest import FakeSource, ImageSource, PagedSource
from novelsync.exceptions import (
    FetchFailure,
    FileSystemFailure,
    NovelSyncError,
    PersistenceFailure,
    UnknownSource,
    UnsupportedOperation,
)
from novelsync.plugins import LOCAL_PLUGIN_ID, PluginRegistry, SourceNovel


def test_supports_reflects_overridden_capabilities():
    assert not FakeSource().supports("fetch_image")
    assert not FakeSource().supports("parse_page")
    assert ImageSource().supports("fetch_image")
    assert PagedSource().supports("parse_page")
    with pytest.raises(ValueError):
        FakeSource().supports("teleport")


def test_registry_lookup_and_replacement():
    registry = PluginRegistry([FakeSource()])
    replacement = FakeSource()
    registry.register(replacement)

    assert "fake" in registry
    assert registry.get("fake") is replacement
    assert registry.get("other") is None
    assert registry.ids() == ["fake"]
    assert len(registry) == 1

    registry.unregister("fake")
    assert "fake" not in registry


def test_registry_rejects_local_id():
    class Local(FakeSource):
        id = LOCAL_PLUGIN_ID

    with pytest.raises(ValueError):
        PluginRegistry().register(Local())


def test_snapshot_defaults():
    novel = SourceNovel.model_validate({"name": "N", "chapters": [{"path": "/c", "name": "C"}]})
    assert novel.total_pages == 0
    assert novel.latest_chapter is None
    assert novel.chapters[0].page is None


def test_errors_share_base_and_details():
    cause = OSError("denied")
    errors = [
        UnknownSource("x"),
        UnsupportedOperation("x", "parse_page"),
        FetchFailure("x", "fetch_novel", cause),
        PersistenceFailure("chapter sync", cause),
        FileSystemFailure("/tmp/f", "mkdir", cause),
    ]
    for error in errors:
        assert isinstance(error, NovelSyncError)
    assert str(errors[0]) == "Unknown plugin: x (source_id=x)"
    assert errors[2].details == {"source_id": "x", "operation": "fetch_novel"}
