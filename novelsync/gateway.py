"""Source gateway: the only place that talks to content source plugins.

Every operation resolves the plugin first, so an unknown source id fails
with UnknownSource before any I/O. Plugin errors are re-raised as
FetchFailure naming the source and operation; nothing is retried.
"""

from __future__ import annotations

from typing import Union

from .exceptions import FetchFailure, UnknownSource, UnsupportedOperation
from .logging_config import get_logger
from .path_utils import is_url_absolute
from .plugins import ContentSource, PluginRegistry, SourceChapter, SourceNovel, SourcePage

logger = get_logger(__name__)


class SourceGateway:
    """Adapts registered plugins to typed, normalized fetch operations."""

    def __init__(self, registry: PluginRegistry):
        self.registry = registry

    def _plugin(self, plugin_id: str) -> ContentSource:
        plugin = self.registry.get(plugin_id)
        if plugin is None:
            raise UnknownSource(plugin_id)
        return plugin

    def _require(self, plugin: ContentSource, capability: str) -> None:
        if not plugin.supports(capability):
            raise UnsupportedOperation(plugin.id, capability)

    def supports(self, plugin_id: str, capability: str) -> bool:
        """Return True if the plugin provides the optional *capability*."""
        return self._plugin(plugin_id).supports(capability)

    async def fetch_novel(self, plugin_id: str, novel_path: str) -> SourceNovel:
        plugin = self._plugin(plugin_id)
        try:
            raw = await plugin.parse_novel(novel_path)
            novel = raw if isinstance(raw, SourceNovel) else SourceNovel.model_validate(raw)
        except Exception as exc:
            raise FetchFailure(plugin_id, "fetch_novel", exc) from exc
        if not novel.path:
            novel.path = novel_path
        return novel

    async def fetch_chapter_list(self, plugin_id: str, novel_path: str) -> list[SourceChapter]:
        novel = await self.fetch_novel(plugin_id, novel_path)
        return novel.chapters

    async def fetch_chapter_text(self, plugin_id: str, chapter_path: str) -> str:
        plugin = self._plugin(plugin_id)
        try:
            return await plugin.parse_chapter(chapter_path)
        except Exception as exc:
            raise FetchFailure(plugin_id, "fetch_chapter_text", exc) from exc

    async def fetch_image(self, plugin_id: str, url: str) -> Union[bytes, str, None]:
        """Fetch an image; None means the source has no image to offer."""
        plugin = self._plugin(plugin_id)
        self._require(plugin, "fetch_image")
        try:
            return await plugin.fetch_image(url)
        except Exception as exc:
            raise FetchFailure(plugin_id, "fetch_image", exc) from exc

    async def fetch_page(self, plugin_id: str, novel_path: str, page: str) -> SourcePage:
        plugin = self._plugin(plugin_id)
        self._require(plugin, "parse_page")
        try:
            raw = await plugin.parse_page(novel_path, page)
            return raw if isinstance(raw, SourcePage) else SourcePage.model_validate(raw)
        except Exception as exc:
            raise FetchFailure(plugin_id, "fetch_page", exc) from exc

    def resolve_url(self, plugin_id: str, path: str, is_novel: bool = False) -> str:
        """Best-effort absolute URL for *path*; falls back to *path* on any error."""
        if is_url_absolute(path):
            return path
        try:
            plugin = self._plugin(plugin_id)
            if plugin.supports("resolve_url"):
                return plugin.resolve_url(path, is_novel)
            return plugin.site + path
        except Exception as exc:
            logger.debug(f"resolve_url({plugin_id}, {path}) fell back to raw path: {exc}")
            return path
