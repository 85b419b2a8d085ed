"""Tests for config loading."""

import pytest

from novelsync import config as config_module
from novelsync.config import default_config, get_config, load_config, reset_config_cache


def test_load_config_reads_sections(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text(
        "[storage]\n"
        "database = data/lib.db\n"
        "downloads_dir = /srv/novels\n"
        "[sync]\n"
        "download_new_chapters = yes\n"
        "[logging]\n"
        "level = debug\n",
        encoding="utf-8",
    )

    cfg = load_config(path)

    assert cfg.database_path == tmp_path / "data" / "lib.db"
    assert cfg.database_url == f"sqlite:///{tmp_path / 'data' / 'lib.db'}"
    assert str(cfg.downloads_dir) == "/srv/novels"
    assert cfg.sync.download_new_chapters is True
    assert cfg.sync.refresh_novel_metadata is False
    assert cfg.logging.level == "DEBUG"
    assert cfg.logging.file == tmp_path / "novelsync.log"


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.ini")


def test_default_config_roots_paths(tmp_path):
    cfg = default_config(tmp_path)
    assert cfg.database_path == tmp_path / "library.db"
    assert cfg.downloads_dir == tmp_path / "downloads"


def test_get_config_falls_back_to_defaults(tmp_path, monkeypatch):
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "config.ini")
    monkeypatch.setattr(config_module, "DATA_DIR", tmp_path)
    reset_config_cache()
    try:
        cfg = get_config()
        assert cfg.database_path == tmp_path / "library.db"
        assert get_config() is cfg
    finally:
        reset_config_cache()
