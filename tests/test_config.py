"""Tests for environment-driven settings."""

from __future__ import annotations

from pathlib import Path

from carlisting.config import DEFAULT_BASE_URL, Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("SOURCE_BASE_URL", "RETRY_COUNT", "RETRY_DELAY", "BATCH_SIZE",
                     "DOWNLOAD_IMAGES", "DEBUG_MODE", "LOG_LEVEL", "LOG_FILE"):
            monkeypatch.delenv(name, raising=False)
        s = Settings()
        assert s.base_url == DEFAULT_BASE_URL
        assert s.retry_count == 2
        assert s.retry_delay == 1.0
        assert s.batch_size == 5
        assert s.download_images is True
        assert s.listing_status_term == "Begagnad"
        assert s.log_file is None
        assert s.effective_log_level == "INFO"

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CARLISTING_WORKSPACE", str(tmp_path))
        monkeypatch.setenv("SOURCE_BASE_URL", "https://cars.example")
        monkeypatch.setenv("SOURCE_STORE_PATH", "/dealer")
        monkeypatch.setenv("RETRY_COUNT", "4")
        monkeypatch.setenv("DOWNLOAD_IMAGES", "no")
        monkeypatch.setenv("DEBUG_MODE", "1")
        monkeypatch.setenv("LOG_FILE", str(tmp_path / "sync.log"))
        s = Settings()
        assert s.db_path == tmp_path / "listings.db"
        assert s.media_dir == tmp_path / "media"
        assert s.store_url == "https://cars.example/dealer"
        assert s.retry_count == 4
        assert s.download_images is False
        assert s.effective_log_level == "DEBUG"
        assert s.log_file == Path(tmp_path / "sync.log")

    def test_schema_is_bundled(self):
        assert Settings().schema_path.is_file()

    def test_ensure_workspace(self, tmp_path):
        s = Settings(workspace_dir=tmp_path / "ws")
        s.ensure_workspace()
        assert s.media_dir.is_dir()
