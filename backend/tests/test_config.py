"""
Photocat Backend — Settings Tests
"""

import pytest
from pydantic import ValidationError

from photocat.config import Settings


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestSettings:
    def test_vercel_backend_requires_token(self):
        settings = make_settings(blob_backend="vercel", blob_read_write_token="")

        with pytest.raises(ValueError, match="BLOB_READ_WRITE_TOKEN"):
            settings.validate_required_for_production()

    def test_local_backend_needs_no_token(self):
        make_settings(blob_backend="local", blob_read_write_token="").validate_required_for_production()

    def test_urls_and_prefix_are_normalised(self):
        settings = make_settings(
            public_base_url="http://localhost:8000/",
            blob_api_url="https://blob.vercel-storage.com/",
            blob_key_prefix="/photos/",
        )

        assert settings.public_base_url == "http://localhost:8000"
        assert settings.blob_api_url == "https://blob.vercel-storage.com"
        assert settings.blob_key_prefix == "photos"

    def test_log_level_is_validated(self):
        assert make_settings(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            make_settings(log_level="chatty")

    def test_unknown_output_format_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(image_output_format="gif")

    def test_cors_origins_list(self):
        settings = make_settings(cors_origins="http://a.test, http://b.test,")

        assert settings.cors_origins_list == ["http://a.test", "http://b.test"]

    def test_is_sqlite(self):
        assert make_settings(database_url="sqlite+aiosqlite:///./x.db").is_sqlite
        assert not make_settings(database_url="postgresql+asyncpg://u:p@h/db").is_sqlite
