"""
Unit Tests for Settings
Tests for: upload directory resolution, list settings parsing
"""
from pathlib import Path

from app.core.config import Settings, parse_csv_list

BACKEND_DIR = Path(__file__).resolve().parents[3]


class TestUploadDir:
    """Test UPLOAD_PATH resolution"""

    def test_relative_path_resolves_against_backend(self):
        settings = Settings(JWT_SECRET_KEY="secret", UPLOAD_PATH="uploads")
        assert settings.UPLOAD_DIR == BACKEND_DIR / "uploads"

    def test_absolute_path_kept(self, tmp_path):
        settings = Settings(JWT_SECRET_KEY="secret", UPLOAD_PATH=str(tmp_path))
        assert settings.UPLOAD_DIR == tmp_path


class TestListSettings:
    """Test comma-separated and JSON list parsing"""

    def test_comma_separated(self):
        assert parse_csv_list("a, b,,c") == ["a", "b", "c"]

    def test_json_array(self):
        assert parse_csv_list('["x", "y"]') == ["x", "y"]

    def test_allowed_content_types_from_string(self):
        settings = Settings(JWT_SECRET_KEY="secret", ALLOWED_CONTENT_TYPES_STR="application/pdf,image/png")
        assert settings.ALLOWED_CONTENT_TYPES == ["application/pdf", "image/png"]
