"""
SchoolBooks - Tests for settings and workspace checks
"""
import pytest

import config


@pytest.fixture
def cfg_file(tmp_path, monkeypatch):
    path = tmp_path / "schoolbooks.json"
    monkeypatch.setenv("SCHOOLBOOKS_CONFIG", str(path))
    monkeypatch.delenv("SCHOOLBOOKS_DB", raising=False)
    monkeypatch.delenv("SCHOOLBOOKS_WORKSPACE", raising=False)
    return path


class TestConfig:

    def test_defaults_without_file(self, cfg_file):
        assert config.load_config()["school_name"] == "My School"

    def test_save_and_load(self, cfg_file):
        config.save_config({"db_path": "/data/books.db", "school_name": "Hill School"})
        cfg = config.load_config()
        assert cfg["school_name"] == "Hill School"
        assert cfg["last_opened"] == ""

    def test_unreadable_file_falls_back(self, cfg_file):
        cfg_file.write_text("{not json")
        assert config.load_config()["db_path"] == ""

    def test_db_path_priority(self, cfg_file, monkeypatch):
        assert config.resolve_db_path() == "books.db"
        config.save_config({"db_path": "from_config.db"})
        assert config.resolve_db_path() == "from_config.db"
        monkeypatch.setenv("SCHOOLBOOKS_DB", "from_env.db")
        assert config.resolve_db_path() == "from_env.db"
        assert config.resolve_db_path("explicit.db") == "explicit.db"


class TestWorkspace:

    def test_no_boundary(self, cfg_file):
        assert config.check_workspace("/anywhere/books.db")

    def test_boundary(self, cfg_file, tmp_path, monkeypatch):
        monkeypatch.setenv("SCHOOLBOOKS_WORKSPACE", str(tmp_path))
        assert config.check_workspace(str(tmp_path / "books.db"))
        assert config.check_workspace(str(tmp_path))
        assert not config.check_workspace(str(tmp_path.parent / "other.db"))
