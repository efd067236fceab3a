"""Tests for project settings (dddgen.config)."""

from __future__ import annotations

import json

import pytest

from dddgen.config import CONFIG_FILENAME, Settings
from dddgen.errors import ConfigurationError


pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DDD_ORM", "DDD_DATABASE", "DDD_MODULES_PATH"):
        monkeypatch.delenv(name, raising=False)


class TestSettingsLoad:
    def test_defaults_without_file(self, tmp_path):
        settings = Settings.load(tmp_path)
        assert settings.orm == "typeorm"
        assert settings.database == "postgres"
        assert settings.modules_path(tmp_path) == tmp_path / "src" / "modules"
        assert settings.features.tests is False

    def test_reads_config_file(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text(
            json.dumps({"orm": "prisma", "paths": {"modules": "apps/api/modules"}, "features": {"tests": True}})
        )
        settings = Settings.load(tmp_path)
        assert settings.orm == "prisma"
        assert settings.paths.modules == "apps/api/modules"
        assert settings.paths.shared == "src/shared"
        assert settings.features.tests is True

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        (tmp_path / CONFIG_FILENAME).write_text(json.dumps({"orm": "prisma"}))
        monkeypatch.setenv("DDD_ORM", "typeorm")
        monkeypatch.setenv("DDD_MODULES_PATH", "lib/modules")
        settings = Settings.load(tmp_path)
        assert settings.orm == "typeorm"
        assert settings.paths.modules == "lib/modules"

    def test_invalid_json(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("{not json")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            Settings.load(tmp_path)

    def test_non_object_json(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("[]")
        with pytest.raises(ConfigurationError, match="must contain a JSON object"):
            Settings.load(tmp_path)

    def test_invalid_value(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text(json.dumps({"orm": "mongoose"}))
        with pytest.raises(ConfigurationError) as exc_info:
            Settings.load(tmp_path)
        assert exc_info.value.details == {"key": "orm"}
        assert exc_info.value.code == "E6003"


class TestWithOrm:
    def test_switches_orm_and_keeps_the_rest(self):
        settings = Settings(database="mysql").with_orm("prisma")
        assert settings.orm == "prisma"
        assert settings.database == "mysql"

    def test_rejects_unknown_orm(self):
        with pytest.raises(ConfigurationError, match="Unsupported ORM: sequelize"):
            Settings().with_orm("sequelize")
