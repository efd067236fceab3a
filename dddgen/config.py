"""dddgen configuration.

Project-level settings read from ``.dddrc.json`` in the target project, with
environment overrides. Pydantic validates the file so a typo in an ORM name is
reported before anything is generated.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from dddgen.errors import ConfigurationError


CONFIG_FILENAME = ".dddrc.json"


class PathsConfig(BaseModel):
    """Where generated code lands, relative to the project root."""

    modules: str = Field(default="src/modules")
    shared: str = Field(default="src/shared")


class FeaturesConfig(BaseModel):
    """Defaults applied when an entity does not set an option itself."""

    tests: bool = Field(default=False, description="Generate service spec files")
    events: bool = Field(default=False, description="Generate a created-event class")


class Settings(BaseModel):
    """Generation settings for one target project."""

    orm: Literal["typeorm", "prisma"] = Field(default="typeorm")
    database: str = Field(default="postgres")
    paths: PathsConfig = Field(default_factory=PathsConfig)
    features: FeaturesConfig = Field(default_factory=FeaturesConfig)

    def modules_path(self, base_path: Path) -> Path:
        return Path(base_path) / self.paths.modules

    def with_orm(self, orm: str) -> "Settings":
        """Return a copy targeting a different ORM."""
        try:
            return Settings.model_validate({**self.model_dump(), "orm": orm})
        except ValidationError as exc:
            raise ConfigurationError(f"Unsupported ORM: {orm}", key="orm") from exc

    @classmethod
    def load(cls, base_path: str | Path | None = None) -> "Settings":
        """Load ``.dddrc.json`` from *base_path* (if present) and apply env overrides.

        Recognised variables (all optional):
            DDD_ORM, DDD_DATABASE, DDD_MODULES_PATH.
        """
        root = Path(base_path or Path.cwd())
        data: dict[str, Any] = {}

        config_file = root / CONFIG_FILENAME
        if config_file.is_file():
            try:
                data = json.loads(config_file.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise ConfigurationError(f"Invalid JSON in {config_file}: {exc}") from exc
            if not isinstance(data, dict):
                raise ConfigurationError(f"{config_file} must contain a JSON object")

        if os.environ.get("DDD_ORM"):
            data["orm"] = os.environ["DDD_ORM"]
        if os.environ.get("DDD_DATABASE"):
            data["database"] = os.environ["DDD_DATABASE"]
        if os.environ.get("DDD_MODULES_PATH"):
            data["paths"] = {**data.get("paths", {}), "modules": os.environ["DDD_MODULES_PATH"]}

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            first = exc.errors()[0]
            key = ".".join(str(p) for p in first["loc"])
            raise ConfigurationError(f"Invalid configuration value for {key}: {first['msg']}", key=key) from exc
