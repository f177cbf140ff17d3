"""Configuration loading helpers for rss-refresher."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from .models import RefresherConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_FILENAME = "config.yaml"
HOME_ENV = "RSS_REFRESHER_HOME"
CONFIG_ENV = "RSS_REFRESHER_CONFIG"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve the project root and the configuration file path."""

    project_root: Path | None = None
    config_path: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        if self.config_path is None:
            env_config = os.environ.get(CONFIG_ENV)
            self.config_path = Path(env_config) if env_config else root / CONFIG_FILENAME
        if not self.config_path.is_absolute():
            self.config_path = (root / self.config_path).resolve()
        if self.config_path.suffix not in CONFIG_EXTENSIONS:
            raise ValueError(f"Unsupported configuration file type: {self.config_path}")

    def resolve(self, path: Path) -> Path:
        """Anchor relative data paths at the project root."""

        if path.is_absolute():
            return path
        return (self.project_root / path).resolve()


class ConfigRepository:
    """Load and persist ``RefresherConfig`` with schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._cache: RefresherConfig | None = None

    def load(self) -> RefresherConfig:
        if self._cache is not None:
            return self._cache
        path = self.locator.config_path
        if path.exists():
            config = RefresherConfig.model_validate(_read_file(path))
        else:
            config = RefresherConfig()
            self.save(config)
        self._cache = config
        return config

    def save(self, config: RefresherConfig) -> Path:
        path = self.locator.config_path
        _write_file(path, config.model_dump(mode="json"))
        self._cache = config
        return path

    def database_path(self) -> Path:
        return self.locator.resolve(self.load().database.path)

    def log_dir(self) -> Path:
        return self.locator.resolve(self.load().logging.log_dir)

    def items_path(self) -> Path:
        return self.locator.resolve(self.load().item_publish.path)


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository"]
