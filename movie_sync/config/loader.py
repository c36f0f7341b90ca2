"""Configuration loading helpers for the sync worker."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import EnvironmentOverrides, WorkerConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
WORKER_CONFIG_STEM = "worker_config"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("MOVIE_SYNC_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def worker_config_path(self) -> Path:
        for suffix in CONFIG_EXTENSIONS:
            candidate = self.data_dir / f"{WORKER_CONFIG_STEM}{suffix}"
            if candidate.exists():
                return candidate
        return self.data_dir / f"{WORKER_CONFIG_STEM}.yaml"

    def env_file(self) -> Path | None:
        path = self.project_root / ".env"
        return path if path.exists() else None


class ConfigRepository:
    """Repository encapsulating config IO, env overrides and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._cache: WorkerConfig | None = None

    def load_file_config(self) -> WorkerConfig:
        path = self.locator.worker_config_path()
        if not path.exists():
            return WorkerConfig()
        try:
            return WorkerConfig.model_validate(_read_file(path))
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration in {path}: {exc}") from exc

    def load_worker_config(self, *, apply_env: bool = True) -> WorkerConfig:
        if self._cache is not None:
            return self._cache
        config = self.load_file_config()
        if apply_env:
            try:
                overrides = EnvironmentOverrides(_env_file=self.locator.env_file())
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid environment configuration: {exc}") from exc
            config = overrides.apply(config)
        self._cache = config
        return config

    def save_worker_config(self, config: WorkerConfig) -> Path:
        path = self.locator.worker_config_path()
        _write_file(path, config.model_dump(mode="json"))
        self._cache = None
        return path

    def sqlite_path(self, config: WorkerConfig) -> Path:
        return config.store.resolved_sqlite_path(self.locator.project_root)


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository"]
