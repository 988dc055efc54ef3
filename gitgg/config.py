from __future__ import annotations

import os
import shlex
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ConfigurationError

CONFIG_ENV_VAR = "GITGG_CONFIG"
CONFIG_FILE_NAME = ".gitgg.toml"
DEFAULT_LINE_LIMIT = 100
DEFAULT_SEPARATE_THRESHOLD = 5


@dataclass(frozen=True)
class CompareConfig:
    preferred_remote: str = "origin"
    fetch: bool = True
    line_limit: int = DEFAULT_LINE_LIMIT
    separate_threshold: int = DEFAULT_SEPARATE_THRESHOLD
    viewer_command: tuple[str, ...] = ()
    temp_dir: Path | None = None


def _positive_int(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigurationError(f"compare.{key} must be a positive integer, got {value!r}")
    return value


def parse_compare_config(data: dict[str, Any]) -> CompareConfig:
    section = data.get("compare") or {}
    if not isinstance(section, dict):
        raise ConfigurationError("[compare] must be a table")

    preferred_remote = str(section.get("preferred_remote") or "origin").strip() or "origin"
    fetch = section.get("fetch", True)
    if not isinstance(fetch, bool):
        raise ConfigurationError(f"compare.fetch must be true or false, got {fetch!r}")

    raw_command = section.get("viewer_command") or ()
    if isinstance(raw_command, str):
        viewer_command = tuple(shlex.split(raw_command))
    elif isinstance(raw_command, (list, tuple)):
        viewer_command = tuple(str(value) for value in raw_command)
    else:
        raise ConfigurationError("compare.viewer_command must be a string or an array of strings")

    temp_dir_raw = section.get("temp_dir")
    temp_dir = Path(str(temp_dir_raw)).expanduser() if temp_dir_raw else None

    return CompareConfig(
        preferred_remote=preferred_remote,
        fetch=fetch,
        line_limit=_positive_int(section, "line_limit", DEFAULT_LINE_LIMIT),
        separate_threshold=_positive_int(section, "separate_threshold", DEFAULT_SEPARATE_THRESHOLD),
        viewer_command=viewer_command,
        temp_dir=temp_dir,
    )


def find_config_path(explicit: Path | None, repo_root: Path | None) -> Path | None:
    if explicit is not None:
        if not explicit.exists():
            raise ConfigurationError(f"Config file not found: {explicit}")
        return explicit
    env_value = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if env_value:
        env_path = Path(env_value).expanduser()
        if not env_path.exists():
            raise ConfigurationError(f"Config file from ${CONFIG_ENV_VAR} not found: {env_path}")
        return env_path
    if repo_root is not None:
        candidate = repo_root / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def load_compare_config(explicit: Path | None = None, repo_root: Path | None = None) -> CompareConfig:
    path = find_config_path(explicit, repo_root)
    if path is None:
        return CompareConfig()
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as error:
        raise ConfigurationError(f"Invalid TOML in {path}: {error}") from error
    return parse_compare_config(data)
