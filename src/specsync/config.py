from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

from platformdirs import user_config_path

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_RAW_URL = "https://raw.githubusercontent.com"
DEFAULT_WEB_URL = "https://github.com"
DEFAULT_TIMEOUT_S = 30.0

TOKEN_ENV = "GITHUB_TOKEN"
REPOSITORY_ENV = "GITHUB_REPOSITORY"


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class SyncConfig:
    token: str
    repository: str | None = None  # "owner/name" of the repo that receives the pull request
    registry_path: Path = Path("registry.json")
    output_root: Path = Path("openapi")
    summary_path: Path = Path("sync-summary.txt")
    api_url: str = DEFAULT_API_URL
    raw_url: str = DEFAULT_RAW_URL
    web_url: str = DEFAULT_WEB_URL
    timeout_s: float = DEFAULT_TIMEOUT_S
    base_branch: str = "main"
    branch_prefix: str = "specsync/update"
    labels: tuple[str, ...] = ("openapi", "automated")

    @property
    def repository_coords(self) -> tuple[str, str] | None:
        if not self.repository:
            return None
        owner, sep, name = self.repository.strip().partition("/")
        if not sep or not owner or not name or "/" in name:
            return None
        return owner, name


# Settings that may come from the config file; the token never does.
_FILE_KEYS = {f.name for f in fields(SyncConfig)} - {"token", "repository"}
_PATH_KEYS = {"registry_path", "output_root", "summary_path"}


def config_path(path_override: str | Path | None = None, env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    if path_override is not None:
        return Path(path_override).expanduser()
    if value := env.get("SPECSYNC_CONFIG_PATH"):
        return Path(value).expanduser()
    return user_config_path("specsync") / "config.json"


def _load_file_settings(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    if not isinstance(raw, dict):
        return {}
    return {k: v for k, v in raw.items() if k in _FILE_KEYS}


def _coerce(settings: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in settings.items():
        if value is None:
            continue
        if key in _PATH_KEYS:
            out[key] = Path(str(value)).expanduser()
        elif key == "timeout_s":
            try:
                out[key] = float(value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"timeout_s must be a number, got {value!r}") from e
        elif key == "labels":
            if isinstance(value, str):
                value = value.split(",")
            if not isinstance(value, (list, tuple)):
                raise ConfigError("labels must be a list of strings.")
            out[key] = tuple(str(v).strip() for v in value if str(v).strip())
        else:
            out[key] = str(value)
    return out


def load_config(
    env: Mapping[str, str] | None = None,
    *,
    path_override: str | Path | None = None,
) -> SyncConfig:
    """
    Builds the run configuration once: config file, then environment overrides.

    A missing or blank GITHUB_TOKEN is fatal; GITHUB_REPOSITORY is optional.
    """
    env = os.environ if env is None else env

    token = (env.get(TOKEN_ENV) or "").strip()
    if not token:
        raise ConfigError(f"{TOKEN_ENV} is not set; a GitHub token is required.")

    settings = _load_file_settings(config_path(path_override, env))

    # Env overrides config file.
    env_overrides = {
        "registry_path": env.get("SPECSYNC_REGISTRY"),
        "output_root": env.get("SPECSYNC_OUTPUT_DIR"),
        "api_url": env.get("SPECSYNC_API_URL"),
        "timeout_s": env.get("SPECSYNC_TIMEOUT_S"),
    }
    settings.update({k: v for k, v in env_overrides.items() if v})

    repository = (env.get(REPOSITORY_ENV) or "").strip() or None
    return SyncConfig(token=token, repository=repository, **_coerce(settings))


def redact_token(token: str | None) -> str:
    """Display form of a credential: short tokens are fully masked."""
    if not token:
        return "(unset)"
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}...{token[-4:]}"
