"""Persistent settings: the global config file, profiles and ``./querycache.json``.

Only settings live on disk. Cached pages never leave process memory.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from querycache.exceptions import ConfigError
from querycache.models import GlobalConfig, Profile

_APP_NAME = "querycache"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "querycache.json"

ENV_PROFILE = "QUERYCACHE_PROFILE"
ENV_BASE_URL = "QUERYCACHE_BASE_URL"

# kind -> (XDG variable, default under $HOME, subdirectory of ~/.querycache elsewhere)
_DIRS: dict[str, tuple[str, tuple[str, ...], Optional[str]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), None),
    "data": ("XDG_DATA_HOME", (".local", "share"), "logs"),
}


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, home_default, fallback_subdir = _DIRS[kind]
    if _is_xdg_platform():
        root = os.environ.get(env_var) or Path.home().joinpath(*home_default)
        path = Path(root) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if fallback_subdir:
            path = path / fallback_subdir
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """``$XDG_CONFIG_HOME/querycache`` on Linux/BSD, ``~/.querycache`` elsewhere."""
    return _app_dir("config")


def get_data_dir() -> Path:
    """Where crash logs go."""
    return _app_dir("data")


def get_profiles_dir() -> Path:
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- JSON files ---


def _write_json_atomic(path: Path, data: Any) -> None:
    """Dump *data* next to *path* and swap it in with ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
            fh.write("\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load ``config.json``, or defaults when there is none.

    Raises:
        ConfigError: If the file is not valid JSON or fails validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    data = _read_json(path, "global config")
    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    _write_json_atomic(_global_config_path(), config.model_dump(mode="json"))


# --- Profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def load_profile(name: str) -> Profile:
    """Load profile *name*.

    Raises:
        ConfigError: If it does not exist or is invalid.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    data = _read_json(path, f"profile '{name}'")
    try:
        return Profile.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def save_profile(profile: Profile) -> None:
    _write_json_atomic(_profile_path(profile.name), profile.model_dump(mode="json"))


def delete_profile(name: str) -> None:
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


# --- Project file ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Parsed ``./querycache.json``, or ``None`` if the directory has none."""
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    return _read_json(path, "project config")


def pin_project_profile(name: str) -> Path:
    """Make *name* the default profile for the working directory."""
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    data = load_project_config() or {}
    data["default_profile"] = name
    _write_json_atomic(path, data)
    return path


# --- Precedence ---


def resolve_config(
    cli_profile: Optional[str] = None,
    cli_base_url: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> tuple[GlobalConfig, Optional[Profile]]:
    """Return the global config and the active profile.

    The profile name comes from, highest first: ``cli_profile``,
    ``QUERYCACHE_PROFILE``, ``./querycache.json``, ``default_profile`` in the
    global config, and finally the only saved profile when
    ``auto_select_single_profile`` is on. The base URL of the loaded profile
    can be replaced by ``cli_base_url`` or ``QUERYCACHE_BASE_URL``.
    """
    global_cfg = load_global_config()
    project = load_project_config() or {}

    candidates = (
        cli_profile,
        os.environ.get(ENV_PROFILE) or None,
        project.get("default_profile"),
        global_cfg.default_profile,
    )
    name = next((c for c in candidates if c is not None), None)

    if name is None and global_cfg.auto_select_single_profile:
        profiles = list_profiles()
        if len(profiles) == 1:
            name = profiles[0]

    profile = load_profile(name) if name is not None else None
    if profile is not None:
        base_url = cli_base_url or os.environ.get(ENV_BASE_URL)
        if base_url:
            profile.base_url = base_url

    if cli_format is not None:
        global_cfg.output.format = cli_format

    return global_cfg, profile
