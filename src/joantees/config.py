"""On-disk configuration: directories, global config, backend profiles, tokens.

Layout (XDG platforms; macOS and Windows use ``~/.joantees/`` instead)::

    $XDG_CONFIG_HOME/joantees/config.json        GlobalConfig
    $XDG_CONFIG_HOME/joantees/profiles/<name>.json
    $XDG_DATA_HOME/joantees/tokens/<name>.json   TokenStore
    $XDG_DATA_HOME/joantees/logs/crash-*.log
    ./joantees.json                              project pin (optional)

Every file is JSON and is written through :func:`_atomic_write`.
:func:`resolve_config` picks the backend a command talks to and
:func:`resolve_token` picks the bearer token it sends.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional, TypeVar

from pydantic import BaseModel

from joantees.exceptions import ConfigError
from joantees.models import GlobalConfig, Profile

_APP_NAME = "joantees"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "joantees.json"
_DEFAULT_PROFILE_NAME = "default"

# kind -> (XDG variable, default under $HOME, subdirectory on other platforms)
_DIR_KINDS: dict[str, tuple[str, tuple[str, ...], Optional[str]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), None),
    "data": ("XDG_DATA_HOME", (".local", "share"), "data"),
}

M = TypeVar("M", bound=BaseModel)


# ----- directories ----- #


def _is_xdg_platform() -> bool:
    """Return True on platforms that follow the XDG Base Directory layout (Linux/BSD)."""
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, home_segments, fallback_sub = _DIR_KINDS[kind]
    if _is_xdg_platform():
        root = os.environ.get(env_var) or Path.home().joinpath(*home_segments)
        path = Path(root) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if fallback_sub:
            path = path / fallback_sub
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding ``config.json`` and ``profiles/`` (created on demand)."""
    return _app_dir("config")


def get_data_dir() -> Path:
    """Directory holding stored tokens and crash logs (created on demand)."""
    return _app_dir("data")


def get_profiles_dir() -> Path:
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


# ----- file helpers ----- #


def _atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* in one rename.

    The content goes to a temporary sibling first, which is fsynced and then
    moved over *path* with :func:`os.replace`. *mode* is applied to the
    temporary file before anything is written, so a token file is never
    readable by others. The temporary file is removed if anything fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        mode="w",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
        encoding="utf-8",
    )
    try:
        with handle:
            if mode is not None:
                os.chmod(handle.name, mode)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(handle.name, path)
    except BaseException:
        try:
            os.unlink(handle.name)
        except OSError:
            pass
        raise


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


def _read_model(path: Path, model: type[M], what: str) -> M:
    data = _read_json(path, what)
    try:
        return model.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


def _write_model(path: Path, value: BaseModel) -> None:
    _atomic_write(path, json.dumps(value.model_dump(mode="json"), indent=2) + "\n")


# ----- global config ----- #


def load_global_config() -> GlobalConfig:
    """Read ``config.json``, or return defaults when it does not exist.

    Raises:
        ConfigError: If the file is not valid JSON or fails validation.
    """
    path = get_config_dir() / _CONFIG_FILENAME
    if not path.is_file():
        return GlobalConfig()
    return _read_model(path, GlobalConfig, "global config")


def save_global_config(config: GlobalConfig) -> None:
    _write_model(get_config_dir() / _CONFIG_FILENAME, config)


# ----- profiles ----- #


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    """Names of all saved profiles, sorted."""
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


def load_profile(name: str) -> Profile:
    """Read the profile called *name*.

    Raises:
        ConfigError: If it is missing, not valid JSON, or fails validation.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    return _read_model(path, Profile, f"profile '{name}'")


def save_profile(profile: Profile) -> None:
    _write_model(_profile_path(profile.name), profile)


def delete_profile(name: str) -> None:
    """Remove a saved profile.

    Raises:
        ConfigError: If no such profile exists.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


def load_project_config() -> Optional[dict[str, Any]]:
    """Read ``./joantees.json`` if present.

    A checkout of a store deployment can pin its backend with
    ``{"default_profile": "production"}``.

    Raises:
        ConfigError: If the file is not valid JSON.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    return _read_json(path, "project config")


# ----- resolution ----- #


def resolve_config(
    cli_profile: Optional[str] = None,
    cli_base_url: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> tuple[GlobalConfig, Profile]:
    """Work out the global config and the backend profile for this invocation.

    The profile name is the first one set among ``--profile``,
    ``JOANTEES_PROFILE``, ``default_profile`` in ``./joantees.json`` and
    ``default_profile`` in the global config. Failing all of those, a lone
    saved profile is picked when ``auto_select_single_profile`` is on, and
    otherwise an unsaved ``default`` profile aimed at the local development
    server is used.

    ``--base-url`` and then ``JOANTEES_BASE_URL`` override the profile's
    ``base_url``; ``cli_format`` overrides ``output.format``.

    Returns:
        ``(global_config, profile)``.

    Raises:
        ConfigError: If a named profile does not exist or a file is invalid.
    """
    global_cfg = load_global_config()
    project = load_project_config()
    if not isinstance(project, dict):
        project = {}

    candidates = (
        cli_profile,
        os.environ.get("JOANTEES_PROFILE") or None,
        project.get("default_profile"),
        global_cfg.default_profile,
    )
    name = next((c for c in candidates if c is not None), None)

    if name is None and global_cfg.auto_select_single_profile:
        saved = list_profiles()
        if len(saved) == 1:
            name = saved[0]

    profile = load_profile(name) if name is not None else Profile(name=_DEFAULT_PROFILE_NAME)

    base_url = cli_base_url or os.environ.get("JOANTEES_BASE_URL")
    if base_url:
        profile.base_url = base_url
    if cli_format is not None:
        global_cfg.output.format = cli_format

    return global_cfg, profile


def resolve_token(profile_name: str) -> Optional[str]:
    """Bearer token for *profile_name*: ``JOANTEES_TOKEN`` first, then the token store.

    An expired stored token counts as no token.
    """
    env_token = os.environ.get("JOANTEES_TOKEN")
    if env_token:
        return env_token

    from joantees.auth.token_store import TokenStore

    entry = TokenStore(profile_name).load()
    if entry is None or not entry.is_valid():
        return None
    return entry.token
