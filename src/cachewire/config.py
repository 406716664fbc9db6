"""Where cachewire keeps its files, and how its settings are resolved.

Settings are a :class:`~cachewire.models.TransportConfig`, assembled by
:func:`resolve_config` from up to five layers. From strongest to weakest
they are command-line flags, ``CACHEWIRE_*`` environment variables,
``./cachewire.json`` in the working directory, ``config.json`` in the user
config directory, and the model defaults.

Directories follow the XDG base directory layout on Linux and the BSDs
(``~/.config/cachewire``, ``~/.cache/cachewire``). Other platforms get a
single ``~/.cachewire`` tree.

:func:`atomic_write` is shared with :class:`~cachewire.cache.file.FileCache`
so that neither a config file nor a cache record is ever seen half written.
"""

from __future__ import annotations

import contextlib
import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from cachewire.exceptions import ConfigError
from cachewire.models import TransportConfig

_APP_NAME = "cachewire"
_GLOBAL_FILENAME = "config.json"
_PROJECT_FILENAME = "cachewire.json"

# Environment variable -> dotted config key.
_ENV_OVERRIDES = {
    "CACHEWIRE_RETRY_COUNT": "retry_count",
    "CACHEWIRE_USER_AGENT": "user_agent",
    "CACHEWIRE_RATE_LIMIT": "rate_limit",
    "CACHEWIRE_CACHE_DIR": "cache.directory",
    "CACHEWIRE_CACHE_BACKEND": "cache.backend",
}


# ------------------------------------------------------------------ #
# Directories
# ------------------------------------------------------------------ #


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _home_tree() -> Path:
    """``~/.cachewire``, used instead of XDG directories on macOS and Windows."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_home(env_var: str, default: str) -> Path:
    """``$env_var`` when set and non-empty, else ``~/<default>``."""
    value = os.environ.get(env_var)
    return Path(value) if value else Path.home() / default


def get_config_dir() -> Path:
    """Return (and create) the directory holding ``config.json``.

    ``$XDG_CONFIG_HOME/cachewire`` on XDG platforms, ``~/.cachewire``
    elsewhere.
    """
    if _is_xdg_platform():
        path = _xdg_home("XDG_CONFIG_HOME", ".config") / _APP_NAME
    else:
        path = _home_tree()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the base cache directory without creating it.

    ``$XDG_CACHE_HOME/cachewire`` on XDG platforms, ``~/.cachewire/cache``
    elsewhere. Backends create what they need in
    :meth:`~cachewire.cache.Cache.init`.
    """
    if _is_xdg_platform():
        return _xdg_home("XDG_CACHE_HOME", ".cache") / _APP_NAME
    return _home_tree() / "cache"


def default_cache_root(config: TransportConfig) -> Path:
    """Return the directory a cache backend should use for *config*."""
    if config.cache.directory:
        return Path(config.cache.directory).expanduser()
    return get_cache_dir() / "responses"


def atomic_write(path: Path, data: bytes) -> None:
    """Replace *path* with *data*; readers see the old bytes or the new, never a mix.

    The temp file is created beside *path* because ``os.replace`` only
    renames atomically within one filesystem. The parent directory must
    already exist. On failure the temp file is removed and the error
    propagates.
    """
    tmp = tempfile.NamedTemporaryFile(
        "wb", dir=path.parent, prefix=f".{path.name[:32]}.", suffix=".tmp", delete=False
    )
    try:
        with tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp.name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp.name)
        raise


# ------------------------------------------------------------------ #
# Config files
# ------------------------------------------------------------------ #


def global_config_path() -> Path:
    return get_config_dir() / _GLOBAL_FILENAME


def _read_json(path: Path, label: str) -> Optional[dict[str, Any]]:
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid {label} at {path}: expected a JSON object")
    return data


def load_global_config() -> TransportConfig:
    """Read ``config.json`` from the config directory; defaults when it is absent.

    Raises:
        ConfigError: The file is not a JSON object or fails validation.
    """
    path = global_config_path()
    data = _read_json(path, "global config")
    if data is None:
        return TransportConfig()
    try:
        return TransportConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: TransportConfig) -> Path:
    """Write *config* as the global ``config.json`` and return its path."""
    path = global_config_path()
    text = json.dumps(config.model_dump(mode="json"), indent=2) + "\n"
    atomic_write(path, text.encode("utf-8"))
    return path


def load_project_config() -> Optional[dict[str, Any]]:
    """Read ``./cachewire.json`` as a raw dict, or ``None`` when there is none.

    Left unvalidated so a partial file (say, only ``{"retry_count": 2}``)
    overrides just those keys; :func:`resolve_config` validates the merge.
    """
    return _read_json(Path.cwd() / _PROJECT_FILENAME, "project config")


# ------------------------------------------------------------------ #
# Layering
# ------------------------------------------------------------------ #


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _set_dotted(data: dict[str, Any], dotted: str, value: Any) -> None:
    *parents, leaf = dotted.split(".")
    target = data
    for key in parents:
        target = target.setdefault(key, {})
    target[leaf] = value


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for env_var, dotted in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            _set_dotted(overrides, dotted, value)
    return overrides


def resolve_config(cli_overrides: Optional[dict[str, Any]] = None) -> TransportConfig:
    """Merge every configuration layer into one validated :class:`TransportConfig`.

    Layers, strongest first:
        1. CLI flags (``cli_overrides``; keys may be dotted, ``None`` values
           are ignored)
        2. Environment variables (``CACHEWIRE_RETRY_COUNT``,
           ``CACHEWIRE_USER_AGENT``, ``CACHEWIRE_RATE_LIMIT``,
           ``CACHEWIRE_CACHE_DIR``, ``CACHEWIRE_CACHE_BACKEND``)
        3. Project config (``./cachewire.json``)
        4. User config (``<config dir>/config.json``)
        5. Defaults

    Raises:
        ConfigError: If any layer holds invalid JSON or the merged result
            fails validation (e.g. ``CACHEWIRE_RETRY_COUNT=-1``).
    """
    # Global file (or defaults)
    data = load_global_config().model_dump(mode="json")

    # ./cachewire.json
    project = load_project_config()
    if project is not None:
        data = _deep_merge(data, project)

    # CACHEWIRE_* variables
    data = _deep_merge(data, _env_overrides())

    # Flags
    cli: dict[str, Any] = {}
    for dotted, value in (cli_overrides or {}).items():
        if value is not None:
            _set_dotted(cli, dotted, value)
    data = _deep_merge(data, cli)

    try:
        return TransportConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
