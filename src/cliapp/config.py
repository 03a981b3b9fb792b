"""Configuration loading with file, environment, and flag precedence.

:class:`ConfigLoader` merges three sources into one key space and copies
the result onto an options object:

* **Flags** -- bound with :meth:`ConfigLoader.bind_flags`. A flag given on
  the command line wins over everything; an unset flag only supplies its
  default.
* **Environment** -- with :meth:`ConfigLoader.automatic_env`, key
  ``server.bind-address`` is read from ``<PREFIX>_SERVER_BIND_ADDRESS``.
* **Config file** -- JSON or YAML, found by explicit path or by searching
  the configured directories for ``<name>.json|.yaml|.yml``.

Precedence (high to low): changed flag, environment, config file, flag
default.

:func:`new_loader` applies the search conventions used by applications
built on :class:`~cliapp.app.App`: an explicit ``--config`` file, otherwise
``./<basename>.*`` and, for dashed basenames such as ``iam-apiserver``,
``~/.iam/`` and ``/etc/iam/``.
"""

from __future__ import annotations

import json
import os
import typing
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import TypeAdapter, ValidationError

from cliapp.exceptions import ConfigError
from cliapp.flags import Flag, FlagSet

CONFIG_FLAG_NAME = "config"
SUPPORTED_EXTENSIONS = (".json", ".yaml", ".yml")

_SEQUENCE_ORIGINS = (list, tuple, set, frozenset)


def define_config_flag(fs: FlagSet) -> Flag:
    """Define the ``--config/-c FILE`` flag on *fs*."""
    return fs.string_flag(
        CONFIG_FLAG_NAME,
        "",
        "Read configuration from specified `FILE`, support JSON and YAML formats.",
        shorthand="c",
    )


def new_loader(basename: str, cfg_file: str = "") -> "ConfigLoader":
    """Return a loader set up for application *basename*.

    Args:
        basename: Binary name, e.g. ``iam-apiserver``. Also the env prefix
            (``IAM_APISERVER``) and the config file stem.
        cfg_file: Explicit config file; disables the directory search.
    """
    loader = ConfigLoader()
    loader.automatic_env(basename.upper().replace("-", "_"))

    if cfg_file:
        loader.set_config_file(cfg_file)
    else:
        loader.add_config_path(".")
        names = basename.split("-")
        if len(names) > 1:
            loader.add_config_path(Path.home() / f".{names[0]}")
            loader.add_config_path(Path("/etc") / names[0])
        loader.set_config_name(basename)
    return loader


class ConfigLoader:
    """Key/value settings merged from flags, environment, and a config file."""

    def __init__(self) -> None:
        self._config_file = ""
        self._config_name = ""
        self._config_paths: list[Path] = []
        self._env_prefix: Optional[str] = None
        self._config: dict[str, Any] = {}
        self._flags: dict[str, Flag] = {}
        self._used = ""

    # --- file discovery ---

    def set_config_file(self, path: Union[str, Path]) -> None:
        """Use *path* as the config file instead of searching."""
        self._config_file = str(path)

    def set_config_name(self, name: str) -> None:
        """Set the file stem searched for in the config paths."""
        self._config_name = name

    def add_config_path(self, path: Union[str, Path]) -> None:
        """Append a directory to the search path."""
        self._config_paths.append(Path(path))

    def config_file_used(self) -> str:
        """Path of the file read by :meth:`read_in_config`, or ``""``."""
        return self._used

    def read_in_config(self) -> None:
        """Load the config file.

        Finding nothing in the search path is not an error: the settings
        then come from flags and environment only.

        Raises:
            ConfigError: If an explicit config file is missing, or a file
                cannot be read or parsed.
        """
        path = self._find_config_file()
        if path is None:
            self._used = ""
            self._config = {}
            return
        self._config = _lower_keys(_load_file(path))
        self._used = str(path)

    def _find_config_file(self) -> Optional[Path]:
        if self._config_file:
            path = Path(self._config_file).expanduser()
            if not path.is_file():
                raise ConfigError(
                    f"failed to read configuration file({self._config_file}): "
                    "file not found"
                )
            return path

        if not self._config_name:
            return None
        for directory in self._config_paths:
            for ext in SUPPORTED_EXTENSIONS:
                candidate = directory.expanduser() / f"{self._config_name}{ext}"
                if candidate.is_file():
                    return candidate
        return None

    # --- sources ---

    def automatic_env(self, prefix: str = "") -> None:
        """Look every key up in the environment, under ``<PREFIX>_<KEY>``."""
        self._env_prefix = prefix

    def env_key(self, key: str) -> str:
        name = key.upper().replace(".", "_").replace("-", "_")
        if self._env_prefix:
            return f"{self._env_prefix}_{name}"
        return name

    def bind_flags(self, flags: FlagSet) -> None:
        """Use each flag of *flags* as a source for the key of the same name."""
        for flag in flags:
            self._flags[flag.name.lower()] = flag

    # --- lookup ---

    def get(self, key: str) -> Any:
        """Return the effective value of *key*, or ``None`` when no source has it."""
        key = key.lower()
        flag = self._flags.get(key)
        if flag is not None and flag.changed:
            return flag.value

        if self._env_prefix is not None:
            env_value = os.environ.get(self.env_key(key))
            if env_value is not None:
                return env_value

        found, value = _search(self._config, key.split("."))
        if found:
            return value

        if flag is not None:
            return flag.value
        return None

    def is_set(self, key: str) -> bool:
        return self.get(key) is not None

    def all_keys(self) -> list[str]:
        """Every leaf key known from the config file and bound flags."""
        keys = dict.fromkeys(_flatten_keys(self._config))
        keys.update(dict.fromkeys(self._flags))
        return list(keys)

    def all_settings(self) -> dict[str, Any]:
        """Effective settings for every key, as a nested dict."""
        settings: dict[str, Any] = {}
        for key in self.all_keys():
            node = settings
            parts = key.split(".")
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
            node[parts[-1]] = self.get(key)
        return settings

    def unmarshal(self, target: Any) -> None:
        """Copy the effective settings onto the attributes of *target*.

        Keys are matched to attributes with dashes turned into underscores.
        Nested mappings are copied onto nested objects. Keys without a
        matching attribute are ignored. Values are coerced to the
        attribute's annotated type.

        Raises:
            ConfigError: If a value cannot be coerced to the annotated type.
        """
        _assign(target, self.all_settings(), "")


# --- file parsing ---


def _load_file(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to read configuration file({path}): {exc}") from exc

    if not content.strip():
        return {}

    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            result = json.loads(content)
        else:
            result = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"failed to parse configuration file({path}): {exc}") from exc

    if result is None:
        return {}
    if not isinstance(result, dict):
        raise ConfigError(
            f"configuration file({path}) must contain a mapping "
            f"(got {type(result).__name__})"
        )
    return result


def _lower_keys(data: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            value = _lower_keys(value)
        out[str(key).lower()] = value
    return out


def _flatten_keys(data: dict[str, Any], prefix: str = "") -> list[str]:
    keys: list[str] = []
    for key, value in data.items():
        full = f"{prefix}{key}"
        if isinstance(value, dict) and value:
            keys.extend(_flatten_keys(value, full + "."))
        else:
            keys.append(full)
    return keys


def _search(data: dict[str, Any], path: list[str]) -> tuple[bool, Any]:
    node: Any = data
    for part in path:
        if not isinstance(node, dict) or part not in node:
            return False, None
        node = node[part]
    return True, node


# --- unmarshalling ---


def _assign(target: Any, settings: dict[str, Any], path: str) -> None:
    hints = _type_hints(type(target))
    for key, value in settings.items():
        attr = key.replace("-", "_")
        if not hasattr(target, attr):
            continue
        current = getattr(target, attr)
        if callable(current):
            continue

        if isinstance(value, dict) and not isinstance(current, dict) and hasattr(current, "__dict__"):
            _assign(current, value, f"{path}{key}.")
            continue

        hint = hints.get(attr)
        if hint is not None and value is not None:
            value = _coerce(hint, value, f"{path}{key}")
        setattr(target, attr, value)


def _type_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError):
        # Unresolvable forward references: copy values as they are.
        return {}


def _coerce(hint: Any, value: Any, key: str) -> Any:
    if isinstance(value, str) and typing.get_origin(hint) in _SEQUENCE_ORIGINS:
        value = [item for item in value.split(",") if item]
    try:
        return TypeAdapter(hint).validate_python(value)
    except ValidationError as exc:
        raise ConfigError(f"cannot decode '{key}': {exc}") from exc
