"""Where rulesmith keeps its files, and how options are resolved.

Options come from three layers, highest first: CLI flags, a project config
file (``rulesmith.json``, ``rulesmith.yaml`` or ``rulesmith.yml``), and the
defaults on :class:`~rulesmith.models.RuleSmithConfig`. :func:`resolve_config`
merges them.

The only state rulesmith keeps outside the output directory is crash logs,
written under :func:`get_data_dir`. Rule files themselves go through
:func:`atomic_write`, so an interrupted run never leaves half a file behind.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from rulesmith.exceptions import ConfigError
from rulesmith.models import RuleSmithConfig

_APP_NAME = "rulesmith"
_CONFIG_ENV_VAR = "RULESMITH_CONFIG"
_PROJECT_CONFIG_FILENAMES = ("rulesmith.json", "rulesmith.yaml", "rulesmith.yml")


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def get_data_dir() -> Path:
    """Return the crash-log directory, creating it if needed.

    ``$XDG_DATA_HOME/rulesmith`` (default ``~/.local/share/rulesmith``) on
    Linux and BSD, ``~/.rulesmith`` elsewhere.
    """
    if _is_xdg_platform():
        xdg_data = os.environ.get("XDG_DATA_HOME")
        base = Path(xdg_data) if xdg_data else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* in one rename.

    The text goes to a hidden temp file next to *path* first, so the rename
    never crosses a filesystem. The temp file is removed if anything fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        except BaseException:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise

    try:
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def find_config_file(explicit: Optional[str] = None) -> Optional[Path]:
    """Locate the config file to use.

    Lookup order: *explicit* (the ``--config`` flag), the
    ``RULESMITH_CONFIG`` environment variable, then ``rulesmith.json``,
    ``rulesmith.yaml`` and ``rulesmith.yml`` in the working directory.

    Returns:
        The config file path, or ``None`` when no file applies.

    Raises:
        ConfigError: If an explicitly named file (flag or env var) does not exist.
    """
    named = explicit or os.environ.get(_CONFIG_ENV_VAR)
    if named:
        path = Path(named).expanduser()
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        return path

    for filename in _PROJECT_CONFIG_FILENAMES:
        path = Path.cwd() / filename
        if path.is_file():
            return path
    return None


def load_config_file(path: Path) -> RuleSmithConfig:
    """Load and validate a JSON or YAML config file.

    Args:
        path: The file to read. ``.yaml`` / ``.yml`` files are parsed as
            YAML, everything else as JSON.

    Returns:
        The deserialised :class:`~rulesmith.models.RuleSmithConfig`.

    Raises:
        ConfigError: If the file cannot be read, is not valid JSON/YAML, is
            not a mapping, or fails Pydantic validation.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Invalid config file {path}: expected an object, got {type(data).__name__}"
        )

    try:
        return RuleSmithConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc



def resolve_config(
    config_path: Optional[str] = None,
    **cli_overrides: Any,
) -> RuleSmithConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. CLI flags (keyword arguments that are not ``None``)
        2. Config file (see :func:`find_config_file`)
        3. Defaults

    Args:
        config_path: Explicit config file path from ``--config``.
        **cli_overrides: ``RuleSmithConfig`` field names mapped to CLI
            values. ``None`` means "flag not given".

    Returns:
        The merged, validated configuration.

    Raises:
        ConfigError: If the config file is invalid or an override has a bad value.
    """
    path = find_config_file(config_path)
    base = load_config_file(path) if path is not None else RuleSmithConfig()

    data = base.model_dump()
    data.update({key: value for key, value in cli_overrides.items() if value is not None})
    try:
        return RuleSmithConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid option: {exc}") from exc
