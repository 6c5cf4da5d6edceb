"""Configuration discovery, loading, and group matching.

A configuration lists diff groups, each an ordered set of workspaces that
hold copies of the same project::

    [[groups]]
    name = "services"
    ignore_whitespace = false

    [[groups.workspaces]]
    name = "api"
    path = "/src/api"

    [[groups.workspaces]]
    name = "worker"
    path = "/src/worker"

The same shape is accepted as JSON.  The editor-settings spelling
(``diffGroups`` / ``ignoreWhiteSpace``) is accepted as well.
"""

from __future__ import annotations

import json
import os
import tomllib
from pathlib import Path
from typing import Any

from multi_diff.core.errors import ConfigError
from multi_diff.core.models import DiffGroup, Workspace
from multi_diff.core.paths import clean_path

CONFIG_FILENAMES = (".multi-diff.toml", ".multi-diff.json")

_GROUP_KEYS = ("groups", "diffGroups")
_WHITESPACE_KEYS = ("ignore_whitespace", "ignoreWhiteSpace", "ignoreWhitespace")


def find_config_in_parents(start_dir: Path | None = None) -> Path | None:
    """Find a configuration file by walking up from ``start_dir``.

    Args:
        start_dir: Directory to start from. Defaults to the current directory.

    Returns:
        Path of the first configuration file found, or None.
    """
    current = (start_dir or Path.cwd()).resolve()
    while True:
        for filename in CONFIG_FILENAMES:
            candidate = current / filename
            if candidate.is_file():
                return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def discover_config(start_dir: Path | None = None) -> Path | None:
    """Locate a configuration file in the parents, then the home directory."""
    found = find_config_in_parents(start_dir)
    if found is not None:
        return found

    home = Path.home()
    for filename in CONFIG_FILENAMES:
        candidate = home / filename
        if candidate.is_file():
            return candidate
    return None


def load_config(config_path: Path | str) -> tuple[DiffGroup, ...]:
    """Load diff groups from a TOML or JSON file.

    Args:
        config_path: Path to a ``.toml`` or ``.json`` file.

    Returns:
        The configured groups in file order.

    Raises:
        ConfigError: If the file is missing, unparsable, or malformed.
    """
    config_path = Path(config_path)
    if not config_path.is_file():
        msg = f"Configuration file does not exist: {config_path}"
        raise ConfigError(msg)

    ext = config_path.suffix.lower()
    try:
        if ext == ".toml":
            with config_path.open("rb") as f:
                data = tomllib.load(f)
        elif ext == ".json":
            with config_path.open(encoding="utf-8") as f:
                data = json.load(f)
        else:
            msg = f"Unsupported config file format: {ext}. Use .toml or .json"
            raise ConfigError(msg)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {config_path}: {e}"
        raise ConfigError(msg) from e
    except json.JSONDecodeError as e:
        msg = f"Invalid JSON in {config_path}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Error reading config file {config_path}: {e}"
        raise ConfigError(msg) from e

    return parse_groups(data, source=str(config_path))


def parse_groups(data: Any, *, source: str = "<config>") -> tuple[DiffGroup, ...]:
    """Build DiffGroups from already-parsed configuration data.

    Raises:
        ConfigError: If the structure does not match the expected shape.
    """
    if isinstance(data, dict):
        raw_groups = next((data[key] for key in _GROUP_KEYS if key in data), None)
    else:
        raw_groups = data
    if not isinstance(raw_groups, list):
        msg = f"{source}: expected a list of groups under 'groups'"
        raise ConfigError(msg)

    return tuple(_parse_group(raw, index, source) for index, raw in enumerate(raw_groups))


def _parse_group(raw: Any, index: int, source: str) -> DiffGroup:
    if not isinstance(raw, dict):
        msg = f"{source}: group #{index} must be a table"
        raise ConfigError(msg)

    name = raw.get("name")
    if not isinstance(name, str) or not name:
        msg = f"{source}: group #{index} needs a non-empty 'name'"
        raise ConfigError(msg)

    ignore_whitespace = next((raw[key] for key in _WHITESPACE_KEYS if key in raw), False)
    if not isinstance(ignore_whitespace, bool):
        msg = f"{source}: group '{name}' has a non-boolean ignore_whitespace"
        raise ConfigError(msg)

    raw_workspaces = raw.get("workspaces", [])
    if not isinstance(raw_workspaces, list):
        msg = f"{source}: group '{name}' workspaces must be a list"
        raise ConfigError(msg)

    workspaces: list[Workspace] = []
    for ws in raw_workspaces:
        if not isinstance(ws, dict) or not isinstance(ws.get("name"), str) or not isinstance(ws.get("path"), str):
            msg = f"{source}: every workspace in group '{name}' needs string 'name' and 'path'"
            raise ConfigError(msg)
        workspaces.append(Workspace(name=ws["name"], path=clean_path(Path(ws["path"]).expanduser())))

    return DiffGroup(name=name, workspaces=tuple(workspaces), ignore_whitespace=ignore_whitespace)


def _prefix_form(path: Path | str) -> str:
    return str(path).lower().replace("\\", "/")


def _workspace_for(group: DiffGroup, reference: Path) -> Workspace | None:
    ref = _prefix_form(clean_path(reference))
    for workspace in group.workspaces:
        if ref.startswith(_prefix_form(clean_path(workspace.path))):
            return workspace
    return None


def find_group(
    groups: tuple[DiffGroup, ...] | list[DiffGroup],
    reference: Path,
    group: DiffGroup | None = None,
) -> tuple[DiffGroup | None, Workspace | None]:
    """Resolve which group and workspace a reference file belongs to.

    Matching is a case-insensitive, separator-agnostic path prefix test.
    When ``group`` is given it is used as-is and only the workspace is
    looked up inside it.

    Returns:
        (group, workspace); either may be None.
    """
    if group is not None:
        return group, _workspace_for(group, reference)

    for candidate in groups:
        workspace = _workspace_for(candidate, reference)
        if workspace is not None:
            return candidate, workspace
    return None, None


def group_by_name(groups: tuple[DiffGroup, ...] | list[DiffGroup], name: str) -> DiffGroup:
    """Look up a group by its configured name.

    Raises:
        ConfigError: If no group has that name.
    """
    for group in groups:
        if group.name == name:
            return group
    available = ", ".join(g.name for g in groups) or "(none)"
    msg = f"Group '{name}' not found. Available: {available}"
    raise ConfigError(msg)


def relative_reference(reference: Path, workspace: Workspace | None) -> Path:
    """Path of the reference relative to its workspace.

    Falls back to the bare file name when the reference lies outside every
    workspace of an explicitly chosen group.
    """
    if workspace is None:
        return Path(reference.name)
    return Path(os.path.relpath(reference, workspace.path))
