"""Platform-aware path resolution for editor workspace storage directories."""

import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Optional

from .core import StorageRoot

# Variant name -> relative workspaceStorage path per OS family.
# Linux and macOS paths are relative to the home directory, Windows to %APPDATA%.
EDITOR_VARIANTS: dict[str, dict[str, str]] = {
    "VS Code": {
        "linux": ".config/Code/User/workspaceStorage",
        "darwin": "Library/Application Support/Code/User/workspaceStorage",
        "win32": "Code/User/workspaceStorage",
    },
    "VS Code Insiders": {
        "linux": ".config/Code - Insiders/User/workspaceStorage",
        "darwin": "Library/Application Support/Code - Insiders/User/workspaceStorage",
        "win32": "Code - Insiders/User/workspaceStorage",
    },
    "VSCodium": {
        "linux": ".config/VSCodium/User/workspaceStorage",
        "darwin": "Library/Application Support/VSCodium/User/workspaceStorage",
        "win32": "VSCodium/User/workspaceStorage",
    },
    "Cursor": {
        "linux": ".config/Cursor/User/workspaceStorage",
        "darwin": "Library/Application Support/Cursor/User/workspaceStorage",
        "win32": "Cursor/User/workspaceStorage",
    },
}

OVERRIDE_ENV = "COPILOT_CHAT_HISTORY_PATH"


def _os_family(platform: str) -> str:
    if platform == "win32":
        return "win32"
    if platform == "darwin":
        return "darwin"
    return "linux"


def get_variant_root(
    variant: str,
    platform: Optional[str] = None,
    home: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Path:
    """Return the workspaceStorage path for one variant, whether or not it exists."""
    platform = platform or sys.platform
    home = home if home is not None else Path.home()
    environ = environ if environ is not None else os.environ

    family = _os_family(platform)
    relative = EDITOR_VARIANTS[variant][family]

    if family == "win32":
        app_data = environ.get("APPDATA")
        base = Path(app_data) if app_data else home / "AppData" / "Roaming"
        return base / relative
    return home / relative


def get_workspace_storage_paths(
    platform: Optional[str] = None,
    home: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> list[StorageRoot]:
    """Return the workspaceStorage directories that exist on this machine.

    Setting ``COPILOT_CHAT_HISTORY_PATH`` replaces variant probing with that
    single directory.
    """
    environ = environ if environ is not None else os.environ

    override = environ.get(OVERRIDE_ENV)
    if override:
        path = Path(override)
        return [StorageRoot(variant="Custom", path=path)] if path.is_dir() else []

    roots = []
    for variant in EDITOR_VARIANTS:
        path = get_variant_root(variant, platform=platform, home=home, environ=environ)
        if path.is_dir():
            roots.append(StorageRoot(variant=variant, path=path))
    return roots
