"""Explorer configuration file management.

Reads and writes the .explorer_config JSON file that names the project
manifest, the tests directory, the directories to skip while scanning,
and the commands and timeouts used for discovery and test runs.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_FILE = ".explorer_config"

# Default configuration values
DEFAULT_CONFIG: dict[str, Any] = {
    "manifest_name": "elm.json",
    "tests_dir": "tests",
    "exclude_dirs": ["node_modules", "elm-stuff"],
    "test_command": ["elm-test"],
    "discovery_command": None,
    "run_timeout": 600,
    "discovery_timeout": 60,
}


def _as_command(value: Any) -> list[str] | None:
    """Normalize a command given as a list or a single string."""
    if value is None:
        return None
    if isinstance(value, str):
        return value.split() or None
    return [str(part) for part in value] or None


class ExplorerConfig:
    """Manages the .explorer_config JSON configuration file."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        if path is not None and path.exists():
            self._load()

    def _load(self) -> None:
        """Load config from the file."""
        assert self.path is not None
        try:
            text = self.path.read_text()
            data = json.loads(text)
            if isinstance(data, dict):
                self._data = {**DEFAULT_CONFIG, **data}
        except (json.JSONDecodeError, OSError):
            self._data = dict(DEFAULT_CONFIG)

    def save(self) -> None:
        """Write config to the file."""
        if self.path is None:
            raise ValueError("No config file path specified")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self._data, f, indent=2)
            f.write("\n")

    @property
    def config(self) -> dict[str, Any]:
        """Get the full configuration dict."""
        return dict(self._data)

    @property
    def manifest_name(self) -> str:
        return str(self._data.get("manifest_name") or DEFAULT_CONFIG["manifest_name"])

    @property
    def tests_dir(self) -> str:
        return str(self._data.get("tests_dir") or DEFAULT_CONFIG["tests_dir"])

    @property
    def exclude_dirs(self) -> list[str]:
        val = self._data.get("exclude_dirs", DEFAULT_CONFIG["exclude_dirs"])
        if val is None:
            return []
        return [str(d) for d in val]

    @property
    def test_command(self) -> list[str]:
        """Get the test command prefix (selected files are appended)."""
        return (
            _as_command(self._data.get("test_command"))
            or list(DEFAULT_CONFIG["test_command"])
        )

    @property
    def discovery_command(self) -> list[str] | None:
        """Get the discovery command (None = not configured)."""
        return _as_command(self._data.get("discovery_command"))

    @property
    def run_timeout(self) -> float:
        """Get the per-project test run timeout in seconds."""
        return float(
            self._data.get("run_timeout", DEFAULT_CONFIG["run_timeout"])
        )

    @property
    def discovery_timeout(self) -> float:
        """Get the per-project discovery timeout in seconds."""
        return float(
            self._data.get(
                "discovery_timeout", DEFAULT_CONFIG["discovery_timeout"]
            )
        )

    def set_config(
        self,
        test_command: list[str] | None = None,
        discovery_command: list[str] | None = None,
    ) -> None:
        """Update configuration values."""
        if test_command is not None:
            self._data["test_command"] = list(test_command)
        if discovery_command is not None:
            self._data["discovery_command"] = list(discovery_command)
