"""
HOMESERVER Release Installer
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import os
import json
import copy
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .utils.index import log_message

DEFAULT_MODULE_CONFIG = {
    "metadata": {
        "schema_version": "1.0.0",
        "module_name": "frp"
    },
    "config": {
        "repository": "fatedier/frp",
        "installation": {
            "registry_api_url": "https://api.github.com",
            "download_url_template": "https://github.com/{repo}/releases/download/{tag}/{filename}",
            "executables": ["frps", "frpc"],
            "request_timeout": 60
        },
        "directories": {
            "install_dir": "/usr/local/bin",
            "config_dir": "/etc/frp",
            "unit_dir": "/etc/systemd/system"
        },
        "service": {
            "name": "frps",
            "executable": "frps",
            "config_file": "frps.toml",
            "description": "frp Server",
            "user": "nobody",
            "group": "nogroup",
            "restart_sec": 5
        }
    }
}


def load_module_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load installer configuration from index.json.

    Args:
        config_path: Path to the JSON file (the packaged index.json if None)

    Returns:
        dict: Configuration data, or the built-in defaults if loading fails
    """
    if config_path is None:
        config_path = os.path.join(os.path.dirname(__file__), "index.json")
    try:
        with open(config_path, 'r') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        log_message(f"Failed to load installer config from {config_path}: {e}", "WARNING")
        return copy.deepcopy(DEFAULT_MODULE_CONFIG)


@dataclass(frozen=True)
class InstallerConfig:
    """Immutable settings for one installer run."""
    repository: str = "fatedier/frp"
    registry_api_url: str = "https://api.github.com"
    download_url_template: str = "https://github.com/{repo}/releases/download/{tag}/{filename}"
    executables: Tuple[str, ...] = ("frps", "frpc")
    request_timeout: Optional[float] = 60
    install_dir: str = "/usr/local/bin"
    config_dir: str = "/etc/frp"
    unit_dir: str = "/etc/systemd/system"
    service_name: str = "frps"
    service_executable: str = "frps"
    config_file: str = "frps.toml"
    service_description: str = "frp Server"
    service_user: str = "nobody"
    service_group: str = "nogroup"
    restart_sec: int = 5
    register_service: bool = True
    require_root: bool = True
    workspace_root: Optional[str] = None
    pinned_version: Optional[str] = None

    def __post_init__(self):
        owner, _, name = self.repository.partition("/")
        if not owner or not name or "/" in name:
            raise ValueError(f"Repository must look like 'owner/name', got {self.repository!r}")
        if not self.executables:
            raise ValueError("At least one executable must be installed")
        if self.service_executable not in self.executables:
            raise ValueError(
                f"Service executable {self.service_executable!r} is not one of {list(self.executables)}"
            )
        # Tuples keep the frozen config hashable even when built from JSON lists
        object.__setattr__(self, "executables", tuple(self.executables))

    @property
    def repo_basename(self) -> str:
        return self.repository.rsplit("/", 1)[-1]

    @property
    def config_path(self) -> Path:
        return Path(self.config_dir) / self.config_file

    @property
    def unit_path(self) -> Path:
        return Path(self.unit_dir) / f"{self.service_name}.service"

    @property
    def service_binary(self) -> Path:
        return Path(self.install_dir) / self.service_executable

    @classmethod
    def from_module_config(cls, module_config: Dict[str, Any], **overrides) -> "InstallerConfig":
        """
        Build a config from the index.json structure.

        Args:
            module_config: Data as returned by load_module_config()
            **overrides: Field values that win over the file (None values are ignored)

        Returns:
            InstallerConfig: The frozen configuration
        """
        config = module_config.get("config", {})
        installation = config.get("installation", {})
        directories = config.get("directories", {})
        service = config.get("service", {})

        values = {
            "repository": config.get("repository"),
            "registry_api_url": installation.get("registry_api_url"),
            "download_url_template": installation.get("download_url_template"),
            "executables": installation.get("executables"),
            "request_timeout": installation.get("request_timeout"),
            "install_dir": directories.get("install_dir"),
            "config_dir": directories.get("config_dir"),
            "unit_dir": directories.get("unit_dir"),
            "service_name": service.get("name"),
            "service_executable": service.get("executable"),
            "config_file": service.get("config_file"),
            "service_description": service.get("description"),
            "service_user": service.get("user"),
            "service_group": service.get("group"),
            "restart_sec": service.get("restart_sec"),
        }
        values.update(overrides)

        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown installer settings: {', '.join(sorted(unknown))}")
        return cls(**{k: v for k, v in values.items() if v is not None})

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
