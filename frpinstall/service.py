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
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .config import InstallerConfig
from .errors import ServiceRegistrationFailed
from .utils.index import log_message
from .utils.permissions import UNIT_FILE_MODE, PermissionManager, PermissionTarget
from .utils.systemd import SupervisorError


@dataclass(frozen=True)
class ServiceUnit:
    """Supervision unit for the installed server executable."""
    name: str
    description: str
    exec_path: str
    config_path: str
    user: str = "nobody"
    group: str = "nogroup"
    restart: str = "on-failure"
    restart_sec: int = 5
    after: str = "network.target"
    wanted_by: str = "multi-user.target"

    @property
    def exec_start(self) -> str:
        return f"{self.exec_path} -c {self.config_path}"

    def render(self) -> str:
        return (
            "[Unit]\n"
            f"Description={self.description}\n"
            f"After={self.after}\n"
            f"Wants={self.after}\n"
            "\n"
            "[Service]\n"
            "Type=simple\n"
            f"User={self.user}\n"
            f"Group={self.group}\n"
            f"Restart={self.restart}\n"
            f"RestartSec={self.restart_sec}s\n"
            f"ExecStart={self.exec_start}\n"
            "\n"
            "[Install]\n"
            f"WantedBy={self.wanted_by}\n"
        )

    @classmethod
    def for_config(cls, config: InstallerConfig) -> "ServiceUnit":
        return cls(
            name=config.service_name,
            description=config.service_description,
            exec_path=str(config.service_binary),
            config_path=str(config.config_path),
            user=config.service_user,
            group=config.service_group,
            restart_sec=config.restart_sec
        )


def write_unit_file(unit: ServiceUnit, unit_dir: Union[str, Path]) -> Path:
    """
    Atomically (re)write the unit file.

    Returns:
        Path: The unit file

    Raises:
        OSError: Write or rename failed
        ServiceRegistrationFailed: Mode could not be set
    """
    unit_dir = Path(unit_dir)
    unit_dir.mkdir(parents=True, exist_ok=True)
    unit_path = unit_dir / f"{unit.name}.service"

    fd, tmp_path = tempfile.mkstemp(dir=unit_dir, prefix=f".{unit.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(unit.render())
            f.flush()
            os.fsync(f.fileno())
        if not PermissionManager("service").set_permissions([PermissionTarget(tmp_path, UNIT_FILE_MODE)]):
            raise ServiceRegistrationFailed(f"Cannot set permissions on {unit_path}")
        os.replace(tmp_path, unit_path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    return unit_path


def register_service(unit: ServiceUnit, unit_dir: Union[str, Path], supervisor) -> Path:
    """
    Write the unit file and have the supervisor pick it up.

    The unit is rewritten on every run so it always points at the current
    install paths. The service is reloaded and enabled but not started.

    Args:
        unit: Unit to register
        unit_dir: Directory the supervisor loads units from
        supervisor: Object providing reload() and enable(name)

    Returns:
        Path: The written unit file

    Raises:
        ServiceRegistrationFailed: Write failed or the supervisor command failed
    """
    log_message(f"Creating systemd service file for {unit.name}...")
    try:
        unit_path = write_unit_file(unit, unit_dir)
    except OSError as e:
        raise ServiceRegistrationFailed(f"Failed to write unit file for {unit.name}: {e}") from e

    try:
        log_message("Reloading systemd daemon...")
        supervisor.reload()
        log_message(f"Enabling {unit.name} service to start on boot...")
        supervisor.enable(unit.name)
    except SupervisorError as e:
        raise ServiceRegistrationFailed(str(e)) from e

    log_message(f"✓ Registered {unit_path}")
    return unit_path
