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

import shutil
import subprocess
from typing import List

from .index import log_message


class SupervisorError(Exception):
    """A supervisor command failed."""
    pass


class SystemdSupervisor:
    """Thin wrapper around systemctl for the service registrar."""

    def __init__(self, systemctl: str = "systemctl", timeout: int = 60):
        self.systemctl = systemctl
        self.timeout = timeout

    def available(self) -> bool:
        """Check that systemctl can be found on PATH."""
        return shutil.which(self.systemctl) is not None

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        cmd = [self.systemctl] + args
        log_message(f"Running: {' '.join(cmd)}", "DEBUG")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise SupervisorError(f"{' '.join(cmd)} could not run: {e}") from e
        return result

    def _check(self, args: List[str]) -> None:
        result = self._run(args)
        if result.returncode != 0:
            raise SupervisorError(
                f"{self.systemctl} {' '.join(args)} failed: {result.stderr.strip() or result.returncode}"
            )

    def reload(self) -> None:
        """Reload unit definitions."""
        self._check(["daemon-reload"])

    def enable(self, service: str) -> None:
        """Enable a service to start on boot."""
        self._check(["enable", service])

    def is_active(self, service: str) -> bool:
        return self._run(["is-active", "--quiet", service]).returncode == 0

    def is_enabled(self, service: str) -> bool:
        return self._run(["is-enabled", "--quiet", service]).returncode == 0
