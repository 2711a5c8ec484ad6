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

"""
Permission Management Utilities

Applies mode and ownership to the files the installer writes: staged
executables, the default configuration and the service unit.
"""

import os
import shutil
from dataclasses import dataclass
from typing import List, Optional, Union

from .index import log_message

EXECUTABLE_MODE = 0o755
CONFIG_FILE_MODE = 0o644
UNIT_FILE_MODE = 0o644


@dataclass
class PermissionTarget:
    """Represents a file with its desired permissions."""
    path: str
    mode: Union[str, int]  # Can be octal string like "755" or int like 0o755
    owner: Optional[str] = None
    group: Optional[str] = None

    def __post_init__(self):
        """Convert mode to integer if it's a string."""
        if isinstance(self.mode, str):
            self.mode = int(self.mode[2:] if self.mode.startswith('0o') else self.mode, 8)
        self.path = str(self.path)


class PermissionManager:
    """Sets file modes and ownership for installer outputs."""

    def __init__(self, component: str = "installer"):
        self.component = component

    def set_permissions(self, targets: List[PermissionTarget]) -> bool:
        """
        Set permissions for multiple targets.

        Args:
            targets: List of PermissionTarget objects

        Returns:
            bool: True only if every target was updated
        """
        if not targets:
            log_message("No permission targets specified", "DEBUG")
            return True

        failed = [t.path for t in targets if not self._set_single_permission(t)]
        if failed:
            log_message(f"[{self.component}] Failed to set permissions for: {', '.join(failed)}", "ERROR")
            return False
        return True

    def _set_single_permission(self, target: PermissionTarget) -> bool:
        """Set mode, then ownership when requested."""
        try:
            os.chmod(target.path, target.mode)
            if target.owner or target.group:
                shutil.chown(target.path, user=target.owner, group=target.group)
            log_message(f"✓ Set permissions for {target.path} ({oct(target.mode)})", "DEBUG")
            return True
        except (OSError, LookupError) as e:
            log_message(f"Error setting permissions for {target.path}: {e}", "ERROR")
            return False
