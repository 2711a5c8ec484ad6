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
Utilities for the release installer.

Logging, workspace handling, checksum verification, permissions and the
systemd wrapper shared by the pipeline stages.
"""

from .index import log_message, setup_logging, workspace
from .checksummer import (
    ChecksumManifest,
    parse_checksum_manifest,
    load_checksum_manifest,
    compute_file_sha256,
    verify_file
)
from .permissions import PermissionManager, PermissionTarget
from .systemd import SystemdSupervisor, SupervisorError

__all__ = [
    'log_message',
    'setup_logging',
    'workspace',
    'ChecksumManifest',
    'parse_checksum_manifest',
    'load_checksum_manifest',
    'compute_file_sha256',
    'verify_file',
    'PermissionManager',
    'PermissionTarget',
    'SystemdSupervisor',
    'SupervisorError'
]
