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
HOMESERVER Release Installer

Resolves, downloads, verifies and installs release binaries published on
GitHub, then bootstraps their configuration and systemd service.
"""

__version__ = "1.0.0"

from .utils.index import log_message
from .errors import InstallError
from .config import InstallerConfig, load_module_config
from .orchestrator import InstallReport, Orchestrator

__all__ = [
    '__version__',
    'log_message',
    'InstallError',
    'InstallerConfig',
    'load_module_config',
    'InstallReport',
    'Orchestrator'
]
