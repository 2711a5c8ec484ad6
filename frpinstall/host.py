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

import platform
from dataclasses import dataclass
from typing import Optional

from .errors import UnsupportedPlatform
from .utils.index import log_message

SUPPORTED_OS = "linux"

# uname -m value -> release asset architecture name
ARCH_ALIASES = {
    "x86_64": "amd64",
    "aarch64": "arm64",
    "armv7l": "arm",
}


@dataclass(frozen=True)
class PlatformTag:
    """OS/architecture pair used in release asset names."""
    os: str
    arch: str

    def __str__(self) -> str:
        return f"{self.os}_{self.arch}"


def resolve_platform(system: Optional[str] = None, machine: Optional[str] = None) -> PlatformTag:
    """
    Map the host's OS and CPU to the registry's asset naming.

    Args:
        system: OS name as reported by platform.system() (detected if None)
        machine: Hardware name as reported by uname -m (detected if None)

    Returns:
        PlatformTag: Canonical os/arch pair

    Raises:
        UnsupportedPlatform: OS is not Linux or the architecture is unknown
    """
    if system is None:
        system = platform.system()
    if machine is None:
        machine = platform.machine()

    os_name = system.strip().lower()
    if os_name != SUPPORTED_OS:
        raise UnsupportedPlatform(f"Unsupported operating system: {system}", raw_value=system)

    arch = ARCH_ALIASES.get(machine.strip())
    if arch is None:
        raise UnsupportedPlatform(f"Unsupported architecture: {machine}", raw_value=machine)

    tag = PlatformTag(os=os_name, arch=arch)
    log_message(f"Detected OS: {tag.os}, Arch: {tag.arch}")
    return tag
