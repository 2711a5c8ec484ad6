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
Installer error taxonomy.

Every failure of the install pipeline is one of these exceptions. Each class
carries the name of the stage it belongs to so the orchestrator and the CLI
can report which stage failed without inspecting the message.
"""


class InstallError(Exception):
    """Base exception for install pipeline failures."""
    stage = "install"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def describe(self) -> str:
        """One-line, stage-tagged message for the operator."""
        return f"[{self.stage}] {self.message}"


class PreconditionFailed(InstallError):
    """Missing privilege or tooling, detected before any network activity."""
    stage = "preconditions"


class UnsupportedPlatform(InstallError):
    """Host OS or CPU architecture has no matching release asset."""
    stage = "platform"

    def __init__(self, message: str, raw_value: str = ""):
        super().__init__(message)
        self.raw_value = raw_value


class VersionResolutionFailed(InstallError):
    """Latest version could not be determined (network, rate limit, bad payload)."""
    stage = "resolve"


class DownloadFailed(InstallError):
    """Asset or checksum manifest could not be downloaded."""
    stage = "fetch"


class ChecksumEntryMissing(InstallError):
    """Checksum manifest has no line for the resolved asset filename."""
    stage = "verify"


class ChecksumMismatch(InstallError):
    """Downloaded asset digest differs from the manifest."""
    stage = "verify"

    def __init__(self, filename: str, expected: str, actual: str):
        super().__init__(
            f"CHECKSUM MISMATCH for {filename}: expected {expected}, got {actual}. "
            "The download may be corrupt or TAMPERED WITH; refusing to install it."
        )
        self.filename = filename
        self.expected = expected
        self.actual = actual


class UnexpectedArchiveLayout(InstallError):
    """Archive could not be extracted or lacks the expected directory/files."""
    stage = "install"


class InstallWriteFailed(InstallError):
    """Executables could not be written into the install directory."""
    stage = "install"


class ConfigWriteFailed(InstallError):
    """Default configuration could not be checked for or written."""
    stage = "config"


class ServiceRegistrationFailed(InstallError):
    """Unit file could not be written or the supervisor rejected it."""
    stage = "service"
