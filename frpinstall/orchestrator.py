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
Install Orchestrator

Runs the install pipeline in a fixed order:

    preconditions -> platform -> resolve -> fetch/verify -> install
    -> config -> service

The first failing stage aborts the run. Nothing is retried. The scratch
workspace is removed whatever the outcome.
"""

import os
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .bootstrap import ConfigOutcome, ensure_default_config, missing_tls_material
from .config import InstallerConfig
from .errors import ChecksumMismatch, InstallError, PreconditionFailed
from .fetcher import fetch_and_verify
from .host import PlatformTag, resolve_platform
from .installer import TarArchiver, install_executables
from .release import (
    AssetDescriptor,
    ReleaseRegistry,
    ReleaseVersion,
    derive_asset,
    is_newer,
    normalize_version,
    resolve_latest
)
from .service import ServiceUnit, register_service
from .transport import RequestsDownloader
from .utils.index import log_message, workspace
from .utils.systemd import SystemdSupervisor

VERSION_PATTERN = re.compile(r'v?(\d+\.\d+\.\d+)')


@dataclass
class InstallReport:
    """Outcome of a successful install run."""
    version: ReleaseVersion
    platform: PlatformTag
    asset: AssetDescriptor
    installed: List[Path]
    config_outcome: ConfigOutcome
    unit_path: Optional[Path] = None
    missing_tls: List[Path] = field(default_factory=list)


def get_installed_version(binary: Path) -> Optional[str]:
    """
    Ask an installed executable for its version.

    Returns:
        str: Version string, or None if the binary is missing or unreadable
    """
    if not os.path.isfile(binary) or not os.access(binary, os.X_OK):
        log_message(f"{binary} not found or not executable", "DEBUG")
        return None
    try:
        result = subprocess.run([str(binary), "--version"], capture_output=True, text=True, timeout=10)
    except (OSError, subprocess.TimeoutExpired) as e:
        log_message(f"Error running {binary} --version: {e}", "WARNING")
        return None
    if result.returncode != 0:
        log_message(f"{binary} --version exited with {result.returncode}", "DEBUG")
        return None

    output = result.stdout.strip()
    match = VERSION_PATTERN.search(output)
    if match:
        return match.group(1)
    log_message(f"Could not parse version from output: '{output}'", "WARNING")
    return None


class Orchestrator:
    """Sequences the install pipeline for one configuration."""

    def __init__(self, config: InstallerConfig, downloader=None, archiver=None, supervisor=None,
                 platform_resolver: Callable[[], PlatformTag] = resolve_platform,
                 euid: Callable[[], int] = os.geteuid):
        self.config = config
        self.downloader = downloader or RequestsDownloader(timeout=config.request_timeout)
        self.archiver = archiver or TarArchiver()
        self.supervisor = supervisor or SystemdSupervisor()
        self.registry = ReleaseRegistry(self.downloader, config.registry_api_url)
        self.platform_resolver = platform_resolver
        self.euid = euid
        self.last_workspace: Optional[Path] = None

    def check_preconditions(self) -> None:
        """
        Verify privilege and tooling before any network activity.

        Raises:
            PreconditionFailed: Not root, or the supervisor is unavailable
        """
        if self.config.require_root and self.euid() != 0:
            raise PreconditionFailed("This installer must be run as root. Please use sudo.")
        if self.config.register_service and not self.supervisor.available():
            raise PreconditionFailed(
                "Service supervisor (systemctl) is not available. Use --no-service to skip service registration."
            )

    def resolve_version(self) -> ReleaseVersion:
        if self.config.pinned_version:
            version = normalize_version(self.config.pinned_version)
            log_message(f"Using pinned {self.config.repository} version: {version}")
            return version
        return resolve_latest(self.config.repository, self.registry)

    def run(self) -> InstallReport:
        """
        Execute the full pipeline.

        Returns:
            InstallReport: What was installed and configured

        Raises:
            InstallError: The first stage failure, tagged with its stage
        """
        config = self.config
        try:
            self.check_preconditions()
            platform = self.platform_resolver()
            version = self.resolve_version()
            asset = derive_asset(version, platform, config.repository, config.download_url_template)
            log_message(f"Release asset: {asset.filename}")

            with workspace(config.workspace_root) as ws:
                self.last_workspace = ws
                archive = fetch_and_verify(asset, ws, self.downloader)
                installed = install_executables(archive, config.executables, config.install_dir,
                                                ws, self.archiver)

                outcome = ensure_default_config(config.config_path, config.config_dir)
                unit_path = None
                if config.register_service:
                    unit_path = register_service(ServiceUnit.for_config(config), config.unit_dir,
                                                 self.supervisor)
                else:
                    log_message("Skipping service registration (disabled)", "WARNING")
        except ChecksumMismatch as e:
            log_message(f"Stage '{e.stage}' failed: {e.message}", "ERROR")
            log_message("SECURITY: the archive was NOT extracted and nothing was installed.", "ERROR")
            raise
        except InstallError as e:
            log_message(f"Stage '{e.stage}' failed: {e.message}", "ERROR")
            raise

        report = InstallReport(
            version=version,
            platform=platform,
            asset=asset,
            installed=installed,
            config_outcome=outcome,
            unit_path=unit_path,
            missing_tls=missing_tls_material(config.config_dir)
        )
        self.log_next_steps(report)
        return report

    def log_next_steps(self, report: InstallReport) -> None:
        """Tell the operator what remains to be done by hand."""
        config = self.config
        log_message("=" * 65)
        log_message(f" {config.repo_basename} version {report.version} has been successfully installed!")
        log_message("=" * 65)
        log_message("ACTION REQUIRED:")
        if report.config_outcome is ConfigOutcome.CREATED:
            log_message(f"1. Edit the server configuration file: {config.config_path}")
            log_message("   (Remember to set a strong password for the web server)")
        else:
            log_message(f"1. Review the existing configuration file: {config.config_path}")
        if report.missing_tls:
            log_message(f"2. Place your certificates in '{config.config_dir}/':")
            for path in report.missing_tls:
                log_message(f"   - {path.name} (missing)", "WARNING")
        else:
            log_message(f"2. Certificates found in '{config.config_dir}/'")
        if report.unit_path is not None:
            log_message(f"3. Start the service: sudo systemctl start {config.service_name}")
            log_message(f"4. Check the service status: sudo systemctl status {config.service_name}")
        log_message("=" * 65)

    def check(self) -> Dict[str, Any]:
        """
        Compare the installed version with the latest release.

        Returns:
            dict: Installed/latest versions, update availability and service state
        """
        installed = get_installed_version(self.config.service_binary)
        latest = self.resolve_version()
        if installed:
            log_message(f"Current {self.config.service_executable} version: {installed}")
        else:
            log_message(f"{self.config.service_binary} is not installed", "WARNING")
        log_message(f"Latest available version: {latest}")

        update_available = installed is None or is_newer(latest.version, installed)
        result = {
            "success": True,
            "installed_version": installed,
            "latest_version": latest.version,
            "update_available": update_available
        }
        if self.supervisor.available():
            result["service_enabled"] = self.supervisor.is_enabled(self.config.service_name)
            result["service_active"] = self.supervisor.is_active(self.config.service_name)
        if update_available:
            log_message("Update available - run 'frpinstall install' to apply it")
        else:
            log_message(f"{self.config.service_executable} is already at the latest version")
        return result
