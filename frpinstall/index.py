#!/usr/bin/env python3
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

import sys
import argparse
import traceback
from typing import List, Optional

from .config import InstallerConfig, load_module_config
from .errors import InstallError
from .orchestrator import Orchestrator
from .utils.index import log_message, setup_logging

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_UPDATE_AVAILABLE = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="frpinstall",
        description="Install frp release binaries with checksum verification"
    )
    parser.add_argument("--config-file", default=None,
                        help="Installer settings JSON (default: packaged index.json)")
    parser.add_argument("--debug", action="store_true",
                        help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    install = subparsers.add_parser("install", help="Download, verify and install the latest release")
    install.add_argument("--repo", default=None,
                         help="GitHub repository (owner/name)")
    install.add_argument("--version", default=None,
                         help="Install this release instead of the latest")
    install.add_argument("--install-dir", default=None,
                         help="Directory for the executables")
    install.add_argument("--config-dir", default=None,
                         help="Directory for the server configuration")
    install.add_argument("--unit-dir", default=None,
                         help="Directory for the systemd unit")
    install.add_argument("--no-service", action="store_true",
                         help="Do not register the systemd service")

    check = subparsers.add_parser("check", help="Compare the installed version with the latest release")
    check.add_argument("--repo", default=None,
                       help="GitHub repository (owner/name)")
    check.add_argument("--install-dir", default=None,
                       help="Directory holding the executables")

    show = subparsers.add_parser("show-config", help="Print the effective installer settings")

    # Accepted after the subcommand too; SUPPRESS keeps a top-level --debug intact
    for sub in (install, check, show):
        sub.add_argument("--debug", action="store_true", default=argparse.SUPPRESS,
                         help="Enable debug logging")
    return parser


def build_config(args: argparse.Namespace) -> InstallerConfig:
    """Merge index.json settings with command line overrides."""
    overrides = {
        "repository": getattr(args, "repo", None),
        "install_dir": getattr(args, "install_dir", None),
        "config_dir": getattr(args, "config_dir", None),
        "unit_dir": getattr(args, "unit_dir", None),
        "pinned_version": getattr(args, "version", None),
    }
    if getattr(args, "no_service", False):
        overrides["register_service"] = False
    if args.command == "check":
        overrides["require_root"] = False
    return InstallerConfig.from_module_config(load_module_config(args.config_file), **overrides)


def run_install(config: InstallerConfig, orchestrator: Optional[Orchestrator] = None) -> int:
    orchestrator = orchestrator or Orchestrator(config)
    try:
        orchestrator.run()
    except InstallError as e:
        print(f"frpinstall: {e.describe()}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_OK


def run_check(config: InstallerConfig, orchestrator: Optional[Orchestrator] = None) -> int:
    orchestrator = orchestrator or Orchestrator(config)
    try:
        result = orchestrator.check()
    except InstallError as e:
        print(f"frpinstall: {e.describe()}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_UPDATE_AVAILABLE if result["update_available"] else EXIT_OK


def show_config(config: InstallerConfig) -> int:
    log_message("Current installer configuration:")
    for key, value in config.as_dict().items():
        log_message(f"  {key}: {value}")
    log_message(f"  config_path: {config.config_path}")
    log_message(f"  unit_path: {config.unit_path}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the installer.

    Exit codes: 0 success, 1 any failed stage, 2 update available (check),
    130 interrupted.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(debug=args.debug)
        try:
            config = build_config(args)
        except ValueError as e:
            print(f"frpinstall: [config] {e}", file=sys.stderr)
            return EXIT_FAILURE

        if args.command == "install":
            return run_install(config)
        elif args.command == "check":
            return run_check(config)
        return show_config(config)

    except KeyboardInterrupt:
        log_message("Installation interrupted by user", "WARNING")
        return EXIT_INTERRUPTED
    except Exception as e:
        log_message(f"Unhandled error in installer: {e}", "ERROR")
        traceback.print_exc()
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
