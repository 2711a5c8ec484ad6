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
Bootstrap Configurator

Writes the default server configuration on first install. Once the file
exists it belongs to the operator and is never rewritten.
"""

import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import List, Union

from .errors import ConfigWriteFailed
from .utils.index import log_message
from .utils.permissions import CONFIG_FILE_MODE, PermissionManager, PermissionTarget

TLS_MATERIAL = ("server.crt", "server.key", "ca.crt")

DEFAULT_CONFIG_TEMPLATE = """\
# frps.toml - frp Server Configuration
# For detailed documentation, see: https://gofrp.org/docs/

# Main port for frp client-server communication.
bindPort = 7000

# Web server for the frp dashboard.
webServer.port = 7500
webServer.user = "admin"
webServer.password = "your_secure_password_here" # CHANGE THIS!

# --- mTLS Authentication ---
# Place your generated certificates (ca.crt, server.crt, server.key) in {config_dir}
transport.tls.force = true
transport.tls.certFile = "{config_dir}/server.crt"
transport.tls.keyFile = "{config_dir}/server.key"
transport.tls.trustedCaFile = "{config_dir}/ca.crt"
"""


class ConfigOutcome(Enum):
    CREATED = "created"
    SKIPPED_EXISTING = "skipped_existing"


def render_default_config(config_dir: Union[str, Path]) -> str:
    """Render the default configuration for a config directory."""
    return DEFAULT_CONFIG_TEMPLATE.format(config_dir=str(config_dir).rstrip("/") or "/")


def _exists(path: Path) -> bool:
    # lstat so a dangling symlink still counts as operator-owned
    try:
        os.lstat(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise ConfigWriteFailed(f"Cannot check for existing config {path}: {e}") from e
    return True


def ensure_default_config(path: Union[str, Path], config_dir: Union[str, Path]) -> ConfigOutcome:
    """
    Create the default configuration unless one already exists.

    The file is written to a temporary name and hard-linked into place, so it
    either appears complete or not at all, and an existing file is never
    replaced.

    Args:
        path: Configuration file path
        config_dir: Directory referenced by the certificate paths

    Returns:
        ConfigOutcome: CREATED or SKIPPED_EXISTING

    Raises:
        ConfigWriteFailed: Existence check or write failed
    """
    path = Path(path)
    if _exists(path):
        log_message(f"{path} already exists. Skipping creation of default config.", "WARNING")
        return ConfigOutcome.SKIPPED_EXISTING

    log_message(f"Creating configuration directory: {path.parent}")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigWriteFailed(f"Cannot create {path.parent}: {e}") from e

    log_message(f"Creating default {path.name} with mTLS configuration...")
    content = render_default_config(config_dir)
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if not PermissionManager("config").set_permissions([PermissionTarget(tmp_path, CONFIG_FILE_MODE)]):
            raise ConfigWriteFailed(f"Cannot set permissions on {path}")
        os.link(tmp_path, path)
    except FileExistsError:
        log_message(f"{path} appeared while writing. Leaving it untouched.", "WARNING")
        return ConfigOutcome.SKIPPED_EXISTING
    except OSError as e:
        raise ConfigWriteFailed(f"Failed to write {path}: {e}") from e
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)

    log_message(f"✓ Created {path}")
    return ConfigOutcome.CREATED


def missing_tls_material(config_dir: Union[str, Path]) -> List[Path]:
    """List the certificate/key files the default config references but that do not exist."""
    config_dir = Path(config_dir)
    return [config_dir / name for name in TLS_MATERIAL if not os.path.exists(config_dir / name)]
