"""
Shared test fixtures: in-memory downloader, fake supervisor, release builder.
"""

import hashlib
import io
import tarfile
from pathlib import Path
from typing import Dict, Optional

import pytest

from frpinstall.config import InstallerConfig
from frpinstall.host import PlatformTag
from frpinstall.transport import TransportError
from frpinstall.utils.systemd import SupervisorError

REPO = "acme/widget"
TAG = "v2.3.1"
VERSION = "2.3.1"
ARCHIVE_DIR = "widget_2.3.1_linux_amd64"
ASSET = f"{ARCHIVE_DIR}.tar.gz"
MANIFEST = "widget_2.3.1_checksums.txt"
DOWNLOAD_BASE = f"https://github.com/{REPO}/releases/download/{TAG}"
LATEST_URL = f"https://api.github.com/repos/{REPO}/releases/latest"


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def make_tarball(files: Dict[str, bytes]) -> bytes:
    """Build a gzip tarball in memory from {member path: content}."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


class FakeDownloader:
    """Serves canned JSON documents and files by URL."""

    def __init__(self):
        self.json: Dict[str, object] = {}
        self.files: Dict[str, object] = {}
        self.calls = []

    def get_json(self, url):
        self.calls.append(("get_json", url))
        if url not in self.json:
            raise TransportError(f"404 for {url}")
        value = self.json[url]
        if isinstance(value, Exception):
            raise value
        return value

    def download(self, url, dest):
        self.calls.append(("download", url))
        if url not in self.files:
            raise TransportError(f"404 for {url}")
        value = self.files[url]
        if isinstance(value, Exception):
            raise value
        Path(dest).write_bytes(value)
        return Path(dest)


class FakeSupervisor:
    """Records supervisor commands; can be told to fail one of them."""

    def __init__(self, available: bool = True, fail_on: Optional[str] = None):
        self._available = available
        self.fail_on = fail_on
        self.calls = []

    def available(self):
        return self._available

    def _record(self, *call):
        self.calls.append(call)
        if call[0] == self.fail_on:
            raise SupervisorError(f"systemctl {call[0]} failed")

    def reload(self):
        self._record("reload")

    def enable(self, service):
        self._record("enable", service)

    def is_active(self, service):
        return False

    def is_enabled(self, service):
        return ("enable", service) in self.calls


class FakeRelease:
    """A published release: archive bytes, manifest text and the downloader serving them."""

    def __init__(self, downloader: FakeDownloader, executables=("widgets", "widgetc")):
        self.downloader = downloader
        self.binaries = {name: f"#!/bin/sh\necho {name} {VERSION}\n".encode() for name in executables}
        self.archive = make_tarball({f"{ARCHIVE_DIR}/{name}": data for name, data in self.binaries.items()})
        self.manifest_lines = [
            f"{sha256_hex(b'other asset')}  widget_2.3.1_linux_arm64.tar.gz",
            f"{sha256_hex(self.archive)}  {ASSET}",
        ]
        downloader.json[LATEST_URL] = {"tag_name": TAG}
        self.publish()

    def publish(self):
        self.downloader.files[f"{DOWNLOAD_BASE}/{ASSET}"] = self.archive
        self.downloader.files[f"{DOWNLOAD_BASE}/{MANIFEST}"] = ("\n".join(self.manifest_lines) + "\n").encode()

    def set_archive(self, data: bytes, update_manifest: bool = True):
        self.archive = data
        if update_manifest:
            self.manifest_lines[1] = f"{sha256_hex(data)}  {ASSET}"
        self.publish()

    def set_manifest(self, lines):
        self.manifest_lines = list(lines)
        self.publish()


@pytest.fixture
def downloader() -> FakeDownloader:
    return FakeDownloader()


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def release(downloader) -> FakeRelease:
    return FakeRelease(downloader)


@pytest.fixture
def amd64() -> PlatformTag:
    return PlatformTag(os="linux", arch="amd64")


@pytest.fixture
def config(tmp_path: Path) -> InstallerConfig:
    """Installer settings pointing every path into tmp_path."""
    return InstallerConfig(
        repository=REPO,
        executables=("widgets", "widgetc"),
        install_dir=str(tmp_path / "bin"),
        config_dir=str(tmp_path / "etc" / "widget"),
        unit_dir=str(tmp_path / "systemd"),
        service_name="widgets",
        service_executable="widgets",
        config_file="widgets.toml",
        service_description="widget Server",
        require_root=False,
        workspace_root=str(tmp_path / "workspaces"),
    )
