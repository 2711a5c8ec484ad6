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

from dataclasses import dataclass
from pathlib import Path

from .errors import DownloadFailed
from .release import AssetDescriptor
from .transport import TransportError
from .utils.checksummer import load_checksum_manifest, verify_file
from .utils.index import log_message


@dataclass(frozen=True)
class VerifiedArchive:
    """A downloaded archive whose digest matched the checksum manifest."""
    path: Path
    sha256: str
    descriptor: AssetDescriptor


def _download(downloader, url: str, dest: Path, what: str) -> Path:
    log_message(f"Downloading {what} from: {url}")
    try:
        return downloader.download(url, dest)
    except TransportError as e:
        raise DownloadFailed(f"Failed to download {what}: {e}") from e


def fetch_and_verify(descriptor: AssetDescriptor, workspace: Path, downloader) -> VerifiedArchive:
    """
    Download an asset and its checksum manifest, then authenticate the asset.

    Nothing outside the workspace is touched. A VerifiedArchive is only
    returned once the asset's SHA-256 matches the manifest entry for its exact
    filename.

    Args:
        descriptor: Asset to fetch
        workspace: Run-scoped scratch directory
        downloader: Object providing download(url, dest)

    Returns:
        VerifiedArchive: Path and digest of the verified archive

    Raises:
        DownloadFailed: Either download failed
        ChecksumEntryMissing: Manifest has no line for the asset
        ChecksumMismatch: Digest differs
    """
    workspace = Path(workspace)
    archive_path = _download(downloader, descriptor.download_url,
                             workspace / descriptor.filename, "release package")
    manifest_path = _download(downloader, descriptor.checksum_manifest_url,
                              workspace / descriptor.checksum_manifest_filename, "checksums")

    log_message("Verifying SHA256 checksum...")
    try:
        manifest = load_checksum_manifest(manifest_path)
    except OSError as e:
        raise DownloadFailed(f"Downloaded checksum manifest is unreadable: {e}") from e

    digest = verify_file(archive_path, descriptor.filename, manifest)
    log_message("Checksum verification successful.")
    return VerifiedArchive(path=archive_path, sha256=digest, descriptor=descriptor)
