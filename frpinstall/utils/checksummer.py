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
SHA-256 checksum manifest handling.

Manifests use the `sha256sum` text format, one entry per line:

    <hexdigest>  <filename>

A leading `*` on the filename (binary mode marker) is ignored.
"""

import hmac
import re
import hashlib
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Set, Union

from ..errors import ChecksumEntryMissing, ChecksumMismatch, DownloadFailed
from .index import log_message

SHA256_HEX = re.compile(r'^[0-9a-fA-F]{64}$')
CHUNK_SIZE = 1024 * 1024


@dataclass
class ChecksumManifest:
    """Ordered filename -> digest mapping parsed from a manifest."""
    entries: Dict[str, str] = field(default_factory=OrderedDict)
    conflicting: Set[str] = field(default_factory=set)

    def lookup(self, filename: str) -> Optional[str]:
        return self.entries.get(filename)

    def __contains__(self, filename: str) -> bool:
        return filename in self.entries

    def __len__(self) -> int:
        return len(self.entries)


def parse_checksum_manifest(text: str) -> ChecksumManifest:
    """
    Parse a checksum manifest.

    Blank lines, comments and lines without two fields are skipped. A filename
    listed twice with different digests is remembered as conflicting.

    Args:
        text: Manifest contents

    Returns:
        ChecksumManifest: Parsed entries
    """
    manifest = ChecksumManifest()
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split(None, 1)
        if len(parts) != 2:
            log_message(f"Ignoring malformed checksum line: {line!r}", "DEBUG")
            continue
        digest, filename = parts[0].lower(), parts[1].strip()
        if filename.startswith("*"):
            filename = filename[1:]
        existing = manifest.entries.get(filename)
        if existing is not None and existing != digest:
            manifest.conflicting.add(filename)
            continue
        manifest.entries[filename] = digest
    return manifest


def load_checksum_manifest(path: Union[str, Path]) -> ChecksumManifest:
    """Read and parse a manifest file from disk."""
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        return parse_checksum_manifest(f.read())


def compute_file_sha256(path: Union[str, Path]) -> str:
    """Compute the SHA-256 hex digest of a file, reading it in chunks."""
    h = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b''):
            h.update(chunk)
    return h.hexdigest()


def digests_match(expected: str, actual: str) -> bool:
    """Case-insensitive, constant-time digest comparison. Malformed digests never match."""
    if not SHA256_HEX.match(expected or "") or not SHA256_HEX.match(actual or ""):
        return False
    return hmac.compare_digest(expected.lower(), actual.lower())


def verify_file(path: Union[str, Path], filename: str, manifest: ChecksumManifest) -> str:
    """
    Verify a downloaded file against its manifest entry.

    Only the entry whose filename equals `filename` is consulted; there is no
    fallback to any other entry.

    Args:
        path: File on disk to hash
        filename: Name the manifest lists the file under
        manifest: Parsed checksum manifest

    Returns:
        str: The verified digest

    Raises:
        ChecksumEntryMissing: No entry for `filename`
        ChecksumMismatch: Digest differs, or the manifest is ambiguous
        DownloadFailed: The downloaded file cannot be read
    """
    expected = manifest.lookup(filename)
    if expected is None:
        raise ChecksumEntryMissing(
            f"Checksum manifest has no entry for {filename} ({len(manifest)} entries listed)"
        )

    try:
        actual = compute_file_sha256(path)
    except OSError as e:
        raise DownloadFailed(f"Cannot read downloaded {filename}: {e}") from e
    if filename in manifest.conflicting:
        raise ChecksumMismatch(filename, f"{expected} (manifest lists conflicting digests)", actual)
    if not digests_match(expected, actual):
        raise ChecksumMismatch(filename, expected, actual)

    log_message(f"✓ SHA256 verified for {filename}: {actual}")
    return actual
