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
Release Locator

Resolves the latest published version of a repository and derives the
names and URLs of the matching release asset and checksum manifest.
"""

import re
from dataclasses import dataclass
from typing import Optional

from packaging.version import InvalidVersion, Version

from .errors import VersionResolutionFailed
from .host import PlatformTag
from .transport import TransportError
from .utils.index import log_message

VERSION_PREFIXES = "vV"
# MAJOR.MINOR.PATCH with optional pre-release and build metadata
SEMVER_PATTERN = re.compile(r"^\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$")
DEFAULT_DOWNLOAD_URL_TEMPLATE = "https://github.com/{repo}/releases/download/{tag}/{filename}"


@dataclass(frozen=True)
class ReleaseVersion:
    """Normalized release version plus the tag it was published under."""
    version: str
    tag: str

    def __str__(self) -> str:
        return self.version


@dataclass(frozen=True)
class AssetDescriptor:
    """Names and URLs of one platform archive and its checksum manifest."""
    filename: str
    download_url: str
    checksum_manifest_filename: str
    checksum_manifest_url: str
    archive_dir: str


def normalize_version(tag: Optional[str]) -> ReleaseVersion:
    """
    Strip the version prefix from a release tag and validate the remainder.

    Args:
        tag: Tag such as "v0.61.0" (or an already bare "0.61.0")

    Returns:
        ReleaseVersion: The normalized version

    Raises:
        VersionResolutionFailed: Tag is empty or not a version
    """
    raw = (tag or "").strip()
    version = raw[1:] if raw[:1] in VERSION_PREFIXES else raw
    if not version:
        raise VersionResolutionFailed("Release tag is empty")
    if not SEMVER_PATTERN.match(version):
        raise VersionResolutionFailed(f"Release tag {raw!r} is not a semantic version")
    # A bare version pinned by the operator is published under the v-prefixed tag
    return ReleaseVersion(version=version, tag=raw if raw != version else f"v{version}")


def is_newer(candidate: str, current: str) -> bool:
    """
    Tell whether candidate is a later release than current.

    Versions packaging cannot order (some SemVer pre-release forms) are
    treated as newer whenever they differ.
    """
    try:
        return Version(candidate) > Version(current)
    except InvalidVersion:
        return candidate != current


class ReleaseRegistry:
    """Client for a GitHub-style releases API."""

    def __init__(self, downloader, api_url: str = "https://api.github.com"):
        self.downloader = downloader
        self.api_url = api_url.rstrip("/")

    def latest_release_url(self, repository: str) -> str:
        return f"{self.api_url}/repos/{repository}/releases/latest"

    def latest_tag(self, repository: str) -> str:
        """
        Return the tag_name of the latest release.

        Raises:
            VersionResolutionFailed: Request failed or the payload has no tag
        """
        url = self.latest_release_url(repository)
        try:
            data = self.downloader.get_json(url)
        except TransportError as e:
            raise VersionResolutionFailed(
                f"Failed to fetch the latest {repository} release. Check network or API rate limits. ({e})"
            ) from e

        tag = data.get("tag_name") if isinstance(data, dict) else None
        if not isinstance(tag, str) or not tag.strip():
            raise VersionResolutionFailed(f"Latest {repository} release response has no tag_name")
        return tag


def resolve_latest(repository: str, registry: ReleaseRegistry) -> ReleaseVersion:
    """
    Resolve the latest published version of a repository.

    Args:
        repository: "owner/name"
        registry: Registry client

    Returns:
        ReleaseVersion: Normalized latest version
    """
    log_message(f"Fetching the latest {repository} version...")
    version = normalize_version(registry.latest_tag(repository))
    log_message(f"Latest {repository} version is: {version}")
    return version


def derive_asset(version: ReleaseVersion, platform: PlatformTag, repository: str,
                 url_template: str = DEFAULT_DOWNLOAD_URL_TEMPLATE) -> AssetDescriptor:
    """
    Derive the asset and checksum manifest for a version and platform.

    Pure string templating; performs no I/O.

    Args:
        version: Resolved release version
        platform: Target platform
        repository: "owner/name"
        url_template: Download URL template with {repo}, {tag}, {version}, {filename}

    Returns:
        AssetDescriptor: Asset and manifest names and URLs
    """
    base = repository.rsplit("/", 1)[-1]
    archive_dir = f"{base}_{version.version}_{platform.os}_{platform.arch}"
    filename = f"{archive_dir}.tar.gz"
    manifest_filename = f"{base}_{version.version}_checksums.txt"

    def url_for(name: str) -> str:
        return url_template.format(repo=repository, tag=version.tag, version=version.version, filename=name)

    return AssetDescriptor(
        filename=filename,
        download_url=url_for(filename),
        checksum_manifest_filename=manifest_filename,
        checksum_manifest_url=url_for(manifest_filename),
        archive_dir=archive_dir
    )
