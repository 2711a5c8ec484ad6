"""
Tests for the verified fetcher.
"""

import pytest

from frpinstall.errors import ChecksumEntryMissing, ChecksumMismatch, DownloadFailed
from frpinstall.fetcher import fetch_and_verify
from frpinstall.release import derive_asset, normalize_version

from conftest import ASSET, DOWNLOAD_BASE, MANIFEST, REPO, sha256_hex


@pytest.fixture
def asset(amd64):
    return derive_asset(normalize_version("v2.3.1"), amd64, REPO)


def test_fetch_and_verify(tmp_path, downloader, release, asset):
    archive = fetch_and_verify(asset, tmp_path, downloader)
    assert archive.path == tmp_path / ASSET
    assert archive.path.read_bytes() == release.archive
    assert archive.sha256 == sha256_hex(release.archive)
    assert (tmp_path / MANIFEST).exists()
    assert downloader.calls == [
        ("download", f"{DOWNLOAD_BASE}/{ASSET}"),
        ("download", f"{DOWNLOAD_BASE}/{MANIFEST}"),
    ]


def test_tampered_archive(tmp_path, downloader, release, asset):
    release.set_archive(b"evil bytes", update_manifest=False)
    with pytest.raises(ChecksumMismatch):
        fetch_and_verify(asset, tmp_path, downloader)


def test_manifest_without_asset(tmp_path, downloader, release, asset):
    release.set_manifest(release.manifest_lines[:1])
    with pytest.raises(ChecksumEntryMissing):
        fetch_and_verify(asset, tmp_path, downloader)


def test_missing_asset_download(tmp_path, downloader, release, asset):
    del downloader.files[f"{DOWNLOAD_BASE}/{ASSET}"]
    with pytest.raises(DownloadFailed, match="release package"):
        fetch_and_verify(asset, tmp_path, downloader)


def test_missing_manifest_download(tmp_path, downloader, release, asset):
    del downloader.files[f"{DOWNLOAD_BASE}/{MANIFEST}"]
    with pytest.raises(DownloadFailed, match="checksums"):
        fetch_and_verify(asset, tmp_path, downloader)
