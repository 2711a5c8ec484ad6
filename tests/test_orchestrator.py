"""
End-to-end tests of the install pipeline with in-memory collaborators.
"""

import os
from dataclasses import replace

import pytest

from frpinstall.bootstrap import ConfigOutcome
from frpinstall.errors import (
    ChecksumEntryMissing,
    ChecksumMismatch,
    DownloadFailed,
    PreconditionFailed,
    ServiceRegistrationFailed,
    UnsupportedPlatform,
    VersionResolutionFailed
)
from frpinstall.host import PlatformTag, resolve_platform
from frpinstall.orchestrator import Orchestrator

from conftest import ASSET, LATEST_URL, VERSION, FakeSupervisor


class SpyArchiver:
    """Records whether extraction was attempted."""

    def __init__(self):
        from frpinstall.installer import TarArchiver
        self.inner = TarArchiver()
        self.extracted = []

    def extract(self, archive_path, dest):
        self.extracted.append(archive_path)
        self.inner.extract(archive_path, dest)


def linux_amd64():
    return PlatformTag(os="linux", arch="amd64")


def make_orchestrator(config, downloader, supervisor=None, archiver=None, **kwargs):
    kwargs.setdefault("platform_resolver", linux_amd64)
    return Orchestrator(config, downloader=downloader, archiver=archiver,
                        supervisor=supervisor or FakeSupervisor(), **kwargs)


def workspaces_left(config):
    root = config.workspace_root
    return os.listdir(root) if os.path.isdir(root) else []


def test_full_install(config, downloader, release, supervisor):
    orchestrator = make_orchestrator(config, downloader, supervisor)
    report = orchestrator.run()

    assert report.version.version == VERSION
    assert report.asset.filename == ASSET
    assert report.config_outcome is ConfigOutcome.CREATED
    for name, data in release.binaries.items():
        assert (config.service_binary.parent / name).read_bytes() == data
    assert config.config_path.exists()
    assert report.unit_path == config.unit_path
    assert supervisor.calls == [("reload",), ("enable", "widgets")]
    assert [p.name for p in report.missing_tls] == ["server.crt", "server.key", "ca.crt"]
    assert not orchestrator.last_workspace.exists()
    assert workspaces_left(config) == []


def test_rerun_keeps_config_and_rewrites_unit_and_binaries(config, downloader, release):
    make_orchestrator(config, downloader).run()
    first_config = config.config_path.read_bytes()

    config.unit_path.write_text("stale")
    for name in config.executables:
        (config.service_binary.parent / name).write_bytes(b"stale")

    supervisor = FakeSupervisor()
    report = make_orchestrator(config, downloader, supervisor).run()

    assert report.config_outcome is ConfigOutcome.SKIPPED_EXISTING
    assert config.config_path.read_bytes() == first_config
    assert config.unit_path.read_text() != "stale"
    for name, data in release.binaries.items():
        assert (config.service_binary.parent / name).read_bytes() == data
    assert supervisor.calls == [("reload",), ("enable", "widgets")]


def test_operator_edited_config_survives(config, downloader, release):
    config.config_path.parent.mkdir(parents=True)
    config.config_path.write_text("bindPort = 7001\n")
    make_orchestrator(config, downloader).run()
    assert config.config_path.read_text() == "bindPort = 7001\n"


def test_checksum_mismatch_aborts_before_extraction(config, downloader, release, supervisor):
    release.set_archive(b"tampered", update_manifest=False)
    archiver = SpyArchiver()
    orchestrator = make_orchestrator(config, downloader, supervisor, archiver=archiver)

    with pytest.raises(ChecksumMismatch):
        orchestrator.run()

    assert archiver.extracted == []
    assert not os.path.exists(config.install_dir)
    assert not config.config_path.exists()
    assert supervisor.calls == []
    assert workspaces_left(config) == []


def test_manifest_without_exact_filename_aborts(config, downloader, release):
    release.set_manifest([line.replace(ASSET, "widget_2.3.1_linux_amd64.tgz") for line in release.manifest_lines])
    archiver = SpyArchiver()
    with pytest.raises(ChecksumEntryMissing):
        make_orchestrator(config, downloader, archiver=archiver).run()
    assert archiver.extracted == []
    assert not os.path.exists(config.install_dir)


def test_unsupported_platform_makes_no_network_calls(config, downloader, release):
    orchestrator = make_orchestrator(
        config, downloader, platform_resolver=lambda: resolve_platform("Linux", "mips")
    )
    with pytest.raises(UnsupportedPlatform):
        orchestrator.run()
    assert downloader.calls == []


def test_version_resolution_failure(config, downloader, release):
    downloader.json[LATEST_URL] = {"message": "API rate limit exceeded"}
    with pytest.raises(VersionResolutionFailed):
        make_orchestrator(config, downloader).run()
    assert [c for c in downloader.calls if c[0] == "download"] == []


def test_download_failure_cleans_workspace(config, downloader, release):
    downloader.files.clear()
    with pytest.raises(DownloadFailed):
        make_orchestrator(config, downloader).run()
    assert workspaces_left(config) == []


def test_unusable_workspace_root_is_stage_tagged(tmp_path, config, downloader, release):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    orchestrator = make_orchestrator(replace(config, workspace_root=str(blocker / "ws")), downloader)

    with pytest.raises(DownloadFailed) as excinfo:
        orchestrator.run()

    assert excinfo.value.describe().startswith("[fetch] Cannot create download workspace")
    assert [c for c in downloader.calls if c[0] == "download"] == []


def test_service_failure_cleans_workspace(config, downloader, release):
    orchestrator = make_orchestrator(config, downloader, FakeSupervisor(fail_on="enable"))
    with pytest.raises(ServiceRegistrationFailed):
        orchestrator.run()
    assert workspaces_left(config) == []


def test_pinned_version_skips_registry(config, downloader, release):
    pinned = replace(config, pinned_version="2.3.1")
    report = make_orchestrator(pinned, downloader).run()
    assert report.version.tag == "v2.3.1"
    assert ("get_json", LATEST_URL) not in downloader.calls


def test_no_service(config, downloader, release):
    supervisor = FakeSupervisor(available=False)
    report = make_orchestrator(replace(config, register_service=False), downloader, supervisor).run()
    assert report.unit_path is None
    assert not config.unit_path.exists()


class TestPreconditions:

    def test_requires_root(self, config, downloader, release):
        orchestrator = make_orchestrator(replace(config, require_root=True), downloader, euid=lambda: 1000)
        with pytest.raises(PreconditionFailed, match="root"):
            orchestrator.run()
        assert downloader.calls == []

    def test_root_passes(self, config, downloader, release):
        make_orchestrator(replace(config, require_root=True), downloader, euid=lambda: 0).run()

    def test_requires_supervisor(self, config, downloader, release):
        orchestrator = make_orchestrator(config, downloader, FakeSupervisor(available=False))
        with pytest.raises(PreconditionFailed, match="systemctl"):
            orchestrator.run()
        assert downloader.calls == []


class TestCheck:

    def test_not_installed(self, config, downloader, release):
        result = make_orchestrator(config, downloader).check()
        assert result["installed_version"] is None
        assert result["latest_version"] == VERSION
        assert result["update_available"] is True

    def test_up_to_date(self, config, downloader, release):
        # The fake binaries are shell scripts that print "<name> 2.3.1"
        make_orchestrator(config, downloader).run()
        result = make_orchestrator(config, downloader).check()
        assert result["installed_version"] == VERSION
        assert result["update_available"] is False
        assert result["service_enabled"] is False
