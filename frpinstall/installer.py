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
Installer

Extracts a verified release archive and places its executables into the
install directory. Every executable is staged next to its final path first;
the staged files are renamed into place only after all of them were written,
so a failed run leaves the install directory as it found it.
"""

import os
import shutil
import stat
import tarfile
import tempfile
import zlib
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from .errors import InstallWriteFailed, UnexpectedArchiveLayout
from .fetcher import VerifiedArchive
from .utils.index import log_message
from .utils.permissions import EXECUTABLE_MODE, PermissionManager, PermissionTarget


class TarArchiver:
    """Extracts gzip tarballs with the tarfile 'data' filter."""

    def extract(self, archive_path: Union[str, Path], dest: Union[str, Path]) -> None:
        """
        Extract an archive into dest.

        Raises:
            UnexpectedArchiveLayout: Archive is corrupt or has unsafe members,
                or this Python's tarfile has no extraction filters
        """
        # 3.11.0-3.11.3 satisfy requires-python but predate extraction filters
        if not hasattr(tarfile, "data_filter"):
            raise UnexpectedArchiveLayout(
                f"Refusing to extract {Path(archive_path).name}: this Python's tarfile lacks the "
                "'data' extraction filter (upgrade to 3.10.12, 3.11.4 or later)"
            )
        try:
            with tarfile.open(archive_path, "r:gz") as tar:
                tar.extractall(dest, filter="data")
        except (tarfile.TarError, OSError, EOFError, zlib.error) as e:
            raise UnexpectedArchiveLayout(f"Failed to extract {Path(archive_path).name}: {e}") from e


def _discard(staged: List[Tuple[str, Path]]) -> None:
    for tmp_path, _ in staged:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            log_message(f"Failed to remove staged file {tmp_path}: {e}", "WARNING")


def _fsync_dir(path: Path) -> None:
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def locate_executables(extract_root: Path, archive_dir: str, names: Iterable[str]) -> List[Path]:
    """
    Find the target executables inside an extracted release.

    Raises:
        UnexpectedArchiveLayout: Expected directory or file is missing
    """
    source_dir = extract_root / archive_dir
    try:
        dir_mode = os.lstat(source_dir).st_mode
    except FileNotFoundError:
        dir_mode = 0
    except OSError as e:
        raise UnexpectedArchiveLayout(f"Cannot inspect {archive_dir}/: {e}") from e
    if not stat.S_ISDIR(dir_mode):
        raise UnexpectedArchiveLayout(f"Archive does not contain the expected directory {archive_dir}/")

    sources = []
    for name in names:
        source = source_dir / name
        try:
            mode = os.lstat(source).st_mode
        except FileNotFoundError:
            raise UnexpectedArchiveLayout(f"Archive is missing {archive_dir}/{name}") from None
        except OSError as e:
            raise UnexpectedArchiveLayout(f"Cannot inspect {archive_dir}/{name}: {e}") from e
        if not stat.S_ISREG(mode):
            raise UnexpectedArchiveLayout(f"{archive_dir}/{name} is not a regular file")
        sources.append(source)
    return sources


def stage_executable(source: Path, install_dir: Path, permissions: PermissionManager) -> str:
    """
    Copy an executable to a hidden temporary file inside install_dir.

    Returns:
        str: Path of the staged file

    Raises:
        OSError: Copy failed
        InstallWriteFailed: Mode could not be set
    """
    fd, tmp_path = tempfile.mkstemp(dir=install_dir, prefix=f".{source.name}.", suffix=".staged")
    try:
        with os.fdopen(fd, 'wb') as out, open(source, 'rb') as src:
            shutil.copyfileobj(src, out)
            out.flush()
            os.fsync(out.fileno())
        if not permissions.set_permissions([PermissionTarget(tmp_path, EXECUTABLE_MODE)]):
            raise InstallWriteFailed(f"Could not make staged {source.name} executable")
    except BaseException:
        os.unlink(tmp_path)
        raise
    return tmp_path


def install_executables(archive: VerifiedArchive, names: Iterable[str], install_dir: Union[str, Path],
                        workspace: Path, archiver=None) -> List[Path]:
    """
    Extract a verified archive and install the named executables.

    Args:
        archive: Archive that passed checksum verification
        names: Executables to install
        install_dir: Destination directory
        workspace: Run-scoped scratch directory
        archiver: Object providing extract(archive_path, dest)

    Returns:
        list: Final paths of the installed executables

    Raises:
        UnexpectedArchiveLayout: Extraction failed or files are missing
        InstallWriteFailed: Staging or renaming failed
    """
    archiver = archiver or TarArchiver()
    install_dir = Path(install_dir)
    names = list(names)

    log_message(f"Extracting {archive.descriptor.filename}...")
    extract_root = Path(workspace) / "extracted"
    try:
        extract_root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise InstallWriteFailed(f"Cannot create extraction directory {extract_root}: {e}") from e
    archiver.extract(archive.path, extract_root)

    sources = locate_executables(extract_root, archive.descriptor.archive_dir, names)

    log_message(f"Installing {', '.join(names)} to {install_dir}...")
    permissions = PermissionManager("installer")
    staged: List[Tuple[str, Path]] = []
    try:
        install_dir.mkdir(parents=True, exist_ok=True)
        for source in sources:
            staged.append((stage_executable(source, install_dir, permissions), install_dir / source.name))
    except OSError as e:
        _discard(staged)
        raise InstallWriteFailed(f"Failed to stage executables in {install_dir}: {e}") from e
    except BaseException:
        _discard(staged)
        raise

    installed = []
    try:
        for tmp_path, final_path in staged:
            os.replace(tmp_path, final_path)
            installed.append(final_path)
    except OSError as e:
        _discard(staged[len(installed):])
        raise InstallWriteFailed(
            f"Failed to move executables into {install_dir} after installing "
            f"{[p.name for p in installed]}: {e}"
        ) from e

    try:
        _fsync_dir(install_dir)
    except OSError as e:
        log_message(f"Could not sync {install_dir}: {e}", "WARNING")

    for path in installed:
        log_message(f"✓ Installed {path}")
    return installed
