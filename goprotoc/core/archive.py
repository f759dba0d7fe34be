"""Zip extraction for downloaded toolchain distributions."""
from __future__ import annotations

import os
import shutil
import stat
import zipfile
from pathlib import Path
from typing import BinaryIO, Union

from .diagnostics import ArchiveIntegrityError, FilesystemError, MaliciousArchiveError

ArchiveSource = Union[Path, str, BinaryIO]


def safe_member_path(destination: Path, name: str) -> Path:
    """Return where ``name`` lands under ``destination``.

    Raises :class:`MaliciousArchiveError` when the cleaned path would leave
    ``destination``.
    """

    root = os.path.normpath(str(destination))
    target = os.path.normpath(os.path.join(root, name))
    if not target.startswith(root + os.sep):
        raise MaliciousArchiveError.build(
            f"{target}: illegal file path in archive",
            location=name,
            destination=root,
        )
    return Path(target)


def _member_mode(info: zipfile.ZipInfo) -> int:
    mode = stat.S_IMODE(info.external_attr >> 16)
    return mode or 0o644


def extract_zip(source: ArchiveSource, destination: Path) -> int:
    """Extract every entry of a zip archive under ``destination``.

    Parent directories are created as needed and each entry keeps the file
    mode recorded in the archive. Returns the number of files written.
    """

    try:
        archive = zipfile.ZipFile(source, "r")
    except zipfile.BadZipFile as exc:
        raise ArchiveIntegrityError.build(f"Corrupt zip archive: {exc}") from exc

    written = 0
    with archive:
        for info in archive.infolist():
            target = safe_member_path(destination, info.filename)
            try:
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(info, "r") as src, target.open("wb") as dst:
                    shutil.copyfileobj(src, dst)
                os.chmod(target, _member_mode(info))
            except (zipfile.BadZipFile, EOFError) as exc:
                raise ArchiveIntegrityError.build(
                    f"Corrupt zip entry {info.filename}: {exc}", location=info.filename
                ) from exc
            except OSError as exc:
                raise FilesystemError.build(
                    f"extract {info.filename} -> {target} error: {exc}",
                    location=str(target),
                ) from exc
            written += 1
    return written
