from __future__ import annotations

import io
import os
import sys
from pathlib import Path

import pytest

from conftest import make_zip
from goprotoc.core.archive import extract_zip, safe_member_path
from goprotoc.core.diagnostics import ArchiveIntegrityError, MaliciousArchiveError


def test_extract_writes_files_and_directories(tmp_path: Path):
    data = make_zip(
        {
            "bin/": None,
            "bin/protoc": (b"#!/bin/sh\n", 0o755),
            "include/google/protobuf/empty.proto": b'syntax = "proto3";\n',
        }
    )
    dest = tmp_path / "dist"

    written = extract_zip(io.BytesIO(data), dest)

    assert written == 2
    assert (dest / "bin").is_dir()
    assert (dest / "include/google/protobuf/empty.proto").read_bytes() == b'syntax = "proto3";\n'


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX file modes")
def test_extract_keeps_member_modes(tmp_path: Path):
    data = make_zip({"bin/protoc": (b"x", 0o755), "readme.txt": (b"y", 0o600)})
    extract_zip(io.BytesIO(data), tmp_path)
    assert os.stat(tmp_path / "bin/protoc").st_mode & 0o777 == 0o755
    assert os.stat(tmp_path / "readme.txt").st_mode & 0o777 == 0o600


def test_extract_rejects_parent_traversal(tmp_path: Path):
    data = make_zip({"../evil.txt": b"boom"})
    dest = tmp_path / "dist"
    with pytest.raises(MaliciousArchiveError) as excinfo:
        extract_zip(io.BytesIO(data), dest)
    assert excinfo.value.diagnostic.code == "E-ARCHIVE-PATH"
    assert not (tmp_path / "evil.txt").exists()


def test_extract_rejects_sibling_prefix(tmp_path: Path):
    # "dist-other" shares a string prefix with "dist" but is outside it.
    with pytest.raises(MaliciousArchiveError):
        safe_member_path(tmp_path / "dist", "../dist-other/file")


def test_safe_member_path_normalizes_inner_dots(tmp_path: Path):
    target = safe_member_path(tmp_path, "bin/../include/a.proto")
    assert target == Path(os.path.normpath(tmp_path / "include" / "a.proto"))


def test_extract_rejects_non_zip(tmp_path: Path):
    with pytest.raises(ArchiveIntegrityError):
        extract_zip(io.BytesIO(b"<html>not found</html>"), tmp_path)


def test_nested_entry_content(tmp_path: Path):
    data = make_zip({"a/b/c.txt": (b"hello", 0o640)})
    extract_zip(io.BytesIO(data), tmp_path / "dest")
    assert (tmp_path / "dest" / "a" / "b" / "c.txt").read_bytes() == b"hello"
    if sys.platform != "win32":
        assert os.stat(tmp_path / "dest" / "a" / "b" / "c.txt").st_mode & 0o777 == 0o640


def test_deep_traversal_writes_nothing_outside(tmp_path: Path):
    dest = tmp_path / "x" / "dest"
    with pytest.raises(ArchiveIntegrityError):
        extract_zip(io.BytesIO(make_zip({"../../evil": b"boom"})), dest)
    assert not (tmp_path / "evil").exists()
