from __future__ import annotations

import io
import logging
import os
import stat
import threading
import zipfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pytest

from goprotoc.core.logging import LOGGER_NAME
from goprotoc.core.model import PackagePublic

ZipEntry = Union[bytes, str, Tuple[Union[bytes, str], int]]


def make_zip(entries: Dict[str, Optional[ZipEntry]]) -> bytes:
    """Build a zip in memory. ``None`` marks a directory entry."""

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, entry in entries.items():
            if entry is None:
                info = zipfile.ZipInfo(name.rstrip("/") + "/")
                info.external_attr = (stat.S_IFDIR | 0o755) << 16
                archive.writestr(info, b"")
                continue
            data, mode = entry if isinstance(entry, tuple) else (entry, 0o644)
            info = zipfile.ZipInfo(name)
            info.external_attr = (stat.S_IFREG | mode) << 16
            archive.writestr(info, data)
    return buffer.getvalue()


def protoc_zip(script: str, padding: int = 0) -> bytes:
    entries: Dict[str, Optional[ZipEntry]] = {
        "bin/": None,
        "bin/protoc": (script, 0o755),
        "include/google/protobuf/descriptor.proto": 'syntax = "proto2";\n',
    }
    if padding:
        # Random bytes do not deflate, so the archive clears a size floor.
        entries["readme.txt"] = os.urandom(padding)
    return make_zip(entries)


class FakeResponse:
    def __init__(self, body: bytes, status: int = 200) -> None:
        self.body = body
        self.status = status

    def getcode(self) -> int:
        return self.status

    def read(self) -> bytes:
        return self.body

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc) -> None:
        return None


class FakeGoTool:
    def __init__(self, packages: Optional[Dict[str, dict]] = None, exe_suffix: str = "") -> None:
        self.packages = dict(packages or {})
        self.exe_suffix = exe_suffix
        self.list_calls: List[Tuple[str, Tuple[str, ...]]] = []
        self.installs: List[Tuple[str, Path]] = []
        self._lock = threading.Lock()

    def add(self, pattern: str, **fields) -> None:
        self.packages[pattern] = fields

    def list_package(self, pattern: str, tags: Optional[Iterable[str]] = None) -> PackagePublic:
        with self._lock:
            self.list_calls.append((pattern, tuple(tags or ())))
        data = self.packages.get(pattern)
        if data is None:
            data = {"ImportPath": pattern, "Error": {"Err": f"cannot find package {pattern!r}"}}
        return PackagePublic.model_validate(data)

    def install(self, package: str, bin_dir: Optional[Path] = None) -> List[str]:
        name = package.split("@", 1)[0].rsplit("/", 1)[-1]
        assert bin_dir is not None
        bin_dir.mkdir(parents=True, exist_ok=True)
        binary = bin_dir / f"{name}{self.exe_suffix}"
        binary.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
        binary.chmod(0o755)
        with self._lock:
            self.installs.append((package, bin_dir))
        return ["go", "install", package]

    def env(self, name: str) -> str:
        return {"GOEXE": self.exe_suffix}.get(name, "")


@pytest.fixture
def go_tool() -> FakeGoTool:
    return FakeGoTool()


@pytest.fixture
def linux_env(tmp_path: Path) -> Dict[str, str]:
    env = dict(os.environ)
    env.update({"GOOS": "linux", "GOARCH": "amd64", "XDG_CACHE_HOME": str(tmp_path / "xdg")})
    env.pop("GOFILE", None)
    return env


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
