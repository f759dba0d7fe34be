from __future__ import annotations

import os
import platform
import sys
from pathlib import Path
from typing import Mapping, Optional

from .diagnostics import ConfigError


_GOOS = {
    "linux": "linux",
    "darwin": "darwin",
    "windows": "windows",
}

_GOARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
}

# goos -> goarch -> release tag; "*" is the fallback for a goos.
_OS_ARCH_TAGS = {
    "darwin": {"amd64": "osx-x86_64", "arm64": "osx-aarch_64", "*": "osx-universal_binary"},
    "linux": {"386": "linux-x86_32", "amd64": "linux-x86_64", "arm64": "linux-aarch_64"},
    "windows": {"386": "win32", "amd64": "win64"},
}


def host_goos() -> str:
    system = platform.system().lower()
    return _GOOS.get(system, system)


def host_goarch() -> str:
    machine = platform.machine().lower()
    return _GOARCH.get(machine, machine)


def resolve_goos_goarch(environ: Optional[Mapping[str, str]] = None) -> tuple[str, str]:
    env = os.environ if environ is None else environ
    goos = env.get("GOOS") or host_goos()
    goarch = env.get("GOARCH") or host_goarch()
    return goos, goarch


def protoc_os_arch(goos: str, goarch: str) -> str:
    tags = _OS_ARCH_TAGS.get(goos)
    if tags is not None:
        tag = tags.get(goarch) or tags.get("*")
        if tag:
            return tag
    raise ConfigError.build(
        f"Unsupported os/arch for protoc: os=[{goos}] arch=[{goarch}]",
        code="E-CONFIG-PLATFORM",
        goos=goos,
        goarch=goarch,
    )


def executable_suffix(goos: Optional[str] = None) -> str:
    goos = goos or host_goos()
    return ".exe" if goos == "windows" else ""


def user_cache_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if environ is None else environ
    if sys.platform.startswith("win"):
        local = env.get("LocalAppData") or env.get("LOCALAPPDATA")
        if not local:
            raise ConfigError.build("%LocalAppData% is not defined", code="E-CONFIG-CACHE")
        return Path(local)
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches"
    xdg = env.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".cache"
