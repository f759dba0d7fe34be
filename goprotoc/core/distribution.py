from __future__ import annotations

import shutil
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Mapping, Optional, Tuple, TypeVar
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .archive import extract_zip
from .cache import CacheLayout, distribution_key, hash_file
from .diagnostics import (
    ArchiveIntegrityError,
    ConfigError,
    FilesystemError,
    TransportError,
)
from .logging import NullEventLogger, get_logger
from .platform import executable_suffix, protoc_os_arch, resolve_goos_goarch

DEFAULT_DOWNLOAD_URL = (
    "https://github.com/protocolbuffers/protobuf/releases/download/"
    "v{version}/protoc-{version}-{os_arch}.zip"
)
DEFAULT_PROTOC_VERSION = "27.2"
DOWNLOAD_TIMEOUT_S = 30.0
# Anything smaller is a truncated download or an HTML error page.
MIN_ARCHIVE_SIZE = 1024 * 1024

T = TypeVar("T")


class OnceValue(Generic[T]):
    """Compute a value at most once, from any thread.

    A raised error is cached as well, so every caller sees the same outcome.
    """

    def __init__(self, fn: Callable[[], T]) -> None:
        self._fn = fn
        self._lock = threading.Lock()
        self._done = False
        self._value: Optional[T] = None
        self._error: Optional[BaseException] = None

    def get(self) -> T:
        if not self._done:
            with self._lock:
                if not self._done:
                    try:
                        self._value = self._fn()
                    except Exception as exc:
                        self._error = exc
                    self._done = True
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]

    @property
    def computed(self) -> bool:
        return self._done


_SHARED: Dict[Tuple[Any, ...], OnceValue[Any]] = {}
_SHARED_LOCK = threading.Lock()


def shared_once(key: Tuple[Any, ...], fn: Callable[[], T]) -> OnceValue[T]:
    """Return the process-wide cell for ``key``, creating it around ``fn`` on first use."""

    with _SHARED_LOCK:
        cell = _SHARED.get(key)
        if cell is None:
            cell = _SHARED[key] = OnceValue(fn)
        return cell


def render_download_url(template: str, version: str, os_arch: str) -> str:
    try:
        return template.format(version=version, os_arch=os_arch)
    except (KeyError, IndexError, ValueError) as exc:
        raise ConfigError.build(
            f"Invalid protoc download url template {template!r}: {exc}",
            code="E-CONFIG-URL",
            location="protoc_download_url",
        ) from exc


class DistributionCache:
    """Provision one protoc release under the cache root.

    The download URL and the extraction path are pure functions of the URL
    template, version, platform and cache root. Each is derived at most once
    per process and shared by every instance built from the same inputs.
    """

    def __init__(
        self,
        layout: CacheLayout,
        *,
        version: str = DEFAULT_PROTOC_VERSION,
        url_template: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        min_archive_size: int = MIN_ARCHIVE_SIZE,
        download_timeout: float = DOWNLOAD_TIMEOUT_S,
        events: Any = None,
    ) -> None:
        self.layout = layout
        self.version = version or DEFAULT_PROTOC_VERSION
        self.url_template = url_template or DEFAULT_DOWNLOAD_URL
        self.min_archive_size = min_archive_size
        self.download_timeout = download_timeout
        self.events = events or NullEventLogger()
        self.logger = get_logger("distribution")
        self._goos, self._goarch = resolve_goos_goarch(environ)
        url_key = ("url", self.url_template, self.version, self._goos, self._goarch)
        self._download_url = shared_once(url_key, self._compute_download_url)
        self._dist_path = shared_once(("dist", str(layout.root), *url_key[1:]), self._compute_dist_path)

    @property
    def download_url(self) -> str:
        return self._download_url.get()

    @property
    def dist_path(self) -> Path:
        return self._dist_path.get()

    @property
    def archive_path(self) -> Path:
        return self.layout.distribution_archive(self.dist_path.name)

    @property
    def protoc_path(self) -> Path:
        return self.dist_path / "bin" / f"protoc{executable_suffix(self._goos)}"

    @property
    def include_dir(self) -> Path:
        return self.dist_path / "include"

    def _compute_download_url(self) -> str:
        os_arch = protoc_os_arch(self._goos, self._goarch)
        return render_download_url(self.url_template, self.version, os_arch)

    def _compute_dist_path(self) -> Path:
        return self.layout.distribution_path(distribution_key(self.download_url))

    def ensure(self, timeout: Optional[float] = None) -> Path:
        archive = self.archive_path
        try:
            archive.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError.build(
                f"mkdir {archive.parent} error: {exc}", location=str(archive.parent)
            ) from exc
        self.logger.info("protoc archive: [%s]", archive)

        if not self._archive_usable(archive):
            self.logger.info("try download protoc from: [%s]", self.download_url)
            self._download(self.download_url, archive, self._effective_timeout(timeout))

        size = archive.stat().st_size
        if size < self.min_archive_size:
            raise ArchiveIntegrityError.build(
                f"protoc archive too small: {archive} is {size} bytes, "
                f"expected at least {self.min_archive_size}",
                location=str(archive),
                url=self.download_url,
            )

        dist = self.dist_path
        try:
            if dist.exists():
                shutil.rmtree(dist)
        except OSError as exc:
            raise FilesystemError.build(f"rmtree {dist} error: {exc}", location=str(dist)) from exc
        extract_zip(archive, dist)
        self.logger.info("unzip protoc ok: [%s]", dist)
        self.events.record(
            {
                "event": "protoc.ready",
                "version": self.version,
                "url": self.download_url,
                "path": str(dist),
                "archive_sha256": hash_file(archive),
            }
        )
        return dist

    def _archive_usable(self, archive: Path) -> bool:
        try:
            size = archive.stat().st_size
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise FilesystemError.build(f"stat {archive} error: {exc}", location=str(archive)) from exc
        if size < self.min_archive_size:
            self.logger.info("cached protoc archive undersized (%d bytes), refetching", size)
            return False
        return True

    def _effective_timeout(self, timeout: Optional[float]) -> float:
        if timeout is None:
            return self.download_timeout
        if timeout <= 0:
            raise TransportError.build(
                "download protoc error: run deadline exceeded", url=self.download_url
            )
        return min(self.download_timeout, timeout)

    def _download(self, url: str, dest: Path, timeout: float) -> None:
        request = Request(url, method="GET")
        try:
            with urlopen(request, timeout=timeout) as response:
                status = getattr(response, "status", None) or response.getcode()
                if status != 200:
                    raise TransportError.build(
                        f"download protoc error: url=[{url}] statusCode=[{status}]",
                        url=url,
                        status=status,
                    )
                body = response.read()
        except HTTPError as exc:
            raise TransportError.build(
                f"download protoc error: url=[{url}] statusCode=[{exc.code}]",
                url=url,
                status=exc.code,
            ) from exc
        except URLError as exc:
            raise TransportError.build(
                f"download protoc error: url=[{url}] reason=[{exc.reason}]", url=url
            ) from exc
        except (TimeoutError, OSError) as exc:
            raise TransportError.build(f"download protoc error: url=[{url}] err=[{exc}]", url=url) from exc

        try:
            dest.write_bytes(body)
        except OSError as exc:
            raise FilesystemError.build(f"write {dest} error: {exc}", location=str(dest)) from exc
