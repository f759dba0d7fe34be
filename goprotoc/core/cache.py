from __future__ import annotations

import base64
import hashlib
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .platform import user_cache_dir

CACHE_DIR_NAME = ".go_protoc"
DISTRIBUTION_KIND = "protoc"


def hash_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def distribution_key(download_url: str) -> str:
    digest = hashlib.sha256(download_url.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def sanitize_import_path(import_path: str) -> str:
    return re.sub(r"\W+", "_", import_path)


@dataclass(frozen=True)
class CacheLayout:
    root: Path

    @classmethod
    def default(
        cls, cache_dir: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
    ) -> "CacheLayout":
        if cache_dir is not None:
            return cls(Path(cache_dir))
        return cls(user_cache_dir(environ) / CACHE_DIR_NAME)

    def kind_dir(self, kind: str) -> Path:
        return self.root / kind

    @property
    def distribution_dir(self) -> Path:
        return self.kind_dir(DISTRIBUTION_KIND)

    def distribution_path(self, key: str) -> Path:
        return self.distribution_dir / key

    def distribution_archive(self, key: str) -> Path:
        return self.distribution_dir / f"{key}.zip"

    def plugin_dir(self, plugin_name: str, version: str) -> Path:
        return self.kind_dir(plugin_name) / version
