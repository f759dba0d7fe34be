from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .cache import sanitize_import_path
from .diagnostics import FilesystemError
from .logging import NullEventLogger, get_logger
from .plugins import PluginBinding

SCHEMA_SUFFIX = ".proto"
STAGING_DIR_NAME = ".go-protoc"
ARGS_FILE_NAME = "proto_gen.txt"


@dataclass(frozen=True)
class DescriptorSetOptions:
    out_file: str
    include_imports: bool = False
    include_source_info: bool = False


@dataclass
class InvocationSpec:
    search_paths: List[str]
    out_dir: str
    module_path: str
    plugins: List[PluginBinding] = field(default_factory=list)
    schema_files: List[str] = field(default_factory=list)
    descriptor_set: Optional[DescriptorSetOptions] = None
    extra_options: List[str] = field(default_factory=list)

    def to_args(self) -> List[str]:
        args = [f"--proto_path={path}" for path in self.search_paths]
        if self.descriptor_set is not None:
            args.append(f"--descriptor_set_out={self.descriptor_set.out_file}")
            if self.descriptor_set.include_imports:
                args.append("--include_imports")
            if self.descriptor_set.include_source_info:
                args.append("--include_source_info")
        for binding in self.plugins:
            lang = binding.spec.lang
            args.append(f"--{lang}_out={self.out_dir}")
            args.append(f"--{lang}_opt=module={self.module_path}")
            args.append(f"--plugin={binding.name}={binding.binary}")
        args.extend(self.extra_options)
        args.extend(self.schema_files)
        return args

    def render(self) -> str:
        return "".join(f"{arg}\n" for arg in self.to_args())


def resolve_against(base: Path, value: str) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    return base / path


def discover_schema_files(schema_dir: Path, suffix: str = SCHEMA_SUFFIX) -> List[str]:
    files: List[str] = []

    def _raise(exc: OSError) -> None:
        raise FilesystemError.build(
            f"walk {schema_dir} error: {exc}", location=str(exc.filename or schema_dir)
        ) from exc

    if not schema_dir.is_dir():
        raise FilesystemError.build(
            f"walk {schema_dir} error: not a directory", location=str(schema_dir)
        )
    for dirpath, dirnames, filenames in os.walk(schema_dir, onerror=_raise):
        dirnames.sort()
        for filename in sorted(filenames):
            if filename.endswith(suffix):
                files.append(os.path.abspath(os.path.join(dirpath, filename)))
    return files


def build_search_paths(import_dirs: Sequence[str], schema_dir: Path, include_dir: Path) -> List[str]:
    return [*import_dirs, str(schema_dir), str(include_dir)]


def args_file_path(import_path: str, temp_root: Optional[Path] = None) -> Path:
    root = Path(temp_root) if temp_root is not None else Path(tempfile.gettempdir())
    return root / STAGING_DIR_NAME / sanitize_import_path(import_path) / ARGS_FILE_NAME


def stage_args_file(spec: InvocationSpec, path: Path) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="\n") as handle:
            handle.write(spec.render())
    except OSError as exc:
        raise FilesystemError.build(f"write {path} error: {exc}", location=str(path)) from exc
    return path


def parse_clean_dirs(clean_dir: Optional[str], base: Path) -> List[Path]:
    dirs: List[Path] = []
    for raw in (clean_dir or "").split(","):
        value = raw.strip()
        if not value:
            continue
        dirs.append(resolve_against(base, value))
    return dirs


def clean_dirs(dirs: Iterable[Path], events=None) -> List[Path]:
    logger = get_logger("invocation")
    events = events or NullEventLogger()
    removed: List[Path] = []
    for directory in dirs:
        logger.info("clean dir: [%s]", directory)
        try:
            if directory.is_symlink() or directory.is_file():
                directory.unlink()
            else:
                shutil.rmtree(directory)
        except FileNotFoundError:
            continue
        except OSError as exc:
            raise FilesystemError.build(
                f"rmtree {directory} error: {exc}", location=str(directory)
            ) from exc
        removed.append(directory)
        events.record({"event": "dir.cleaned", "path": str(directory)})
    return removed
