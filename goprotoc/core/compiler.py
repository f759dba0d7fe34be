from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional, Sequence

from .external import ExternalRunResult, format_command, merge_environment, prepend_path, run_external
from .logging import get_logger

ARGS_FILE_PREFIX = "@"


def compiler_command(protoc: Path, args_file: Path) -> list[str]:
    return [str(protoc), f"{ARGS_FILE_PREFIX}{args_file}"]


def invoke_compiler(
    protoc: Path,
    args_file: Path,
    *,
    plugin_dirs: Sequence[Path] = (),
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> ExternalRunResult:
    logger = get_logger("compiler")
    env = merge_environment(None, environ)
    if plugin_dirs:
        env = prepend_path(env, plugin_dirs)
    cmd = compiler_command(protoc, args_file)
    logger.info("cmd begin: cmd=[%s]", format_command(cmd))
    result = run_external(cmd, cwd=cwd, env=env, stream=True, name="protoc")
    logger.info("cmd ok: cmd=[%s]", format_command(cmd))
    return result
