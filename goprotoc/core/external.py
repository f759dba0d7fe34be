from __future__ import annotations

import os
import shlex
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from .diagnostics import SubprocessError
from .logging import get_logger


@dataclass(frozen=True)
class ExternalRunResult:
    cmd: list[str]
    returncode: int
    stdout: str
    stderr: str
    elapsed_s: float
    streamed: bool = False


def format_command(cmd: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(part)) for part in cmd)


def merge_environment(
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    env = dict(os.environ if base is None else base)
    if overrides:
        env.update(overrides)
    return env


def prepend_path(env: Mapping[str, str], dirs: Sequence[Path]) -> dict[str, str]:
    merged = dict(env)
    # Windows spells it "Path"; reuse whichever key the environment already has.
    key = next((k for k in merged if k.upper() == "PATH"), "PATH")
    entries = [str(d) for d in dirs if str(d)]
    current = merged.get(key, "")
    if current:
        entries.append(current)
    merged[key] = os.pathsep.join(entries)
    return merged


def run_external(
    cmd: Sequence[str],
    *,
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    stream: bool = False,
    check: bool = True,
    name: str = "external",
) -> ExternalRunResult:
    """Run ``cmd`` and return its outcome.

    With ``stream`` the child inherits this process's stdout and stderr;
    otherwise both are captured as text. Spawn failures, and non-zero exits
    when ``check`` is set, raise :class:`SubprocessError` carrying the full
    command line.
    """

    logger = get_logger("external")
    run_cmd = [str(part) for part in cmd]
    formatted = format_command(run_cmd)
    logger.debug("%s begin: cmd=[%s]", name, formatted)
    start = time.time()
    try:
        if stream:
            proc = subprocess.run(
                run_cmd,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env is not None else None,
                check=False,
            )
        else:
            proc = subprocess.run(
                run_cmd,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env is not None else None,
                capture_output=True,
                text=True,
                check=False,
            )
    except OSError as exc:
        raise SubprocessError.build(
            f"{name} failed to start: cmd=[{formatted}], err=[{exc}]",
            cmd=run_cmd,
        ) from exc
    elapsed = time.time() - start

    result = ExternalRunResult(
        cmd=run_cmd,
        returncode=proc.returncode,
        stdout="" if stream else proc.stdout,
        stderr="" if stream else proc.stderr,
        elapsed_s=elapsed,
        streamed=stream,
    )
    if check and result.returncode != 0:
        raise command_failed(result, name=name)
    return result


def command_failed(result: ExternalRunResult, *, name: str = "external") -> SubprocessError:
    message = (
        f"{name} failed with exit status {result.returncode}: cmd=[{format_command(result.cmd)}]"
    )
    if result.streamed:
        message = f"{message}\nstdout/stderr already streamed above."
    elif result.stderr.strip():
        message = f"{message}\nstderr: {result.stderr.strip()}"
    return SubprocessError.build(
        message,
        cmd=result.cmd,
        returncode=result.returncode,
        elapsed_s=round(result.elapsed_s, 3),
    )
