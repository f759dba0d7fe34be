from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional, Sequence

from pydantic import ValidationError

from .diagnostics import GraphResolutionError, SubprocessError
from .external import ExternalRunResult, format_command, merge_environment, run_external
from .logging import get_logger
from .model import PackagePublic


class GoTool:
    """Build-graph queries and installs backed by the ``go`` command."""

    def __init__(self, go_bin: str = "go", environ: Optional[Mapping[str, str]] = None) -> None:
        self.go_bin = go_bin
        self.environ = environ
        self.logger = get_logger("gotool")

    def list_package(self, pattern: str, tags: Optional[Sequence[str]] = None) -> PackagePublic:
        cmd = [self.go_bin, "list", "-json", "-e"]
        if tags:
            cmd += ["-tags", ",".join(tags)]
        cmd.append(pattern)
        result = self._query(cmd)
        try:
            pkg = PackagePublic.model_validate_json(result.stdout)
        except ValidationError as exc:
            raise GraphResolutionError.build(
                f"go list output invalid: cmd=[{format_command(cmd)}], err=[{exc}]",
                cmd=cmd,
            ) from exc
        self.logger.debug("go list ok: cmd=[%s]", format_command(cmd))
        return pkg

    def install(self, package: str, bin_dir: Optional[Path] = None) -> list[str]:
        cmd = [self.go_bin, "install", package]
        overrides = {"GOBIN": str(bin_dir)} if bin_dir else None
        env = merge_environment(overrides, self.environ)
        run_external(cmd, env=env, stream=True, name="go install")
        return cmd

    def env(self, name: str) -> str:
        cmd = [self.go_bin, "env", name]
        return self._query(cmd).stdout.strip()

    def _query(self, cmd: list[str]) -> ExternalRunResult:
        env = merge_environment(None, self.environ)
        try:
            return run_external(cmd, env=env, name="go")
        except SubprocessError as exc:
            # The package graph could not be read at all, as opposed to a per-package Error.
            raise GraphResolutionError.build(
                str(exc), cmd=cmd, returncode=(exc.diagnostic.data or {}).get("returncode")
            ) from exc
