from __future__ import annotations

import sys
from pathlib import Path

import pytest

from goprotoc.core.compiler import compiler_command, invoke_compiler
from goprotoc.core.diagnostics import SubprocessError
from goprotoc.core.external import prepend_path

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell scripts")


def _script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(0o755)
    return path


def test_command_uses_response_file(tmp_path: Path):
    assert compiler_command(tmp_path / "protoc", tmp_path / "args.txt") == [
        str(tmp_path / "protoc"),
        f"@{tmp_path / 'args.txt'}",
    ]


def test_failure_carries_command_and_status(tmp_path: Path):
    protoc = _script(tmp_path / "protoc", "exit 3\n")
    args_file = tmp_path / "args.txt"
    args_file.write_text("--version\n")

    with pytest.raises(SubprocessError) as excinfo:
        invoke_compiler(protoc, args_file)

    message = str(excinfo.value)
    assert "exit status 3" in message
    assert str(protoc) in message
    assert f"@{args_file}" in message
    assert excinfo.value.diagnostic.data["returncode"] == 3


def test_success_and_plugin_dirs_on_path(tmp_path: Path):
    seen = tmp_path / "path.txt"
    protoc = _script(tmp_path / "protoc", f'echo "$PATH" > "{seen}"\n')
    plugin_dir = tmp_path / "plugins"
    plugin_dir.mkdir()

    result = invoke_compiler(
        protoc,
        tmp_path / "args.txt",
        plugin_dirs=[plugin_dir],
        environ={"PATH": "/usr/bin:/bin"},
    )

    assert result.returncode == 0
    assert seen.read_text().strip() == f"{plugin_dir}:/usr/bin:/bin"


def test_prepend_path_reuses_windows_key():
    env = prepend_path({"Path": "C:\\Windows"}, [Path("plugins")])
    assert set(env) == {"Path"}
    assert env["Path"].startswith("plugins")
