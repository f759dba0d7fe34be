from __future__ import annotations

import json
from pathlib import Path

import pytest

from goprotoc.core.config import (
    load_config,
    merge_config,
    normalize_config,
    validate_config,
)
from goprotoc.core.diagnostics import ConfigError


def test_defaults():
    cfg = normalize_config(merge_config(), environ={"GOFILE": "gen.go"})
    assert cfg.gen_file == "gen.go"
    assert cfg.proto_dir == "proto"
    assert cfg.protoc_version == "27.2"
    assert cfg.protoc_gen_go_grpc_version == "1.4.0"
    assert cfg.clean_dir == "proto_gen_go"
    assert cfg.custom_protoc_opts == []
    assert cfg.disable_jetbrains is False
    assert cfg.descriptor_set_out is None


def test_explicit_gen_file_beats_environment():
    cfg = normalize_config(merge_config({"gen_file": "x.go"}), environ={"GOFILE": "gen.go"})
    assert cfg.gen_file == "x.go"


def test_overrides_win_over_file(tmp_path: Path):
    path = tmp_path / "goprotoc.yaml"
    path.write_text("proto_dir: schemas\nprotoc_version: '25.1'\ncustom_protoc_opts: ['--a']\n")

    cfg = load_config(path, {"protoc_version": "26.0", "disable_jetbrains": None}, environ={})

    assert cfg.proto_dir == "schemas"
    assert cfg.protoc_version == "26.0"
    assert cfg.custom_protoc_opts == ["--a"]
    assert cfg.disable_jetbrains is False


@pytest.mark.parametrize("suffix,text", [
    (".toml", 'proto_dir = "api"\ntimeout = 12.5\n'),
    (".json", json.dumps({"proto_dir": "api", "timeout": 12.5})),
])
def test_toml_and_json_files(tmp_path: Path, suffix, text):
    path = tmp_path / f"goprotoc{suffix}"
    path.write_text(text)
    cfg = load_config(path, environ={})
    assert cfg.proto_dir == "api"
    assert cfg.timeout == 12.5


def test_unknown_key_is_rejected():
    diagnostics = validate_config(merge_config({"protoc_verison": "1"}))
    assert diagnostics.has_errors()
    assert diagnostics.items[0].code == "E-CONFIG-SCHEMA"
    with pytest.raises(ConfigError):
        normalize_config(merge_config({"protoc_verison": "1"}), environ={})


def test_wrong_type_is_rejected():
    with pytest.raises(ConfigError) as excinfo:
        normalize_config(merge_config({"custom_protoc_opts": "--a"}), environ={})
    assert excinfo.value.diagnostic.location == "custom_protoc_opts"


def test_path_values_validate(tmp_path: Path):
    cfg = normalize_config(merge_config({"cache_dir": tmp_path}), environ={})
    assert cfg.cache_dir == tmp_path


def test_unreadable_config(tmp_path: Path):
    path = tmp_path / "broken.yaml"
    path.write_text("proto_dir: [unclosed\n")
    with pytest.raises(ConfigError) as excinfo:
        load_config(path, environ={})
    assert excinfo.value.diagnostic.code == "E-CONFIG-READ"


def test_non_mapping_config(tmp_path: Path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2]")
    with pytest.raises(ConfigError):
        load_config(path, environ={})
