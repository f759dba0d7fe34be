from __future__ import annotations

import json
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import jsonschema
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .diagnostics import ConfigError, Diagnostic, Diagnostics
from .distribution import DEFAULT_DOWNLOAD_URL, DEFAULT_PROTOC_VERSION
from .plugins import DEFAULT_PROTOC_GEN_GO_GRPC_VERSION

SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schemas" / "config.schema.json"

DEFAULT_CONFIG: Dict[str, Any] = {
    "gen_file": None,
    "proto_dir": "proto",
    "protoc_download_url": DEFAULT_DOWNLOAD_URL,
    "protoc_version": DEFAULT_PROTOC_VERSION,
    "protoc_gen_go_grpc_version": DEFAULT_PROTOC_GEN_GO_GRPC_VERSION,
    "clean_dir": "proto_gen_go",
    "custom_protoc_opts": [],
    "disable_jetbrains": False,
    "descriptor_set_out": None,
    "include_imports": False,
    "include_source_info": False,
    "cache_dir": None,
    "go_bin": "go",
    "timeout": None,
    "event_log": None,
}


class GeneratorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    gen_file: Optional[str] = None
    proto_dir: str = "proto"
    protoc_download_url: str = DEFAULT_DOWNLOAD_URL
    protoc_version: str = DEFAULT_PROTOC_VERSION
    protoc_gen_go_grpc_version: str = DEFAULT_PROTOC_GEN_GO_GRPC_VERSION
    clean_dir: str = "proto_gen_go"
    custom_protoc_opts: List[str] = Field(default_factory=list)
    disable_jetbrains: bool = False
    descriptor_set_out: Optional[str] = None
    include_imports: bool = False
    include_source_info: bool = False
    cache_dir: Optional[Path] = None
    go_bin: str = "go"
    timeout: Optional[float] = None
    event_log: Optional[Path] = None


def load_config_file(path: Path) -> Dict[str, Any]:
    try:
        data = _load_data(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError.build(
            f"Failed to read config {path}: {exc}", code="E-CONFIG-READ", location=str(path)
        ) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError.build(
            "Config must be a mapping at the root", code="E-CONFIG-READ", location=str(path)
        )
    return data


def merge_config(*layers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    merged: Dict[str, Any] = json.loads(json.dumps(DEFAULT_CONFIG))
    for layer in layers:
        if not layer:
            continue
        merged = _deep_merge(merged, {k: v for k, v in layer.items() if v is not None})
    return merged


def validate_config(config: Mapping[str, Any], schema_path: Path = SCHEMA_PATH) -> Diagnostics:
    diagnostics = Diagnostics()
    with schema_path.open("r", encoding="utf-8") as handle:
        schema = json.load(handle)
    validator = jsonschema.Draft202012Validator(schema)
    for error in sorted(validator.iter_errors(_jsonable(config)), key=str):
        diagnostics.add(
            Diagnostic(
                code="E-CONFIG-SCHEMA",
                message=error.message,
                location="/".join(str(x) for x in error.path) or "config",
            )
        )
    return diagnostics


def normalize_config(
    config: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> GeneratorConfig:
    diagnostics = validate_config(config)
    diagnostics.raise_for_errors()

    data = dict(config)
    if not data.get("gen_file"):
        env = os.environ if environ is None else environ
        data["gen_file"] = env.get("GOFILE") or None

    try:
        return GeneratorConfig.model_validate(data)
    except ValidationError as exc:
        diagnostics.add(Diagnostic(code="E-CONFIG-PYDANTIC", message=str(exc), location="config"))
        diagnostics.raise_for_errors()
        raise


def load_config(
    config_file: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> GeneratorConfig:
    file_layer = load_config_file(Path(config_file)) if config_file else None
    return normalize_config(merge_config(file_layer, overrides), environ)


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _jsonable(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def _load_data(path: Path) -> Any:
    if path.suffix in {".yaml", ".yml"}:
        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    if path.suffix == ".toml":
        with path.open("rb") as handle:
            return tomllib.load(handle)
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)
