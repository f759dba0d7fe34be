from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from .core.config import GeneratorConfig, load_config
from .core.pipeline import Generator, RunResult


def generate(
    config: Union[GeneratorConfig, Mapping[str, Any], None] = None,
    *,
    config_file: Union[Path, str, None] = None,
    go_tool: Any = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RunResult:
    if isinstance(config, GeneratorConfig):
        cfg = config
    else:
        overrides: Dict[str, Any] = dict(config or {})
        cfg = load_config(Path(config_file) if config_file else None, overrides, environ)
    return Generator(cfg, go_tool=go_tool, environ=environ).run()


__all__ = ["RunResult", "generate"]
