from __future__ import annotations

import dataclasses
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .cache import CacheLayout
from .compiler import compiler_command, invoke_compiler
from .config import GeneratorConfig
from .diagnostics import ConfigError, GoProtocError, GraphResolutionError
from .distribution import DistributionCache
from .external import format_command
from .gotool import GoTool
from .ide import configure_proto_editor
from .invocation import (
    DescriptorSetOptions,
    InvocationSpec,
    args_file_path,
    build_search_paths,
    clean_dirs,
    discover_schema_files,
    parse_clean_dirs,
    resolve_against,
    stage_args_file,
)
from .logging import get_event_logger, get_logger
from .model import PackagePublic
from .plugins import PROTOC_GEN_GO, PROTOC_GEN_GO_GRPC, PluginBinding, PluginInstaller
from .resolver import BUILD_TAGS, resolve_search_paths


@dataclass(frozen=True)
class RunResult:
    args_file: Path
    protoc: Path
    search_paths: List[str]
    plugins: Dict[str, PluginBinding] = field(default_factory=dict)


class Generator:
    def __init__(
        self,
        config: GeneratorConfig,
        *,
        go_tool: Any = None,
        environ: Optional[Mapping[str, str]] = None,
        temp_root: Optional[Path] = None,
        distribution: Optional[DistributionCache] = None,
    ) -> None:
        self.config = config
        self.environ = environ
        self.temp_root = temp_root
        self.logger = get_logger("pipeline")
        self.events = get_event_logger(config.event_log)
        self.go_tool = go_tool or GoTool(config.go_bin, environ)
        self.layout = CacheLayout.default(config.cache_dir, environ)
        self.distribution = distribution or DistributionCache(
            self.layout,
            version=config.protoc_version,
            url_template=config.protoc_download_url,
            environ=environ,
            events=self.events,
        )
        self.optional_plugin = dataclasses.replace(
            PROTOC_GEN_GO_GRPC, fixed_version=config.protoc_gen_go_grpc_version
        )

    def run(self) -> RunResult:
        start = time.monotonic()
        gen_file = self.config.gen_file
        if not gen_file:
            raise ConfigError.build(
                "gen file is required: set GOFILE or gen_file", code="E-CONFIG-GENFILE"
            )
        self.events.record({"event": "run.start", "gen_file": gen_file})

        gen_file_pkg = self._list_checked(gen_file)
        gen_pkg = self._list_checked(gen_file_pkg.dir)
        if gen_pkg.module is None or not gen_pkg.module.dir:
            raise GraphResolutionError.build(
                f"package [{gen_pkg.import_path}] does not belong to a module",
                location=gen_pkg.import_path,
            )
        package_dir = Path(gen_file_pkg.dir)
        schema_dir = resolve_against(package_dir, self.config.proto_dir)

        installer = PluginInstaller(
            self.go_tool,
            self.layout,
            exe_suffix=self._exe_suffix(),
            events=self.events,
        )

        # These four tasks share no state.
        with ThreadPoolExecutor(max_workers=4, thread_name_prefix="goprotoc") as pool:
            futures: Dict[str, Future] = {
                "import_dirs": pool.submit(resolve_search_paths, self.go_tool, gen_file_pkg.imports),
                "base_plugin": pool.submit(installer.install, PROTOC_GEN_GO, True),
                "optional_plugin": pool.submit(installer.install, self.optional_plugin, False),
                "protoc": pool.submit(self.distribution.ensure, self._remaining(start)),
            }
            results = _gather(futures)

        search_paths = build_search_paths(
            results["import_dirs"], schema_dir, self.distribution.include_dir
        )
        bindings: List[PluginBinding] = [
            b for b in (results["base_plugin"], results["optional_plugin"]) if b is not None
        ]

        ide_future: Optional[Future] = None
        ide_pool: Optional[ThreadPoolExecutor] = None
        if not self.config.disable_jetbrains:
            ide_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="goprotoc-ide")
            ide_future = ide_pool.submit(
                configure_proto_editor, Path(gen_pkg.dir), gen_pkg.import_path, list(search_paths)
            )

        try:
            spec = InvocationSpec(
                search_paths=search_paths,
                out_dir=gen_pkg.module.dir,
                module_path=gen_pkg.module.path,
                plugins=bindings,
                schema_files=discover_schema_files(schema_dir),
                descriptor_set=self._descriptor_set(),
                extra_options=list(self.config.custom_protoc_opts),
            )
            clean_dirs(parse_clean_dirs(self.config.clean_dir, package_dir), events=self.events)
            args_file = stage_args_file(spec, args_file_path(gen_pkg.import_path, self.temp_root))
            self.logger.info("write proto gen file ok: [%s]", args_file)
            self.events.record({"event": "args.staged", "path": str(args_file)})

            protoc = self.distribution.protoc_path
            try:
                invoke_compiler(
                    protoc,
                    args_file,
                    plugin_dirs=[b.install_dir for b in bindings],
                    environ=self.environ,
                )
            except GoProtocError as exc:
                self.events.record({"event": "protoc.error", "error": str(exc)})
                raise
            self.events.record(
                {"event": "protoc.ok", "cmd": format_command(compiler_command(protoc, args_file))}
            )
        finally:
            if ide_pool is not None:
                ide_pool.shutdown(wait=True)
                self._log_ide_outcome(ide_future)

        return RunResult(
            args_file=args_file,
            protoc=protoc,
            search_paths=search_paths,
            plugins={b.name: b for b in bindings},
        )

    def _list_checked(self, pattern: str) -> PackagePublic:
        pkg = self.go_tool.list_package(pattern, list(BUILD_TAGS))
        if pkg.error is not None:
            raise GraphResolutionError.build(
                f"go list error: pkg=[{pattern}], err=[{pkg.error}]", location=pattern
            )
        if not pkg.dir:
            raise GraphResolutionError.build(
                f"go list error, cannot find pkg dir: pkg=[{pattern}]", location=pattern
            )
        return pkg

    def _exe_suffix(self) -> str:
        return self.go_tool.env("GOEXE")

    def _descriptor_set(self) -> Optional[DescriptorSetOptions]:
        if not self.config.descriptor_set_out:
            return None
        return DescriptorSetOptions(
            out_file=self.config.descriptor_set_out,
            include_imports=self.config.include_imports,
            include_source_info=self.config.include_source_info,
        )

    def _remaining(self, start: float) -> Optional[float]:
        if self.config.timeout is None:
            return None
        return self.config.timeout - (time.monotonic() - start)

    def _log_ide_outcome(self, future: Optional[Future]) -> None:
        if future is None:
            return
        exc = future.exception()
        if exc is not None:
            self.logger.error("proto editor config error: %s", exc)
            self.events.record({"event": "ide.error", "error": str(exc)})


def _gather(futures: Dict[str, Future]) -> Dict[str, Any]:
    first_error: Optional[BaseException] = None
    for future in as_completed(futures.values()):
        exc = future.exception()
        if exc is not None and first_error is None:
            first_error = exc
    if first_error is not None:
        raise first_error
    return {name: future.result() for name, future in futures.items()}
