from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .cache import CacheLayout
from .diagnostics import FilesystemError, GraphResolutionError, SubprocessError
from .external import format_command
from .logging import NullEventLogger, get_logger

DEFAULT_PROTOC_GEN_GO_GRPC_VERSION = "1.4.0"
# Install key when the module graph carries no version, e.g. the main module.
DEFAULT_PLUGIN_VERSION = "devel"


@dataclass(frozen=True)
class PluginSpec:
    name: str
    package: str
    lang: str
    probe: Optional[str] = None
    fixed_version: Optional[str] = None
    required: bool = True

    @property
    def probe_package(self) -> str:
        return self.probe or self.package

    def binary_name(self, exe_suffix: str = "") -> str:
        return f"{self.name}{exe_suffix}"


@dataclass(frozen=True)
class PluginBinding:
    spec: PluginSpec
    version: str
    install_dir: Path
    binary: Path

    @property
    def name(self) -> str:
        return self.spec.name


PROTOC_GEN_GO = PluginSpec(
    name="protoc-gen-go",
    package="google.golang.org/protobuf/cmd/protoc-gen-go",
    lang="go",
)

PROTOC_GEN_GO_GRPC = PluginSpec(
    name="protoc-gen-go-grpc",
    package="google.golang.org/grpc/cmd/protoc-gen-go-grpc",
    lang="go-grpc",
    probe="google.golang.org/grpc",
    fixed_version=DEFAULT_PROTOC_GEN_GO_GRPC_VERSION,
    required=False,
)

BUILTIN_PLUGINS: Dict[str, PluginSpec] = {
    PROTOC_GEN_GO.name: PROTOC_GEN_GO,
    PROTOC_GEN_GO_GRPC.name: PROTOC_GEN_GO_GRPC,
}


def get_plugin(name: str) -> PluginSpec:
    if name not in BUILTIN_PLUGINS:
        raise KeyError(f"Plugin not found: {name}")
    return BUILTIN_PLUGINS[name]


class PluginInstaller:
    def __init__(
        self,
        go_tool: Any,
        layout: CacheLayout,
        *,
        exe_suffix: str = "",
        events: Any = None,
    ) -> None:
        self.go_tool = go_tool
        self.layout = layout
        self.exe_suffix = exe_suffix
        self.events = events or NullEventLogger()
        self.logger = get_logger("plugins")

    def install(self, plugin: PluginSpec | str, require_resolvable: Optional[bool] = None) -> Optional[PluginBinding]:
        """Install ``plugin`` into its version-keyed directory.

        Returns ``None`` when the plugin is optional and its module is not in
        the dependency graph. Reinstalling an existing version is not skipped.
        """

        spec = get_plugin(plugin) if isinstance(plugin, str) else plugin
        if require_resolvable is None:
            require_resolvable = spec.required

        pkg = self.go_tool.list_package(spec.probe_package)
        if pkg.error is not None:
            if not require_resolvable:
                self.logger.info(
                    "pkg [%s] not found, will not generate with %s", spec.probe_package, spec.name
                )
                self.events.record({"event": "plugin.skipped", "plugin": spec.name})
                return None
            raise GraphResolutionError.build(
                f"go list error: pkg=[{spec.probe_package}], err=[{pkg.error}]",
                location=spec.probe_package,
            )
        graph_version = pkg.module.version if pkg.module is not None else ""
        self.logger.info("pkg found: [%s@%s]", spec.probe_package, graph_version)

        version = spec.fixed_version or graph_version
        if not version:
            self.logger.info(
                "no module version for [%s], installing as %s", spec.probe_package, DEFAULT_PLUGIN_VERSION
            )
            version = DEFAULT_PLUGIN_VERSION
        install_dir = self.layout.plugin_dir(spec.name, version)
        try:
            install_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError.build(
                f"mkdir {install_dir} error: {exc}", location=str(install_dir)
            ) from exc

        target = spec.package
        if spec.fixed_version:
            target = f"{spec.package}@v{spec.fixed_version.lstrip('v')}"
        try:
            cmd = self.go_tool.install(target, install_dir)
        except SubprocessError as exc:
            raise SubprocessError.build(
                f"go install {target} error: {exc}",
                **(exc.diagnostic.data or {}),
            ) from exc
        self.logger.info("go install ok: cmd=[%s], dest=[%s]", format_command(cmd), install_dir)

        binding = PluginBinding(
            spec=spec,
            version=version,
            install_dir=install_dir,
            binary=install_dir / spec.binary_name(self.exe_suffix),
        )
        self.events.record(
            {
                "event": "plugin.installed",
                "plugin": spec.name,
                "version": version,
                "path": str(binding.binary),
            }
        )
        return binding
