from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .core.config import load_config
from .core.diagnostics import GoProtocError
from .core.logging import configure_logging, get_logger
from .core.pipeline import Generator
from .core.version import __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="goprotoc",
        description="Provision protoc and its Go plugins, then compile the package's .proto files.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-c", "--config", help="YAML, TOML or JSON config file")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--log-file")

    parser.add_argument("--gen-file", dest="gen_file", help="go file holding the go:generate directive (default $GOFILE)")
    parser.add_argument("--proto-dir", dest="proto_dir", help="proto root, relative to the gen file's package")
    parser.add_argument("--protoc-dl-url", dest="protoc_download_url")
    parser.add_argument("--protoc-ver", dest="protoc_version")
    parser.add_argument("--protoc-gen-go-grpc-ver", dest="protoc_gen_go_grpc_version")
    parser.add_argument("--desc-out-file", dest="descriptor_set_out")
    parser.add_argument("--desc-include-imports", dest="include_imports", action="store_true", default=None)
    parser.add_argument(
        "--desc-include-source-info", dest="include_source_info", action="store_true", default=None
    )
    parser.add_argument("--clean-dir", dest="clean_dir", help="comma separated dirs removed before generation")
    parser.add_argument(
        "--protoc-opt",
        dest="custom_protoc_opts",
        action="append",
        metavar="OPT",
        help="extra protoc option, repeatable; pass as --protoc-opt=--flag",
    )
    parser.add_argument("--disable-jetbrains", dest="disable_jetbrains", action="store_true", default=None)
    parser.add_argument("--cache-dir", dest="cache_dir")
    parser.add_argument("--go", dest="go_bin")
    parser.add_argument("--timeout", type=float)
    parser.add_argument("--event-log", dest="event_log")
    return parser


CONFIG_KEYS = (
    "gen_file",
    "proto_dir",
    "protoc_download_url",
    "protoc_version",
    "protoc_gen_go_grpc_version",
    "descriptor_set_out",
    "include_imports",
    "include_source_info",
    "clean_dir",
    "custom_protoc_opts",
    "disable_jetbrains",
    "cache_dir",
    "go_bin",
    "timeout",
    "event_log",
)


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    return {key: getattr(args, key) for key in CONFIG_KEYS if getattr(args, key) is not None}


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose, log_file=Path(args.log_file) if args.log_file else None)
    logger = get_logger("cli")

    try:
        config = load_config(Path(args.config) if args.config else None, overrides_from_args(args))
        result = Generator(config).run()
    except GoProtocError as exc:
        logger.error("%s", exc)
        print(json.dumps([exc.diagnostic.to_dict()], indent=2, sort_keys=True), file=sys.stderr)
        raise SystemExit(1)
    logger.info("generated with args file [%s]", result.args_file)


if __name__ == "__main__":
    main()
