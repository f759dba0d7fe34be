from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, List, Optional, Sequence, Tuple

from .diagnostics import GraphResolutionError
from .logging import get_logger

BUILD_TAGS = ("generate",)
MAX_WORKERS = 16


def resolve_search_paths(
    go_tool: Any,
    import_paths: Sequence[str],
    *,
    tags: Sequence[str] = BUILD_TAGS,
    max_workers: int = MAX_WORKERS,
) -> List[str]:
    """Look up the source directory of every import path concurrently.

    Empty import paths are skipped. The first failure is raised once every
    lookup has finished; siblings are not cancelled. Directories come back in
    the order their import paths were given.
    """

    logger = get_logger("resolver")
    found: List[Tuple[int, str]] = []
    lock = threading.Lock()

    def _lookup(index: int, import_path: str) -> None:
        pkg = go_tool.list_package(import_path, list(tags))
        if not pkg.dir:
            if pkg.error is not None:
                raise GraphResolutionError.build(
                    f"go list error: pkg=[{import_path}], err=[{pkg.error}]",
                    location=import_path,
                )
            raise GraphResolutionError.build(
                f"go list error, cannot find pkg dir: pkg=[{import_path}]",
                location=import_path,
            )
        logger.debug("pkg dir found: [%s] -> [%s]", import_path, pkg.dir)
        with lock:
            found.append((index, pkg.dir))

    wanted = [(index, path) for index, path in enumerate(import_paths) if path]
    if not wanted:
        return []

    first_error: Optional[BaseException] = None
    with ThreadPoolExecutor(max_workers=min(max_workers, len(wanted))) as pool:
        futures = [pool.submit(_lookup, index, path) for index, path in wanted]
        for future in as_completed(futures):
            exc = future.exception()
            if exc is not None and first_error is None:
                first_error = exc
    if first_error is not None:
        raise first_error

    found.sort()
    return [directory for _, directory in found]
