"""goprotoc package."""

from .api import RunResult, generate
from .core.version import __version__

__all__ = ["RunResult", "generate", "__version__"]
