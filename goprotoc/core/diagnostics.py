from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Diagnostic:
    code: str
    message: str
    severity: str = "ERROR"
    location: Optional[str] = None
    hints: List[str] = field(default_factory=list)
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "location": self.location,
            "hints": self.hints,
            "data": self.data,
        }


class GoProtocError(Exception):
    code = "E-GOPROTOC"

    def __init__(self, diagnostic: Diagnostic):
        super().__init__(diagnostic.message)
        self.diagnostic = diagnostic

    @classmethod
    def build(
        cls,
        message: str,
        *,
        code: Optional[str] = None,
        location: Optional[str] = None,
        hints: Optional[List[str]] = None,
        **data: Any,
    ) -> "GoProtocError":
        return cls(
            Diagnostic(
                code=code or cls.code,
                message=message,
                location=location,
                hints=list(hints or []),
                data={key: value for key, value in data.items() if value is not None} or None,
            )
        )


class ConfigError(GoProtocError):
    code = "E-CONFIG"


class GraphResolutionError(GoProtocError):
    code = "E-GRAPH"


class TransportError(GoProtocError):
    code = "E-TRANSPORT"


class ArchiveIntegrityError(GoProtocError):
    code = "E-ARCHIVE"


class MaliciousArchiveError(ArchiveIntegrityError):
    code = "E-ARCHIVE-PATH"


class FilesystemError(GoProtocError):
    code = "E-FS"


class SubprocessError(GoProtocError):
    code = "E-SUBPROCESS"


class Diagnostics:
    def __init__(self) -> None:
        self.items: List[Diagnostic] = []

    def add(self, diagnostic: Diagnostic) -> None:
        self.items.append(diagnostic)

    def has_errors(self) -> bool:
        return any(d.severity == "ERROR" for d in self.items)

    def raise_for_errors(self, error_cls: type[GoProtocError] = ConfigError) -> None:
        if self.has_errors():
            # First error wins; callers can still read the rest from the collection.
            first = next(d for d in self.items if d.severity == "ERROR")
            raise error_cls(first)

    def to_list(self) -> List[dict]:
        return [d.to_dict() for d in self.items]
