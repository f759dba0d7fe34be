"""Data transfer models for ``go list -json`` output.

The go command may omit any field, so every field is optional. Callers must
check ``Error`` before trusting anything else on a package.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _GoJson(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class PackageError(_GoJson):
    import_stack: List[str] = Field(default_factory=list, alias="ImportStack")
    pos: str = Field(default="", alias="Pos")
    err: str = Field(default="", alias="Err")

    def __str__(self) -> str:
        return f"{self.pos}: {self.err}" if self.pos else self.err


class ModuleError(_GoJson):
    err: str = Field(default="", alias="Err")

    def __str__(self) -> str:
        return self.err


class ModulePublic(_GoJson):
    path: str = Field(default="", alias="Path")
    version: str = Field(default="", alias="Version")
    main: bool = Field(default=False, alias="Main")
    indirect: bool = Field(default=False, alias="Indirect")
    dir: str = Field(default="", alias="Dir")
    go_mod: str = Field(default="", alias="GoMod")
    go_version: str = Field(default="", alias="GoVersion")
    replace: Optional["ModulePublic"] = Field(default=None, alias="Replace")
    error: Optional[ModuleError] = Field(default=None, alias="Error")


class PackagePublic(_GoJson):
    dir: str = Field(default="", alias="Dir")
    import_path: str = Field(default="", alias="ImportPath")
    name: str = Field(default="", alias="Name")
    root: str = Field(default="", alias="Root")
    module: Optional[ModulePublic] = Field(default=None, alias="Module")
    goroot: bool = Field(default=False, alias="Goroot")
    standard: bool = Field(default=False, alias="Standard")
    incomplete: bool = Field(default=False, alias="Incomplete")
    go_files: List[str] = Field(default_factory=list, alias="GoFiles")
    imports: List[str] = Field(default_factory=list, alias="Imports")
    import_map: Dict[str, str] = Field(default_factory=dict, alias="ImportMap")
    deps: List[str] = Field(default_factory=list, alias="Deps")
    error: Optional[PackageError] = Field(default=None, alias="Error")
    deps_errors: List[PackageError] = Field(default_factory=list, alias="DepsErrors")


ModulePublic.model_rebuild()
