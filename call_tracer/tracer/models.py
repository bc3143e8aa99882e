"""
Tracer Data Model

Symbols, positions, analysis targets, queue tasks and traversal results
shared by the program database, the classifier, the scheduler and the
report builder.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from call_tracer.tracer.database import ModuleInfo

FunctionNode = ast.FunctionDef | ast.AsyncFunctionDef


class SymbolKind(str, Enum):
    """What a resolved name denotes."""

    CALLABLE = "callable"
    NAMED_TYPE = "named_type"
    MODULE = "module"
    VARIABLE = "variable"
    UNKNOWN = "unknown"  # defined outside the project, nature not known


@dataclass(frozen=True)
class Position:
    """Location of a declaration's name token."""

    file: str  # project-relative POSIX path
    line: int  # 1-based
    column: int  # 0-based

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass(frozen=True)
class Symbol:
    """A resolved entity, identified by its fully qualified name."""

    module: str
    name: str  # local dotted name, e.g. "Client.send"; empty for modules
    kind: SymbolKind
    position: Position | None = None

    @property
    def qualified_name(self) -> str:
        if not self.name:
            return self.module
        return f"{self.module}.{self.name}"

    @property
    def local_name(self) -> str:
        return self.name.rsplit(".", 1)[-1] if self.name else self.module.rsplit(".", 1)[-1]

    def __str__(self) -> str:
        return self.qualified_name


@dataclass(frozen=True, eq=False)
class AnalysisTarget:
    """A function or method declaration together with its owning module."""

    module: ModuleInfo
    node: FunctionNode
    qualified_name: str

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def file(self) -> str:
        return self.module.path


@dataclass(frozen=True)
class Task:
    """A unit of pending work in the traversal queue."""

    target: AnalysisTarget
    depth: int


@dataclass
class TraversalResult:
    """
    Everything one traversal discovered.

    Both maps are keyed by qualified name and keep the order in which each
    symbol was first discovered; that order is the output order.
    """

    called_funcs: dict[str, Symbol] = field(default_factory=dict)
    referenced_types: dict[str, Symbol] = field(default_factory=dict)
    visited: set[str] = field(default_factory=set)

    def called_names(self) -> list[str]:
        return list(self.called_funcs)

    def type_names(self) -> list[str]:
        return list(self.referenced_types)
