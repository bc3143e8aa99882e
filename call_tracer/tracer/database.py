"""
Program Database

Loads a Python project into a read-only semantic model: one ModuleInfo
per parsed file, the declarations each module defines (functions, classes,
methods, type aliases, module-level variables), the names each module binds
through imports, and module-level name resolution on top of that.

Nothing here is mutated after load_project() returns, so one database can
be queried from several traversals at once.
"""

import ast
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterator

from call_tracer.shared.config import BaseTracerSettings, TracerSettings
from call_tracer.shared.exceptions import ProjectLoadError
from call_tracer.tracer.models import Position, Symbol, SymbolKind

logger = logging.getLogger("call_tracer.database")

# `def`/`class` keyword (optionally `async`) preceding a declaration's name
_DECL_KEYWORD = re.compile(r"(?:async\s+)?(?:def|class)\s+")

# PEP 695 `type X = ...` (3.12+) and `except*` blocks (3.11+)
TYPE_ALIAS_NODE = getattr(ast, "TypeAlias", None)
TRY_NODES = tuple(n for n in (ast.Try, getattr(ast, "TryStar", None)) if n is not None)

# Calls whose result is a new type when assigned at module level
TYPE_FACTORIES = {
    "TypeVar", "ParamSpec", "TypeVarTuple", "NewType", "NamedTuple",
    "TypedDict", "Enum", "IntEnum", "StrEnum", "Flag", "IntFlag",
}

# Subscripted typing forms that make an assignment a type alias
TYPE_FORMS = {"Union", "Optional", "Callable", "Literal", "Annotated"}


@dataclass(frozen=True)
class Binding:
    """A name bound by an import statement."""

    module: str
    name: str | None = None  # None: the name denotes the module itself


@dataclass
class Declaration:
    """The definition site of a project symbol."""

    symbol: Symbol
    node: ast.AST
    parent_class: str | None = None  # local name of the enclosing class


@dataclass(frozen=True)
class LoadIssue:
    """A file that could not be read or parsed."""

    file: str
    message: str


class ModuleInfo:
    """One parsed project file."""

    def __init__(
        self,
        name: str,
        path: str,
        abs_path: Path,
        source: str,
        tree: ast.Module,
        is_package: bool = False,
    ):
        self.name = name
        self.path = path
        self.abs_path = abs_path
        self.source = source
        self.tree = tree
        self.is_package = is_package
        self.lines = source.splitlines()
        self.declarations: dict[str, Declaration] = {}
        self.bindings: dict[str, Binding] = {}
        self.star_imports: list[str] = []

    def __repr__(self) -> str:
        return f"ModuleInfo({self.name!r}, {self.path!r})"


# ─── Path helpers ─────────────────────────────────────────


def path_to_module(file_path: str) -> str:
    """
    Convert a file path to a Python module name.
    e.g., 'fastapi/routing.py' -> 'fastapi.routing'
         'fastapi\\__init__.py' -> 'fastapi'
    """
    path = file_path.replace("\\", "/")
    if path.endswith(".py"):
        path = path[: -len(".py")]
    parts = [p for p in path.split("/") if p and p != "."]
    if parts and parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts)


def resolve_relative_import(
    current_module: str, target: str, level: int, is_package: bool = False,
) -> str:
    """
    Resolve a relative import to an absolute module path.

    For __init__.py files (is_package=True), the module IS the package,
    so level=1 stays at the same level.  For regular files level=1 goes
    up to the parent package.

    Examples:
        pkg/__init__.py:  from .client import X  -> pkg.client
        pkg/api/util.py:  from ..models import X -> pkg.models
    """
    parts = current_module.split(".") if current_module else []
    strip = level - 1 if is_package else level

    if strip > len(parts):
        return target

    base_parts = parts[: len(parts) - strip] if strip > 0 else parts
    if target:
        return ".".join(base_parts + [target])
    return ".".join(base_parts)


def discover_python_files(
    root: Path, exclude_dirs: list[str], skip_files: list[str],
) -> list[str]:
    """
    Find all Python files under root.
    Returns POSIX paths relative to the root, sorted.
    """
    skip_dirs = set(exclude_dirs)
    skip = set(skip_files)
    python_files = []

    for dirpath, dirs, files in os.walk(root):
        dirs[:] = [
            d for d in dirs
            if d not in skip_dirs and not d.endswith(".egg-info")
        ]

        for filename in files:
            if not filename.endswith(".py") or filename in skip:
                continue
            full_path = Path(dirpath) / filename
            python_files.append(full_path.relative_to(root).as_posix())

    python_files.sort()
    return python_files


# ─── Declaration helpers ──────────────────────────────────


def terminal_name(node: ast.AST | None) -> str | None:
    """`typing.Optional` -> 'Optional', `Optional` -> 'Optional'."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def name_position(node: ast.AST, module: ModuleInfo) -> Position | None:
    """Position of the name token a declaration introduces."""
    if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
        line = module.lines[node.lineno - 1] if node.lineno <= len(module.lines) else ""
        match = _DECL_KEYWORD.match(line, node.col_offset)
        column = match.end() if match else node.col_offset
        return Position(module.path, node.lineno, column)
    if TYPE_ALIAS_NODE is not None and isinstance(node, TYPE_ALIAS_NODE):
        return name_position(node.name, module)
    if isinstance(node, ast.Name):
        return Position(module.path, node.lineno, node.col_offset)
    return None


def assigned_names(stmt: ast.Assign | ast.AnnAssign) -> list[ast.Name]:
    """Plain names bound by an assignment statement, in source order."""
    targets = stmt.targets if isinstance(stmt, ast.Assign) else [stmt.target]
    names = []
    for target in targets:
        if isinstance(target, ast.Name):
            names.append(target)
        elif isinstance(target, (ast.Tuple, ast.List)):
            names.extend(e for e in target.elts if isinstance(e, ast.Name))
    return names


def is_type_alias(stmt: ast.AST) -> bool:
    """Whether a module-level assignment defines a type rather than a value."""
    if TYPE_ALIAS_NODE is not None and isinstance(stmt, TYPE_ALIAS_NODE):
        return True
    if not isinstance(stmt, (ast.Assign, ast.AnnAssign)):
        return False
    if isinstance(stmt, ast.AnnAssign) and terminal_name(stmt.annotation) == "TypeAlias":
        return True
    value = stmt.value
    if isinstance(value, ast.Call) and terminal_name(value.func) in TYPE_FACTORIES:
        return True
    if isinstance(value, ast.Subscript) and terminal_name(value.value) in TYPE_FORMS:
        return True
    return False


def flatten_blocks(body: list[ast.stmt]) -> Iterator[ast.stmt]:
    """Yield statements, descending into if/try blocks but not into scopes."""
    for stmt in body:
        yield stmt
        if isinstance(stmt, ast.If):
            yield from flatten_blocks(stmt.body)
            yield from flatten_blocks(stmt.orelse)
        elif isinstance(stmt, TRY_NODES):
            yield from flatten_blocks(stmt.body)
            for handler in stmt.handlers:
                yield from flatten_blocks(handler.body)
            yield from flatten_blocks(stmt.orelse)
            yield from flatten_blocks(stmt.finalbody)


def import_bindings(
    stmt: ast.Import | ast.ImportFrom, module: ModuleInfo,
) -> list[tuple[str, Binding]]:
    """
    Names bound by one import statement.
    `from x import *` is reported under the name '*'.
    """
    if isinstance(stmt, ast.Import):
        results = []
        for alias in stmt.names:
            if alias.asname:
                results.append((alias.asname, Binding(alias.name)))
            else:
                top = alias.name.split(".")[0]
                results.append((top, Binding(top)))
        return results

    base = stmt.module or ""
    if stmt.level:
        base = resolve_relative_import(module.name, base, stmt.level, module.is_package)
    return [
        (alias.asname or alias.name, Binding(base, None if alias.name == "*" else alias.name))
        for alias in stmt.names
    ]


def _is_overload(node: ast.AST) -> bool:
    decorators = getattr(node, "decorator_list", [])
    return any(terminal_name(d) == "overload" for d in decorators)


class _ModuleIndexer:
    """Registers a module's declarations and import bindings."""

    def __init__(self, module: ModuleInfo):
        self.module = module

    def index(self) -> None:
        module = self.module
        for stmt in flatten_blocks(module.tree.body):
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self._declare(stmt.name, SymbolKind.CALLABLE, stmt)
            elif isinstance(stmt, ast.ClassDef):
                self._declare_class(stmt)
            elif isinstance(stmt, (ast.Import, ast.ImportFrom)):
                for name, binding in import_bindings(stmt, module):
                    if name == "*":
                        module.star_imports.append(binding.module)
                    elif not self._is_bound(name):
                        module.bindings[name] = binding
            elif TYPE_ALIAS_NODE is not None and isinstance(stmt, TYPE_ALIAS_NODE):
                self._declare(stmt.name.id, SymbolKind.NAMED_TYPE, stmt, name_node=stmt.name)
            elif isinstance(stmt, (ast.Assign, ast.AnnAssign)):
                kind = SymbolKind.NAMED_TYPE if is_type_alias(stmt) else SymbolKind.VARIABLE
                for target in assigned_names(stmt):
                    self._declare(target.id, kind, stmt, name_node=target)

    def _is_bound(self, name: str) -> bool:
        return name in self.module.declarations or name in self.module.bindings

    def _declare(
        self,
        local_name: str,
        kind: SymbolKind,
        node: ast.AST,
        name_node: ast.AST | None = None,
        parent_class: str | None = None,
    ) -> bool:
        existing = self.module.declarations.get(local_name)
        if existing is not None and not _is_overload(existing.node):
            return False
        if existing is None and parent_class is None and local_name in self.module.bindings:
            return False

        symbol = Symbol(
            module=self.module.name,
            name=local_name,
            kind=kind,
            position=name_position(name_node or node, self.module),
        )
        self.module.declarations[local_name] = Declaration(symbol, node, parent_class)
        return True

    def _declare_class(self, node: ast.ClassDef, parent: str | None = None) -> None:
        local_name = f"{parent}.{node.name}" if parent else node.name
        if not self._declare(local_name, SymbolKind.NAMED_TYPE, node, parent_class=parent):
            return
        for item in flatten_blocks(node.body):
            if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self._declare(
                    f"{local_name}.{item.name}", SymbolKind.CALLABLE, item,
                    parent_class=local_name,
                )
            elif isinstance(item, ast.ClassDef):
                self._declare_class(item, parent=local_name)


def index_module(module: ModuleInfo) -> None:
    """Populate a module's declarations, bindings and star imports."""
    _ModuleIndexer(module).index()


# ─── Program database ─────────────────────────────────────


class ProgramDatabase:
    """
    Read-only semantic model of one loaded project.

    Answers module-level resolution queries: what a name means inside a
    module's namespace, what an attribute of a module or project class
    refers to, and where each project symbol is declared.
    """

    def __init__(self, root: Path):
        self.root = root
        self.modules: dict[str, ModuleInfo] = {}
        self.files: dict[str, ModuleInfo] = {}
        self.errors: list[LoadIssue] = []
        self._declarations: dict[str, Declaration] = {}
        self._packages: set[str] = set()

    # ─── Construction ─────────────────────────────────────

    def add_module(self, module: ModuleInfo) -> None:
        if module.name in self.modules:
            logger.warning(
                "Module %s defined by both %s and %s; keeping the first",
                module.name, self.modules[module.name].path, module.path,
            )
            return
        self.modules[module.name] = module
        self.files[module.path] = module
        for declaration in module.declarations.values():
            self._declarations[declaration.symbol.qualified_name] = declaration
        parts = module.name.split(".")
        for i in range(1, len(parts)):
            self._packages.add(".".join(parts[:i]))

    # ─── Lookups ──────────────────────────────────────────

    @property
    def project_scope(self) -> frozenset[str]:
        """Module paths owned by the project."""
        return frozenset(self.modules)

    def is_project_module(self, name: str) -> bool:
        return name in self.modules or name in self._packages

    def declaration(self, qualified_name: str) -> Declaration | None:
        return self._declarations.get(qualified_name)

    def relative_path(self, file_path: str | Path) -> str:
        """Normalise a file path to the project-relative POSIX form."""
        path = Path(str(file_path).replace("\\", "/"))
        if path.is_absolute():
            try:
                path = path.resolve().relative_to(self.root)
            except ValueError:
                return path.as_posix()
        return PurePosixPath(*path.parts).as_posix()

    def absolute_path(self, file_path: str) -> str:
        return str(self.root / file_path)

    def module_for_file(self, file_path: str | Path) -> ModuleInfo | None:
        return self.files.get(self.relative_path(file_path))

    def error_for(self, file_path: str | Path) -> LoadIssue | None:
        rel = self.relative_path(file_path)
        return next((issue for issue in self.errors if issue.file == rel), None)

    # ─── Resolution ───────────────────────────────────────

    def resolve_member(
        self,
        module_name: str,
        name: str,
        allow_submodule: bool = False,
        _seen: set[tuple[str, str]] | None = None,
    ) -> Symbol | None:
        """
        What `name` means inside the namespace of `module_name`.

        Checks the module's own declarations, then its import bindings
        (following re-export chains), then submodules when resolving an
        attribute access, then star imports.  Members of modules outside
        the project resolve to UNKNOWN symbols in that module.
        """
        seen = _seen if _seen is not None else set()
        if (module_name, name) in seen:
            return None
        seen.add((module_name, name))

        submodule = f"{module_name}.{name}"
        module = self.modules.get(module_name)
        if module is None:
            if self.is_project_module(submodule):
                return Symbol(submodule, "", SymbolKind.MODULE)
            if self.is_project_module(module_name):
                return None
            return Symbol(module_name, name, SymbolKind.UNKNOWN)

        declaration = module.declarations.get(name)
        if declaration is not None:
            return declaration.symbol

        binding = module.bindings.get(name)
        if binding is not None:
            return self.resolve_binding(binding, _seen=seen)

        if allow_submodule and self.is_project_module(submodule):
            return Symbol(submodule, "", SymbolKind.MODULE)

        for star_module in module.star_imports:
            symbol = self.resolve_member(star_module, name, _seen=seen)
            if symbol is not None and symbol.kind is not SymbolKind.UNKNOWN:
                return symbol
        return None

    def resolve_binding(
        self, binding: Binding, _seen: set[tuple[str, str]] | None = None,
    ) -> Symbol | None:
        if binding.name is None:
            return Symbol(binding.module, "", SymbolKind.MODULE)
        return self.resolve_member(
            binding.module, binding.name, allow_submodule=True, _seen=_seen,
        )

    def resolve_attribute(self, base: Symbol, attr: str) -> Symbol | None:
        """What `base.attr` refers to."""
        if base.kind is SymbolKind.MODULE:
            return self.resolve_member(base.module, attr, allow_submodule=True)
        if base.kind is SymbolKind.NAMED_TYPE:
            return self.lookup_class_member(base, attr)
        if base.kind is SymbolKind.UNKNOWN:
            return Symbol(base.module, f"{base.name}.{attr}", SymbolKind.UNKNOWN)
        return None

    def resolve_expression(self, module_name: str, expr: ast.AST) -> Symbol | None:
        """Resolve a dotted name written at module level (e.g. a base class)."""
        if isinstance(expr, ast.Name):
            return self.resolve_member(module_name, expr.id)
        if isinstance(expr, ast.Attribute):
            base = self.resolve_expression(module_name, expr.value)
            return self.resolve_attribute(base, expr.attr) if base is not None else None
        if isinstance(expr, ast.Subscript):
            return self.resolve_expression(module_name, expr.value)
        return None

    def lookup_class_member(
        self, class_symbol: Symbol, attr: str, _seen: set[str] | None = None,
    ) -> Symbol | None:
        """Find `attr` on a project class or, failing that, on its bases."""
        seen = _seen if _seen is not None else set()
        if class_symbol.qualified_name in seen:
            return None
        seen.add(class_symbol.qualified_name)

        module = self.modules.get(class_symbol.module)
        if module is None:
            return None
        member = module.declarations.get(f"{class_symbol.name}.{attr}")
        if member is not None:
            return member.symbol
        return self.lookup_base_member(class_symbol, attr, _seen=seen)

    def lookup_base_member(
        self, class_symbol: Symbol, attr: str, _seen: set[str] | None = None,
    ) -> Symbol | None:
        """Find `attr` on the project base classes of a class (as `super()` does)."""
        declaration = self.declaration(class_symbol.qualified_name)
        if declaration is None or not isinstance(declaration.node, ast.ClassDef):
            return None
        seen = _seen if _seen is not None else {class_symbol.qualified_name}
        for base in declaration.node.bases:
            base_symbol = self.resolve_expression(class_symbol.module, base)
            if base_symbol is None or base_symbol.kind is not SymbolKind.NAMED_TYPE:
                continue
            found = self.lookup_class_member(base_symbol, attr, _seen=seen)
            if found is not None:
                return found
        return None


# ─── Loading ──────────────────────────────────────────────


def _module_name_for(rel_path: str, src_layout: bool) -> str:
    if src_layout and rel_path.startswith("src/"):
        rel_path = rel_path[len("src/"):]
    return path_to_module(rel_path)


def load_project(
    root: str | Path, settings: BaseTracerSettings | None = None,
) -> ProgramDatabase:
    """
    Discover, parse and index every Python file under root.

    Files that fail to parse are recorded in ``db.errors`` and skipped.

    Raises:
        ProjectLoadError: root is not a directory, holds no Python files,
            or (with ``strict_load``) some file failed to parse.
    """
    settings = settings or TracerSettings()
    root_path = Path(root).expanduser().resolve()
    if not root_path.is_dir():
        raise ProjectLoadError(f"project root '{root}' is not a directory")

    files = discover_python_files(root_path, settings.exclude_dirs, settings.skip_files)
    if not files:
        raise ProjectLoadError(f"no Python files found under '{root_path}'")

    src_dir = root_path / "src"
    src_layout = src_dir.is_dir() and not (src_dir / "__init__.py").exists()

    db = ProgramDatabase(root_path)
    for rel_path in files:
        abs_path = root_path / rel_path
        try:
            source = abs_path.read_text(encoding="utf-8", errors="replace")
            tree = ast.parse(source, filename=str(abs_path))
        except (OSError, SyntaxError, ValueError) as e:
            logger.warning("Failed to load %s: %s", rel_path, e)
            db.errors.append(LoadIssue(rel_path, str(e)))
            continue

        module = ModuleInfo(
            name=_module_name_for(rel_path, src_layout),
            path=rel_path,
            abs_path=abs_path,
            source=source,
            tree=tree,
            is_package=rel_path.endswith("__init__.py"),
        )
        index_module(module)
        db.add_module(module)

    logger.info(
        "Loaded %d modules from %s (%d failed)",
        len(db.modules), root_path, len(db.errors),
    )
    if db.errors:
        logger.warning("Errors found while loading project: %s", root_path)
        if settings.strict_load:
            failed = ", ".join(issue.file for issue in db.errors)
            raise ProjectLoadError(f"{len(db.errors)} file(s) failed to parse: {failed}")
    if not db.modules:
        raise ProjectLoadError(f"no Python file under '{root_path}' could be parsed")
    return db
