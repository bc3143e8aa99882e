"""
Function-scope name resolution.

The ProgramDatabase knows what names mean at module level.  A ScopeResolver
layers one function's view on top of that: parameters and assigned locals
shadow module names, imports inside the function add bindings, `self`/`cls`
stand for the enclosing class, and locals whose class is evident from an
annotation or a constructor call let `obj.method()` resolve to the method.
"""

import ast
import logging
from typing import Iterator

from call_tracer.tracer.database import (
    Binding,
    ModuleInfo,
    ProgramDatabase,
    import_bindings,
    terminal_name,
)
from call_tracer.tracer.models import AnalysisTarget, Symbol, SymbolKind

logger = logging.getLogger("call_tracer.resolver")

COMPREHENSION_NODES = (ast.ListComp, ast.SetComp, ast.DictComp, ast.GeneratorExp)

_SCOPE_NODES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef, ast.Lambda) + COMPREHENSION_NODES

# Wrappers whose first argument is the annotated class
_TRANSPARENT_FORMS = {"Optional", "Annotated", "ClassVar", "Final"}


def scope_nodes(body: list[ast.AST]) -> Iterator[ast.AST]:
    """
    Pre-order walk of a scope's nodes.
    Nested function, class, lambda and comprehension nodes are yielded but
    not entered.
    """
    stack = list(reversed(body))
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, _SCOPE_NODES):
            continue
        stack.extend(reversed(list(ast.iter_child_nodes(node))))


def _parameters(args: ast.arguments) -> list[ast.arg]:
    params = list(args.posonlyargs) + list(args.args)
    if args.vararg is not None:
        params.append(args.vararg)
    params.extend(args.kwonlyargs)
    if args.kwarg is not None:
        params.append(args.kwarg)
    return params


def collect_local_names(
    node: ast.FunctionDef | ast.AsyncFunctionDef | ast.Lambda, module: ModuleInfo,
) -> tuple[set[str], dict[str, Binding]]:
    """Names local to a function scope, and the imports made inside it."""
    names = {param.arg for param in _parameters(node.args)}
    body = [node.body] if isinstance(node, ast.Lambda) else node.body
    declared_outer: set[str] = set()
    imports: dict[str, Binding] = {}

    for child in scope_nodes(body):
        if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            names.add(child.name)
        elif isinstance(child, (ast.Global, ast.Nonlocal)):
            declared_outer.update(child.names)
        elif isinstance(child, ast.Name) and isinstance(child.ctx, (ast.Store, ast.Del)):
            names.add(child.id)
        elif isinstance(child, ast.ExceptHandler) and child.name:
            names.add(child.name)
        elif isinstance(child, (ast.MatchAs, ast.MatchStar)) and child.name:
            names.add(child.name)
        elif isinstance(child, ast.MatchMapping) and child.rest:
            names.add(child.rest)
        elif isinstance(child, (ast.Import, ast.ImportFrom)):
            for name, binding in import_bindings(child, module):
                if name != "*":
                    imports.setdefault(name, binding)
        elif isinstance(child, COMPREHENSION_NODES):
            # := inside a comprehension binds in the enclosing function
            names.update(
                inner.target.id
                for inner in ast.walk(child)
                if isinstance(inner, ast.NamedExpr)
            )

    names -= declared_outer
    return names, imports


def comprehension_names(node: ast.ListComp | ast.SetComp | ast.DictComp | ast.GeneratorExp) -> set[str]:
    """Names bound by the `for` targets of a comprehension."""
    return {
        child.id
        for generator in node.generators
        for child in ast.walk(generator.target)
        if isinstance(child, ast.Name) and isinstance(child.ctx, ast.Store)
    }


def receiver_names(node: ast.FunctionDef | ast.AsyncFunctionDef) -> frozenset[str]:
    """The parameter bound to the instance (or class) in a method."""
    decorators = {terminal_name(d) for d in node.decorator_list}
    if "staticmethod" in decorators:
        return frozenset()
    params = list(node.args.posonlyargs) + list(node.args.args)
    return frozenset({params[0].arg}) if params else frozenset()


def _is_super_call(node: ast.AST) -> bool:
    return (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id == "super"
    )


class ScopeResolver:
    """Resolves `Name` and `Attribute` references inside one function scope."""

    def __init__(
        self,
        db: ProgramDatabase,
        module: ModuleInfo,
        class_symbol: Symbol | None = None,
        receivers: frozenset[str] = frozenset(),
        local_names: frozenset[str] = frozenset(),
        imports: dict[str, Binding] | None = None,
        local_types: dict[str, Symbol] | None = None,
    ):
        self.db = db
        self.module = module
        self.class_symbol = class_symbol
        self.receivers = receivers
        self.local_names = local_names
        self.imports = imports or {}
        self.local_types = local_types or {}

    @classmethod
    def for_target(cls, db: ProgramDatabase, target: AnalysisTarget) -> "ScopeResolver":
        """Resolver for the body of an analysis target."""
        class_symbol = None
        receivers: frozenset[str] = frozenset()
        declaration = db.declaration(target.qualified_name)
        if declaration is not None and declaration.parent_class:
            parent = db.declaration(f"{target.module.name}.{declaration.parent_class}")
            if parent is not None:
                class_symbol = parent.symbol
                receivers = receiver_names(target.node)
        return cls(db, target.module, class_symbol).enter(target.node, receivers=receivers)

    def enter(
        self,
        node: ast.AST,
        receivers: frozenset[str] | None = None,
    ) -> "ScopeResolver":
        """Resolver for a function, lambda or comprehension nested in this scope."""
        if isinstance(node, COMPREHENSION_NODES):
            names, imports = comprehension_names(node), {}
        else:
            names, imports = collect_local_names(node, self.module)
        if receivers is None:
            receivers = self.receivers - names
        child = ScopeResolver(
            self.db,
            self.module,
            class_symbol=self.class_symbol,
            receivers=receivers,
            local_names=self.local_names | names,
            imports={
                **{k: v for k, v in self.imports.items() if k not in names},
                **imports,
            },
            local_types={k: v for k, v in self.local_types.items() if k not in names},
        )
        for name, symbol in child._infer_local_types(node).items():
            if name not in receivers:
                child.local_types[name] = symbol
        return child

    # ─── Resolution ───────────────────────────────────────

    def resolve(self, node: ast.AST) -> Symbol | None:
        """The symbol a Name or Attribute refers to, or None."""
        if isinstance(node, ast.Name):
            return self.resolve_name(node.id)
        if isinstance(node, ast.Attribute):
            if _is_super_call(node.value) and self.class_symbol is not None:
                return self.db.lookup_base_member(self.class_symbol, node.attr)
            base = self._resolve_receiver(node.value)
            if base is None:
                return None
            return self.db.resolve_attribute(base, node.attr)
        return None

    def resolve_name(self, name: str) -> Symbol | None:
        binding = self.imports.get(name)
        if binding is not None:
            return self.db.resolve_binding(binding)
        if name in self.local_names:
            return None
        return self.db.resolve_member(self.module.name, name)

    def _resolve_receiver(self, node: ast.AST) -> Symbol | None:
        """The object whose attribute is being read."""
        if isinstance(node, ast.Name):
            if node.id in self.receivers and self.class_symbol is not None:
                return self.class_symbol
            if node.id in self.local_types:
                return self.local_types[node.id]
            return self.resolve_name(node.id)
        if isinstance(node, ast.Attribute):
            return self.resolve(node)
        if isinstance(node, ast.Call):
            return self._class_of_call(node)
        return None

    # ─── Local type inference ─────────────────────────────

    def _project_class(self, symbol: Symbol | None) -> Symbol | None:
        if symbol is None or symbol.kind is not SymbolKind.NAMED_TYPE:
            return None
        if symbol.module not in self.db.modules:
            return None
        return symbol

    def _class_of_call(self, call: ast.Call) -> Symbol | None:
        """`Client(...)` -> Client, when Client is a project class."""
        return self._project_class(self.resolve(call.func))

    def _annotation_class(self, annotation: ast.AST | None) -> Symbol | None:
        """The project class an annotation names, if it names exactly one."""
        if annotation is None:
            return None
        if isinstance(annotation, ast.Constant) and isinstance(annotation.value, str):
            try:
                annotation = ast.parse(annotation.value.strip(), mode="eval").body
            except SyntaxError:
                return None
            return self._annotation_class(annotation)
        if isinstance(annotation, ast.Subscript):
            if terminal_name(annotation.value) not in _TRANSPARENT_FORMS:
                return None
            inner = annotation.slice
            if isinstance(inner, ast.Tuple) and inner.elts:
                inner = inner.elts[0]
            return self._annotation_class(inner)
        if isinstance(annotation, ast.BinOp) and isinstance(annotation.op, ast.BitOr):
            sides = [annotation.left, annotation.right]
            sides = [s for s in sides if not (isinstance(s, ast.Constant) and s.value is None)]
            if len(sides) == 1:
                return self._annotation_class(sides[0])
            return None
        if isinstance(annotation, (ast.Name, ast.Attribute)):
            return self._project_class(self.resolve(annotation))
        return None

    def _infer_local_types(
        self, node: ast.AST,
    ) -> dict[str, Symbol]:
        types: dict[str, Symbol] = {}
        if isinstance(node, COMPREHENSION_NODES):
            return types
        for param in _parameters(node.args):
            symbol = self._annotation_class(param.annotation)
            if symbol is not None:
                types.setdefault(param.arg, symbol)
        if isinstance(node, ast.Lambda):
            return types

        for child in scope_nodes(node.body):
            if isinstance(child, ast.AnnAssign) and isinstance(child.target, ast.Name):
                symbol = self._annotation_class(child.annotation)
                if symbol is not None:
                    types.setdefault(child.target.id, symbol)
            elif isinstance(child, ast.Assign) and isinstance(child.value, ast.Call):
                symbol = self._class_of_call(child.value)
                if symbol is None:
                    continue
                for target in child.targets:
                    if isinstance(target, ast.Name):
                        types.setdefault(target.id, symbol)
            elif isinstance(child, ast.withitem):
                if isinstance(child.optional_vars, ast.Name) and isinstance(
                    child.context_expr, ast.Call
                ):
                    symbol = self._class_of_call(child.context_expr)
                    if symbol is not None:
                        types.setdefault(child.optional_vars.id, symbol)
        return types
