"""
Unit tests for the symbol classifier and scope-aware name resolution.
"""

import ast

import pytest

from call_tracer.tracer import find_target, load_project
from call_tracer.tracer.classifier import NodeKind, classify, node_kind


# ─── Fixtures ────────────────────────────────────────────────


APP_SOURCE = '''\
import os
from typing import Annotated, Literal

from shop.models import format_total


def helper():
    return 1


def shadowed(helper):
    return helper()


def lambda_param():
    return list(map(lambda helper: helper(), []))


def lambda_closure():
    return (lambda: helper())()


def outside_project():
    return os.path.join("a", "b")


def local_import():
    from shop.models import Receipt
    return Receipt


class Base:
    def save(self):
        pass


class Repo(Base):
    def save(self):
        super().save()
        self.validate()

    def validate(self):
        pass

    @staticmethod
    def build(self_like):
        return self_like.validate()


def use(repo: Repo) -> None:
    repo.validate()


def construct():
    repo = Repo()
    repo.save()


def forward(x: "Repo") -> "list[Base]":
    pass


def literal(mode: Literal["Repo"]) -> None:
    pass


def stub():
    ...


def register(func):
    return func


def uses_comprehension(items):
    helper()
    return [helper for helper in items]


def comprehension_target_shadows(items):
    return {helper: helper() for helper in items}


def first_iterable_is_outer():
    return [helper for helper in helper()]


def walrus_in_generator(items):
    if any((helper := item) for item in items):
        return helper()


def decorated_inner():
    @register
    def inner(register):
        return register
    return inner


def nested_default():
    def inner(helper=helper):
        return helper()
    return inner


def own_default(helper=helper):
    return helper


def annotated(repo: Annotated[Repo, "helper"]) -> None:
    pass
'''


@pytest.fixture
def app_db(make_project, settings, shop_files):
    root = make_project({**shop_files, "app.py": APP_SOURCE})
    return load_project(root, settings)


def _classify(db, func):
    target = find_target(db, "app.py", func)
    found = classify(target, db, db.project_scope)
    return (
        [s.qualified_name for s in found.callables],
        [s.qualified_name for s in found.types],
    )


# ─── node_kind ───────────────────────────────────────────────


class TestNodeKind:
    """Tests for the node kind discriminator."""

    def test_kinds(self):
        module = ast.parse("def f():\n    if x:\n        g(a.b)\n")
        func = module.body[0]
        if_stmt = func.body[0]
        call = if_stmt.body[0].value
        assert node_kind(func) is NodeKind.DECLARATION
        assert node_kind(if_stmt) is NodeKind.BLOCK
        assert node_kind(call) is NodeKind.CALL
        assert node_kind(call.func) is NodeKind.IDENTIFIER
        assert node_kind(call.args[0]) is NodeKind.IDENTIFIER
        assert node_kind(ast.Constant(1)) is NodeKind.OTHER

    def test_string_is_type_reference_only_in_annotations(self):
        text = ast.Constant("Repo")
        assert node_kind(text, in_annotation=True) is NodeKind.TYPE_REFERENCE
        assert node_kind(text, in_annotation=False) is NodeKind.OTHER


# ─── classify ────────────────────────────────────────────────


class TestClassify:
    """Tests for splitting references into callables and types."""

    def test_direct_references(self, shop_db):
        target = find_target(shop_db, "shop/service.py", "handle")
        found = classify(target, shop_db, shop_db.project_scope)
        assert [s.qualified_name for s in found.callables] == [
            "shop.service.load_order",
            "shop.models.Receipt.render",
        ]
        # duplicates are kept: return annotation and constructor call
        assert [s.qualified_name for s in found.types] == [
            "shop.models.Receipt",
            "shop.models.Receipt",
        ]

    def test_parameter_shadows_module_function(self, app_db):
        assert _classify(app_db, "shadowed") == ([], [])

    def test_lambda_parameter_shadows(self, app_db):
        assert _classify(app_db, "lambda_param") == ([], [])

    def test_lambda_closure_sees_module_names(self, app_db):
        assert _classify(app_db, "lambda_closure") == (["app.helper"], [])

    def test_outside_project_filtered(self, app_db):
        assert _classify(app_db, "outside_project") == ([], [])

    def test_function_level_import(self, app_db):
        assert _classify(app_db, "local_import") == ([], ["shop.models.Receipt"])

    def test_super_and_self(self, app_db):
        callables, _ = _classify(app_db, "Repo.save")
        assert callables == ["app.Base.save", "app.Repo.validate"]

    def test_staticmethod_has_no_receiver(self, app_db):
        assert _classify(app_db, "Repo.build") == ([], [])

    def test_annotated_parameter(self, app_db):
        assert _classify(app_db, "use") == (["app.Repo.validate"], ["app.Repo"])

    def test_constructed_local(self, app_db):
        assert _classify(app_db, "construct") == (["app.Repo.save"], ["app.Repo"])

    def test_string_annotations(self, app_db):
        assert _classify(app_db, "forward") == ([], ["app.Repo", "app.Base"])

    def test_literal_strings_are_not_types(self, app_db):
        assert _classify(app_db, "literal") == ([], [])

    def test_empty_body(self, app_db):
        assert _classify(app_db, "stub") == ([], [])


# ─── Scopes ──────────────────────────────────────────────────


class TestScopes:
    """Tests for names bound in comprehension and nested function scopes."""

    def test_comprehension_target_does_not_shadow_function_body(self, app_db):
        assert _classify(app_db, "uses_comprehension") == (["app.helper"], [])

    def test_comprehension_target_shadows_inside(self, app_db):
        assert _classify(app_db, "comprehension_target_shadows") == ([], [])

    def test_first_iterable_resolves_outside(self, app_db):
        assert _classify(app_db, "first_iterable_is_outer") == (["app.helper"], [])

    def test_walrus_binds_in_enclosing_function(self, app_db):
        assert _classify(app_db, "walrus_in_generator") == ([], [])

    def test_decorator_resolves_in_enclosing_scope(self, app_db):
        assert _classify(app_db, "decorated_inner") == (["app.register"], [])

    def test_nested_default_resolves_in_enclosing_scope(self, app_db):
        assert _classify(app_db, "nested_default") == (["app.helper"], [])

    def test_target_default_resolves_at_module_level(self, app_db):
        assert _classify(app_db, "own_default") == (["app.helper"], [])

    def test_annotated_metadata_is_not_a_type(self, app_db):
        assert _classify(app_db, "annotated") == ([], ["app.Repo"])
