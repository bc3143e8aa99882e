"""
Unit tests for snippet rendering.
"""

import ast

import pytest

from call_tracer.shared.exceptions import InvalidRequestError, RenderError
from call_tracer.tracer import SnippetStyle, find_target, get_declaration_source, load_project
from call_tracer.tracer.renderer import parse_style, render_node, render_symbol


class TestCanonical:
    """Tests for ast.unparse-based rendering."""

    def test_method_without_comments(self, shop_db):
        symbol = shop_db.declaration("shop.models.Receipt.render").symbol
        assert render_symbol(shop_db, symbol) == (
            "def render(self) -> str:\n"
            "    return format_total(self.order.total)"
        )

    def test_deterministic(self, shop_db):
        symbol = shop_db.declaration("shop.models.Receipt").symbol
        assert render_symbol(shop_db, symbol) == render_symbol(shop_db, symbol)

    def test_class_keeps_decorator(self, shop_db):
        symbol = shop_db.declaration("shop.models.Order").symbol
        assert render_symbol(shop_db, symbol).startswith("@dataclass\nclass Order:")

    def test_unparse_failure_is_render_error(self, monkeypatch):
        def boom(node):
            raise ValueError("cannot unparse")

        monkeypatch.setattr(ast, "unparse", boom)
        with pytest.raises(RenderError, match="cannot unparse"):
            render_node(ast.parse("x = 1").body[0])


class TestVerbatim:
    """Tests for original-source rendering."""

    def test_keeps_comments_and_dedents(self, shop_db):
        symbol = shop_db.declaration("shop.models.Receipt.render").symbol
        assert render_symbol(shop_db, symbol, SnippetStyle.VERBATIM) == (
            "def render(self) -> str:\n"
            "    # two decimals\n"
            "    return format_total(self.order.total)"
        )

    def test_needs_module(self):
        with pytest.raises(RenderError):
            render_node(ast.parse("x = 1").body[0], None, "verbatim")


class TestTargetSource:
    """Tests for rendering an analysis target's own declaration."""

    def test_target_source(self, shop_db):
        target = find_target(shop_db, "shop/models.py", "format_total")
        source = get_declaration_source(target)
        assert source.startswith("def format_total(value: float) -> str:")

    def test_async_target(self, make_project, settings):
        root = make_project({"jobs.py": "async def run():\n    await other()\n\n\nasync def other():\n    pass\n"})
        db = load_project(root, settings)
        target = find_target(db, "jobs.py", "run")
        assert get_declaration_source(target) == "async def run():\n    await other()"


class TestParseStyle:
    def test_known(self):
        assert parse_style("verbatim") is SnippetStyle.VERBATIM

    def test_unknown(self):
        with pytest.raises(InvalidRequestError, match="unknown snippet style"):
            parse_style("pretty")
