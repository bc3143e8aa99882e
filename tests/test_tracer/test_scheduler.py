"""
Unit tests for the breadth-first traversal scheduler.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from call_tracer.shared.exceptions import InvalidRequestError, NodeNotFoundError
from call_tracer.tracer import DependencyTracer, find_target, load_project, trace_dependencies
from call_tracer.tracer import scheduler


# ─── Fixtures ────────────────────────────────────────────────


GRAPH_FILES = {
    "graph.py": '''\
        import json
        from collections import OrderedDict


        class T:
            pass


        class U:
            pass


        def a():
            t = T()
            b()
            c()


        def b():
            u: U = None
            d()


        def c():
            pass


        def d():
            json.dumps(OrderedDict())
        ''',
    "cycles.py": '''\
        def ping(n):
            return pong(n - 1)


        def pong(n):
            return ping(n)


        def recurse(n):
            return recurse(n - 1)
        ''',
    "alpha/__init__.py": "",
    "alpha/util.py": "def run():\n    pass\n",
    "beta/__init__.py": "",
    "beta/util.py": "def run():\n    pass\n",
    "main.py": '''\
        from alpha import util as au
        from beta import util as bu


        def go():
            au.run()
            bu.run()
        ''',
}


@pytest.fixture
def graph_db(make_project, settings):
    return load_project(make_project(GRAPH_FILES), settings)


def _trace(db, file, func, depth):
    return trace_dependencies(find_target(db, file, func), depth, db)


# ─── Depth bound ─────────────────────────────────────────────


class TestDepth:
    """Tests for the hop bound."""

    def test_depth_zero_is_direct_references_only(self, graph_db):
        result = _trace(graph_db, "graph.py", "a", 0)
        assert result.called_names() == ["graph.b", "graph.c"]
        assert result.type_names() == ["graph.T"]
        assert result.visited == {"graph.a"}

    def test_callees_of_callees_need_depth_two(self, graph_db):
        """a calls b and c, b calls d: d shows up once depth reaches 2."""
        assert _trace(graph_db, "graph.py", "a", 1).called_names() == ["graph.b", "graph.c"]
        assert _trace(graph_db, "graph.py", "a", 2).called_names() == [
            "graph.b", "graph.c", "graph.d",
        ]

    def test_types_in_callee_bodies_need_depth_two(self, graph_db):
        """U is only referenced inside b's body."""
        assert _trace(graph_db, "graph.py", "a", 1).type_names() == ["graph.T"]
        assert _trace(graph_db, "graph.py", "a", 2).type_names() == ["graph.T", "graph.U"]

    def test_negative_depth_rejected(self, graph_db):
        with pytest.raises(InvalidRequestError, match="depth"):
            DependencyTracer(graph_db, -1)


# ─── Traversal properties ────────────────────────────────────


class TestTraversal:
    """Tests for cycle safety, identity and scope filtering."""

    def test_two_cycle_terminates(self, graph_db):
        result = _trace(graph_db, "cycles.py", "ping", 5)
        assert result.called_names() == ["cycles.pong", "cycles.ping"]
        assert result.visited == {"cycles.ping", "cycles.pong"}

    def test_self_recursion_terminates(self, graph_db):
        result = _trace(graph_db, "cycles.py", "recurse", 3)
        assert result.called_names() == ["cycles.recurse"]

    def test_same_local_name_in_two_packages(self, graph_db):
        result = _trace(graph_db, "main.py", "go", 2)
        assert result.called_names() == ["alpha.util.run", "beta.util.run"]

    def test_outside_project_never_recorded(self, graph_db):
        result = _trace(graph_db, "graph.py", "d", 3)
        assert result.called_names() == []
        assert result.type_names() == []

    def test_repeated_traversal_is_identical(self, graph_db):
        first = _trace(graph_db, "graph.py", "a", 3)
        second = _trace(graph_db, "graph.py", "a", 3)
        assert first.called_names() == second.called_names()
        assert first.type_names() == second.type_names()

    def test_concurrent_traversals_share_database(self, graph_db):
        target = find_target(graph_db, "graph.py", "a")
        tracer = DependencyTracer(graph_db, 3)
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: tracer.trace(target), range(8)))
        assert {tuple(r.called_names()) for r in results} == {("graph.b", "graph.c", "graph.d")}

    def test_unlocatable_callee_kept_but_not_expanded(self, graph_db, monkeypatch):
        real_locate = scheduler.locate_function

        def fake_locate(db, symbol):
            if symbol.qualified_name == "graph.b":
                raise NodeNotFoundError("stale position")
            return real_locate(db, symbol)

        monkeypatch.setattr(scheduler, "locate_function", fake_locate)
        result = _trace(graph_db, "graph.py", "a", 3)
        assert result.called_names() == ["graph.b", "graph.c"]
        assert result.type_names() == ["graph.T"]
