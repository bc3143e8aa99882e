"""Shared fixtures: small Python projects written to a temporary directory."""

import textwrap
from pathlib import Path

import pytest

from call_tracer.shared.config import TracerSettings
from call_tracer.tracer import load_project


# ─── Sample project ──────────────────────────────────────────


SHOP_FILES = {
    "shop/__init__.py": "",
    "shop/models.py": '''\
        from dataclasses import dataclass


        @dataclass
        class Order:
            id: int
            total: float


        class Receipt:
            """Printable receipt."""

            def __init__(self, order: Order):
                self.order = order

            def render(self) -> str:
                # two decimals
                return format_total(self.order.total)


        def format_total(value: float) -> str:
            return f"{value:.2f}"
        ''',
    "shop/util.py": '''\
        import json


        def compute_total(order_id):
            return float(json.dumps(order_id))
        ''',
    "shop/service.py": '''\
        from shop.models import Order, Receipt
        from shop import util


        def handle(order_id: int) -> Receipt:
            order = load_order(order_id)
            receipt = Receipt(order)
            receipt.render()
            return receipt


        def load_order(order_id: int) -> Order:
            return Order(id=order_id, total=util.compute_total(order_id))
        ''',
}


def write_project(root: Path, files: dict[str, str]) -> Path:
    """Write {relative path: source} under root and return root."""
    for rel_path, source in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source), encoding="utf-8")
    return root


@pytest.fixture
def settings() -> TracerSettings:
    return TracerSettings(_env_file=None)


@pytest.fixture
def make_project(tmp_path):
    """Factory: make_project({path: source}) -> project root."""

    def _make(files: dict[str, str], name: str = "project") -> Path:
        return write_project(tmp_path / name, files)

    return _make


@pytest.fixture
def shop_root(make_project) -> Path:
    return make_project(SHOP_FILES, name="shop_project")


@pytest.fixture
def shop_db(shop_root, settings):
    return load_project(shop_root, settings)


@pytest.fixture
def shop_files() -> dict[str, str]:
    return dict(SHOP_FILES)
