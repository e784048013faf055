"""
Shared fixtures for the contextrank test suite.
"""

import os
import tempfile
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterator, List

# The log sink is created at import time, keep it out of the working tree
os.environ.setdefault(
    "CONTEXTRANK_LOG_FILE", os.path.join(tempfile.gettempdir(), "contextrank-tests.log")
)

import pytest  # noqa: E402

from contextrank.core.secure_config import Settings  # noqa: E402
from contextrank.engine import Engine  # noqa: E402
from contextrank.models.item import Item  # noqa: E402


def make_settings(**sections: Dict[str, Any]) -> Settings:
    """Settings with small pools; keyword sections override defaults."""
    overrides: Dict[str, Any] = {"search": {"workers": 2}}
    for section, values in sections.items():
        overrides.setdefault(section, {}).update(values)
    return Settings(overrides=overrides)


def make_tool(
    item_id: str,
    content: str,
    categories: List[str],
    tenant_scope: str = "acme",
    **fields: Any,
) -> Item:
    """Tool-like item with its categories as array metadata and tags."""
    return Item(
        id=item_id,
        content=content,
        array_metadata={"categories": list(categories)},
        tags=set(categories),
        tenant_scope=tenant_scope,
        **fields,
    )


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def engine(settings: Settings) -> Iterator[Engine]:
    engine = Engine(settings)
    yield engine
    engine.shutdown()


@pytest.fixture
def tools() -> List[Item]:
    return [
        make_tool("calculator", "adds two integers", ["math"]),
        make_tool(
            "currency-converter",
            "converts currency amounts using exchange rate",
            ["finance"],
        ),
        make_tool("unit-converter", "converts between measurement units", ["math"]),
    ]


@pytest.fixture
def indexed_engine(engine: Engine, tools: List[Item]) -> Engine:
    for tool in tools:
        engine.index(tool)
    return engine


@pytest.fixture
def executor() -> Iterator[ThreadPoolExecutor]:
    pool = ThreadPoolExecutor(max_workers=2)
    yield pool
    pool.shutdown(wait=True)
