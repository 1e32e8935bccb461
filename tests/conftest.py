import pytest

from core.tree import Tree, load
from tools.knowledge import ToolRegistry

from tests.fakes import SCENARIO_YAML, FakeTool


@pytest.fixture
def scenario_tree() -> Tree:
    return load(SCENARIO_YAML)


@pytest.fixture
def fake_tool() -> FakeTool:
    return FakeTool("42")


@pytest.fixture
def tools(fake_tool) -> ToolRegistry:
    return ToolRegistry([fake_tool], default=fake_tool.name)
