import pytest

from zork_agents.store import WorldStore


@pytest.fixture
def store(tmp_path):
    """A fresh world store in its own directory for every test."""
    return WorldStore(tmp_path / "world")
