import pytest

from calcore.repos import Repositories
from calcore.repos.memory import MemoryStore, memory_repositories


@pytest.fixture
def store() -> MemoryStore:
    """Provide an empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def repos(store: MemoryStore) -> Repositories:
    """Provide memory repositories bound to the test store."""
    return memory_repositories(store)
