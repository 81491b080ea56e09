"""
Memory repository tests: the shared contract suite plus behaviour
specific to the in-memory store.
"""

import pytest

from calcore.repos import Repositories
from calcore.repos.memory import MemoryStore, memory_repositories
from calcore.tests.factories import minimal_event, minimal_share
from calcore.tests.repository_contracts import (
    CategoryRepositoryContractTestMixin,
    DeadlineRepositoryContractTestMixin,
    EventExceptionRepositoryContractTestMixin,
    EventRepositoryContractTestMixin,
    InvitationRepositoryContractTestMixin,
    OpenShareRepositoryContractTestMixin,
    ShareRepositoryContractTestMixin,
)
from calcore.validation import RepositoryValidationError


class MemoryRepositoriesMixin:
    async def create_repositories(self) -> Repositories:
        return memory_repositories(MemoryStore())


class TestMemoryEventRepository(
    MemoryRepositoriesMixin, EventRepositoryContractTestMixin
):
    pass


class TestMemoryEventExceptionRepository(
    MemoryRepositoriesMixin, EventExceptionRepositoryContractTestMixin
):
    pass


class TestMemoryDeadlineRepository(
    MemoryRepositoriesMixin, DeadlineRepositoryContractTestMixin
):
    pass


class TestMemoryCategoryRepository(
    MemoryRepositoriesMixin, CategoryRepositoryContractTestMixin
):
    pass


class TestMemoryShareRepository(
    MemoryRepositoriesMixin, ShareRepositoryContractTestMixin
):
    pass


class TestMemoryOpenShareRepository(
    MemoryRepositoriesMixin, OpenShareRepositoryContractTestMixin
):
    pass


class TestMemoryInvitationRepository(
    MemoryRepositoriesMixin, InvitationRepositoryContractTestMixin
):
    pass


class TestMemoryStoreIsolation:
    @pytest.mark.asyncio
    async def test_returned_models_are_copies(self) -> None:
        repos = memory_repositories(MemoryStore())
        await repos.shares.save(minimal_share(shared_category_ids=[10]))

        share = await repos.shares.get(1)
        share.shared_category_ids.append(99)

        assert (await repos.shares.get(1)).shared_category_ids == [10]

    @pytest.mark.asyncio
    async def test_saved_models_are_copies(self) -> None:
        repos = memory_repositories(MemoryStore())
        event = minimal_event()
        await repos.events.save(event)

        event.title = "Mutated after save"

        [stored] = await repos.events.get_by_ids([1])
        assert stored.title == "Test Event"

    @pytest.mark.asyncio
    async def test_clear_empties_every_table(self) -> None:
        store = MemoryStore()
        repos = memory_repositories(store)
        await repos.events.save(minimal_event())
        await repos.shares.save(minimal_share())

        store.clear()

        assert await repos.events.get_by_ids([1]) == []
        assert await repos.shares.get(1) is None


def test_bundle_validation_rejects_non_conforming_members() -> None:
    repos = memory_repositories(MemoryStore())

    with pytest.raises(RepositoryValidationError):
        repos._replace(events=object()).validated()
