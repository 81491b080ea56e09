"""
Memory implementations of DeadlineRepository and CategoryRepository.
"""

import logging
from datetime import datetime
from typing import List, Optional, Set

from calcore.domain import Category, Deadline
from calcore.repositories import CategoryRepository, DeadlineRepository
from calcore.sync import select_changed

from .store import MemoryStore

logger = logging.getLogger(__name__)


class MemoryDeadlineRepository(DeadlineRepository):
    def __init__(self, store: MemoryStore) -> None:
        self.logger = logger
        self.store = store

    async def save(self, deadline: Deadline) -> None:
        self.store.deadlines[deadline.deadline_id] = deadline.model_copy(
            deep=True
        )

    async def get_active_due_between(
        self, owner_user_id: int, start: datetime, end: datetime
    ) -> List[Deadline]:
        deadlines = [
            deadline.model_copy(deep=True)
            for deadline in self.store.deadlines.values()
            if deadline.owner_user_id == owner_user_id
            and deadline.deleted_at is None
            and start <= deadline.due_date < end
        ]
        deadlines.sort(key=lambda d: (d.due_date, d.deadline_id))
        return deadlines

    async def get_changed_for_owner(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[Deadline]:
        owned = [
            deadline.model_copy(deep=True)
            for deadline in self.store.deadlines.values()
            if deadline.owner_user_id == owner_user_id
        ]
        owned.sort(key=lambda d: d.deadline_id)
        return select_changed(owned, since)


class MemoryCategoryRepository(CategoryRepository):
    def __init__(self, store: MemoryStore) -> None:
        self.logger = logger
        self.store = store

    async def save(self, category: Category) -> None:
        self.store.categories[category.category_id] = category.model_copy(
            deep=True
        )

    async def get_owned_ids(
        self, owner_user_id: int, category_ids: List[int]
    ) -> Set[int]:
        return {
            category_id
            for category_id in category_ids
            if category_id in self.store.categories
            and self.store.categories[category_id].owner_user_id
            == owner_user_id
            and self.store.categories[category_id].deleted_at is None
        }

    async def get_changed_for_owner(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[Category]:
        owned = [
            category.model_copy(deep=True)
            for category in self.store.categories.values()
            if category.owner_user_id == owner_user_id
        ]
        owned.sort(key=lambda c: c.category_id)
        return select_changed(owned, since)
