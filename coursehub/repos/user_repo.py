from __future__ import annotations

from typing import Protocol
from uuid import UUID

from coursehub.models.user import User
from coursehub.repos.errors import DuplicateRecordError


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def get_many(self, user_ids: set[UUID]) -> dict[UUID, User]: ...
    async def add(self, user: User) -> None: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_email: dict[str, User] = {}
        self._by_id: dict[UUID, User] = {}

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    async def get_many(self, user_ids: set[UUID]) -> dict[UUID, User]:
        return {uid: self._by_id[uid] for uid in user_ids if uid in self._by_id}

    async def add(self, user: User) -> None:
        if user.email in self._by_email:
            raise DuplicateRecordError("email already exists")
        self._by_email[user.email] = user
        self._by_id[user.id] = user
