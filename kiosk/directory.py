"""Directory lookups backing the kiosk's staff search."""

from __future__ import annotations

from typing import Iterable, List, Protocol, Sequence, Tuple

from .models import DirectoryUser


DEFAULT_USERS: Tuple[DirectoryUser, ...] = (
    DirectoryUser(
        id="user1",
        display_name="John Smith",
        mail="john.smith@company.com",
        job_title="Software Developer",
        department="IT",
    ),
    DirectoryUser(
        id="user2",
        display_name="Sarah Johnson",
        mail="sarah.johnson@company.com",
        job_title="Project Manager",
        department="Operations",
    ),
)


class DirectorySource(Protocol):
    """Anything that can answer a staff search query."""

    def search(self, query: str) -> Sequence[DirectoryUser]: ...


def matches(user: DirectoryUser, query: str) -> bool:
    """Return ``True`` when any searchable field contains ``query`` ignoring case."""

    needle = query.lower()
    return any(needle in value.lower() for value in user.searchable_fields())


class StaticDirectory:
    """Read-only directory backed by records loaded at startup."""

    def __init__(self, users: Iterable[DirectoryUser]) -> None:
        self._users: Tuple[DirectoryUser, ...] = tuple(users)
        seen = set()
        for user in self._users:
            if user.id in seen:
                raise ValueError(f"Duplicate directory user id '{user.id}'")
            seen.add(user.id)

    def __len__(self) -> int:
        return len(self._users)

    @property
    def users(self) -> Tuple[DirectoryUser, ...]:
        return self._users

    def search(self, query: str) -> List[DirectoryUser]:
        return [user for user in self._users if matches(user, query)]


def default_directory() -> StaticDirectory:
    return StaticDirectory(DEFAULT_USERS)


__all__ = [
    "DEFAULT_USERS",
    "DirectorySource",
    "StaticDirectory",
    "default_directory",
    "matches",
]
