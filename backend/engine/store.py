"""
Record store interface consumed by the engine.
One Collection per record type; RecordStore bundles the users and games collections.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from backend.engine.records import GameRecord, UserRecord

R = TypeVar("R")


def matches_filter(record: Any, filter_: dict[str, Any]) -> bool:
    """
    Document-store style match: a scalar field matches on equality,
    a list field matches when it contains the value.
    Example: matches_filter(user, {"games_participate": game_id})
    """
    for key, expected in filter_.items():
        actual = getattr(record, key, None)
        if isinstance(actual, list):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


class Collection(Generic[R]):
    """Abstract collection of records. Every call is independent; there are no transactions."""

    def get_by_id(self, record_id: str) -> R | None:
        raise NotImplementedError

    def find(self, filter_: dict[str, Any] | None = None) -> list[R]:
        raise NotImplementedError

    def find_one(self, filter_: dict[str, Any]) -> R | None:
        found = self.find(filter_)
        return found[0] if found else None

    def insert(self, record: R) -> R:
        """Persist a new record and return it with its store-assigned id."""
        raise NotImplementedError

    def save(self, record: R) -> None:
        """Overwrite the stored record with the same id."""
        raise NotImplementedError

    def delete_by_id(self, record_id: str) -> None:
        raise NotImplementedError


@dataclass
class RecordStore:
    users: Collection[UserRecord]
    games: Collection[GameRecord]
