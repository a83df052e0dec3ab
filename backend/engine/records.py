"""
User and game records as the engine sees them.
Records are plain mutable dataclasses; the store adapter converts them to and from rows.
Includes JSON-friendly serialization for API responses.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


def _ensure_str_list(value: Any) -> list[str]:
    """Ensure value is a list of strings (players and back-reference lists coming from storage)."""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(x) for x in value]
    return []


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


@dataclass
class UserRecord:
    """A registered user plus the redundant back-references to their games."""
    name: str
    username: str
    email: str
    password: str  # bcrypt hash, never serialized
    role: str = "user"
    games_participate: list[str] = field(default_factory=list)  # game ids, mirrors Game.players
    games_created: list[str] = field(default_factory=list)  # game ids, mirrors Game.creator_id
    id: str | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Public representation; the password hash is left out."""
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "games_participate": list(self.games_participate),
            "games_created": list(self.games_created),
            "created_at": _isoformat(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserRecord":
        if not isinstance(data, dict):
            data = {}
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            name=str(data.get("name") or ""),
            username=str(data.get("username") or ""),
            email=str(data.get("email") or ""),
            password=str(data.get("password") or ""),
            role=str(data.get("role") or "user"),
            games_participate=_ensure_str_list(data.get("games_participate")),
            games_created=_ensure_str_list(data.get("games_created")),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass
class GameRecord:
    """A game. players holds usernames, not user ids, and is the source of truth for membership."""
    type: str
    creator_id: str
    players: list[str] = field(default_factory=list)
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "creator_id": self.creator_id,
            "players": list(self.players),
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameRecord":
        if not isinstance(data, dict):
            data = {}
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            type=str(data.get("type") or ""),
            creator_id=str(data.get("creator_id") or ""),
            players=_ensure_str_list(data.get("players")),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )
