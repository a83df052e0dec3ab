"""
Input validation and read-only queries.
Nothing here writes to the store.
"""

import logging
from dataclasses import dataclass
from typing import Any

from backend.engine.errors import NotFound, ValidationFailed
from backend.engine.records import GameRecord
from backend.engine.store import RecordStore

logger = logging.getLogger("mafia.engine.queries")


@dataclass
class ValidationResult:
    """Result of input validation."""
    valid: bool
    error: str | None = None

    def raise_for_invalid(self) -> None:
        if not self.valid:
            raise ValidationFailed(self.error or "Invalid input, check data.")


def _is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


# ===== Validation =====

def validate_usernames(players: Any, max_players: int | None = None) -> ValidationResult:
    """A non-empty list of non-empty, distinct usernames, optionally capped in length."""
    if not isinstance(players, list) or not players:
        return ValidationResult(False, "players must be a non-empty list of usernames")
    if max_players is not None and len(players) > max_players:
        return ValidationResult(False, f"Too many players! At most {max_players} allowed")
    if not all(_is_non_empty_str(p) for p in players):
        return ValidationResult(False, "Every player must be a non-empty username")
    if len(set(players)) != len(players):
        return ValidationResult(False, "Duplicate usernames in players")
    return ValidationResult(True)


def validate_create_game(
    players: Any,
    game_type: Any,
    creator_id: Any,
    max_players: int,
) -> ValidationResult:
    result = validate_usernames(players, max_players)
    if not result.valid:
        return result
    if not _is_non_empty_str(game_type):
        return ValidationResult(False, "type is required")
    if not _is_non_empty_str(creator_id):
        return ValidationResult(False, "creator_id is required")
    return ValidationResult(True)


def validate_player_batch(game_id: Any, players: Any) -> ValidationResult:
    """Input check shared by add-players and remove-players."""
    if not _is_non_empty_str(game_id):
        return ValidationResult(False, "gid is required")
    if not isinstance(players, list) or not players:
        return ValidationResult(False, "players must be a non-empty list of usernames")
    if not all(_is_non_empty_str(p) for p in players):
        return ValidationResult(False, "Every player must be a non-empty username")
    return ValidationResult(True)


# ===== Reads =====

def list_games(store: RecordStore) -> list[GameRecord]:
    games = store.games.find({})
    logger.info("list_games returned %d games", len(games))
    return games


def get_game(store: RecordStore, game_id: str) -> GameRecord:
    """Return the game or raise NotFound."""
    game = store.games.get_by_id(game_id)
    if game is None:
        raise NotFound(f"Game with id {game_id} not found")
    return game


def get_game_players(store: RecordStore, game_id: str) -> list[str]:
    """Raw usernames in the game, not resolved to user records."""
    return list(get_game(store, game_id).players)


def get_games_by_user(store: RecordStore, user_id: str) -> list[str]:
    """Ids of the games this user created."""
    user = store.users.get_by_id(user_id)
    if user is None:
        raise NotFound(f"User with id {user_id} not found")
    return list(user.games_created)
