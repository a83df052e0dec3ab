"""
User/game relationship engine.
Keeps Game.players / Game.creator_id and the users' games_participate / games_created
back-references in step. Every operation is a sequential chain of independent store calls:
a failure part-way raises to the caller and leaves the earlier writes committed.
reconcile.reconcile_back_references is the repair path for that state.
"""

import logging
from datetime import datetime, timezone

from backend.config import MAX_PLAYERS_PER_GAME
from backend.engine.errors import Conflict, NotFound
from backend.engine.queries import (
    get_game,
    validate_create_game,
    validate_player_batch,
)
from backend.engine.records import GameRecord, UserRecord
from backend.engine.store import RecordStore

logger = logging.getLogger("mafia.engine.relationships")


def _require_user_by_username(store: RecordStore, username: str) -> UserRecord:
    user = store.users.find_one({"username": username})
    if user is None:
        logger.warning("Unknown username %r in player batch", username)
        raise NotFound(f"User with username {username} not found")
    return user


def _as_naive_utc(value: datetime | None) -> datetime | None:
    """Stored timestamps are naive UTC; convert aware values instead of dropping their offset."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _touch(store: RecordStore, game: GameRecord) -> None:
    game.updated_at = datetime.utcnow()
    store.games.save(game)
    logger.info("Game %s updated at %s", game.id, game.updated_at.isoformat())


def create_game(
    store: RecordStore,
    players: list[str],
    game_type: str,
    creator_id: str,
    created_at: datetime | None = None,
    updated_at: datetime | None = None,
    max_players: int = MAX_PLAYERS_PER_GAME,
) -> GameRecord:
    """
    Create a game and link it to its players and creator.
    Usernames that do not resolve to a user stay in players but get no back-reference.
    Writes: game insert, one save per resolved player, creator save, final game save.
    """
    validate_create_game(players, game_type, creator_id, max_players).raise_for_invalid()

    creator = store.users.get_by_id(creator_id)
    if creator is None:
        logger.warning("Game creation attempted by unknown user %s", creator_id)
        raise NotFound(f"User with id {creator_id} not found")

    now = datetime.utcnow()
    created = store.games.insert(GameRecord(
        type=game_type,
        creator_id=creator_id,
        players=list(players),
        created_at=_as_naive_utc(created_at) or now,
        updated_at=_as_naive_utc(updated_at) or now,
    ))
    logger.info("Game with id of %s has been created by user %s", created.id, creator.email)

    for username in players:
        player = store.users.find_one({"username": username})
        if player is None:
            logger.info("Player %r is not a registered user; no back-reference written", username)
            continue
        player.games_participate.append(created.id)
        store.users.save(player)
        logger.info("User with id of %s has been added to game with id of %s", player.id, created.id)

    game = store.games.get_by_id(created.id)
    if game is None:
        raise NotFound(f"Game with id {created.id} not found")

    # Re-read: the creator may also be a player and was saved in the loop above
    creator = store.users.get_by_id(creator_id)
    if creator is None:
        raise NotFound(f"User with id {creator_id} not found")
    creator.games_created.append(game.id)
    store.users.save(creator)
    logger.info("Creator of game with id of %s is %s", game.id, creator_id)

    _touch(store, game)
    return game


def add_players_to_game(store: RecordStore, game_id: str, players: list[str]) -> None:
    """
    Add usernames to a game one at a time.
    The first unknown username (NotFound) or existing member (Conflict) aborts the batch;
    players handled before it stay added.
    """
    validate_player_batch(game_id, players).raise_for_invalid()
    game = get_game(store, game_id)

    for username in players:
        user = _require_user_by_username(store, username)
        if username in game.players:
            logger.warning("User addition failed: %s already participates in game %s", username, game_id)
            raise Conflict(f"User {username} is already in the game")

        game.players.append(username)
        store.games.save(game)
        logger.info("%s has been added to game %s", username, game_id)

        user.games_participate.append(game.id)
        store.users.save(user)
        logger.info("Game %s added to games_participate of user %s", game_id, user.id)

    _touch(store, game)


def remove_players_from_game(store: RecordStore, game_id: str, players: list[str]) -> None:
    """
    Remove usernames from a game one at a time.
    Same abort rules as add_players_to_game; a missing back-reference on the user is tolerated.
    """
    validate_player_batch(game_id, players).raise_for_invalid()
    game = get_game(store, game_id)

    for username in players:
        user = _require_user_by_username(store, username)
        if username not in game.players:
            logger.warning("Tried removing %s who is not in game %s", username, game_id)
            raise Conflict(f"User {username} is not in the game")

        game.players = [p for p in game.players if p != username]
        store.games.save(game)
        logger.info("Removed player %s from game %s", username, game_id)

        if game.id in user.games_participate:
            user.games_participate.remove(game.id)
            store.users.save(user)
            logger.info("Removed game %s from games_participate of user %s", game_id, user.id)

    _touch(store, game)


def delete_game(store: RecordStore, game_id: str) -> None:
    """
    Strip every back-reference to the game, then delete it.
    Two scans over the users collection plus one write per affected user.
    """
    game = get_game(store, game_id)

    for participant in store.users.find({"games_participate": game.id}):
        participant.games_participate = [g for g in participant.games_participate if g != game.id]
        store.users.save(participant)

    for creator in store.users.find({"games_created": game.id}):
        creator.games_created = [g for g in creator.games_created if g != game.id]
        store.users.save(creator)

    store.games.delete_by_id(game.id)
    logger.info("Game with id of %s was deleted", game.id)
