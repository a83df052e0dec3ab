"""
Relationship engine: create / add / remove / delete keep Game.players and the
users' back-references in step, and partial failures stay committed.
"""

import pytest

from backend.engine.errors import Conflict, NotFound, StoreFailure, ValidationFailed
from backend.engine.queries import get_game, get_game_players, get_games_by_user
from backend.engine.relationships import (
    add_players_to_game,
    create_game,
    delete_game,
    remove_players_from_game,
)


def test_create_game_links_players_and_creator(store, make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    carl = make_user("carl")

    game = create_game(store, players=["bob", "carl"], game_type="Chess", creator_id=alice.id)

    assert game.id
    assert game.players == ["bob", "carl"]
    assert game.creator_id == alice.id
    assert game.created_at is not None and game.updated_at >= game.created_at
    assert store.users.get_by_id(alice.id).games_created == [game.id]
    assert store.users.get_by_id(alice.id).games_participate == []
    assert store.users.get_by_id(bob.id).games_participate == [game.id]
    assert store.users.get_by_id(carl.id).games_participate == [game.id]


def test_create_game_skips_unregistered_usernames(store, make_user):
    alice = make_user("alice")
    bob = make_user("bob")

    game = create_game(store, players=["bob", "ghost"], game_type="Mafia", creator_id=alice.id)

    assert get_game_players(store, game.id) == ["bob", "ghost"]
    assert store.users.get_by_id(bob.id).games_participate == [game.id]
    assert store.users.find_one({"username": "ghost"}) is None


def test_creator_who_also_plays_keeps_both_references(store, make_user):
    alice = make_user("alice")

    game = create_game(store, players=["alice"], game_type="Mafia", creator_id=alice.id)

    stored = store.users.get_by_id(alice.id)
    assert stored.games_participate == [game.id]
    assert stored.games_created == [game.id]


def test_create_game_unknown_creator_writes_nothing(store, make_user):
    make_user("bob")

    with pytest.raises(NotFound):
        create_game(store, players=["bob"], game_type="Chess", creator_id="missing-id")

    assert store.games.find({}) == []
    assert store.users.find_one({"username": "bob"}).games_participate == []


@pytest.mark.parametrize("players,game_type,creator", [
    ([], "Chess", "x"),
    (["a", "b", "c", "d"], "Chess", "x"),
    (["a", "a"], "Chess", "x"),
    (["a", ""], "Chess", "x"),
    (["a"], "", "x"),
    (["a"], "Chess", ""),
])
def test_create_game_rejects_bad_input(store, players, game_type, creator):
    with pytest.raises(ValidationFailed):
        create_game(store, players=players, game_type=game_type, creator_id=creator)
    assert store.games.find({}) == []


def test_add_players(store, make_user):
    alice = make_user("alice")
    make_user("bob")
    carol = make_user("carol")
    dave = make_user("dave")
    game = create_game(store, players=["bob"], game_type="Mafia", creator_id=alice.id)
    before = get_game(store, game.id).updated_at

    add_players_to_game(store, game.id, ["carol", "dave"])

    updated = get_game(store, game.id)
    assert updated.players == ["bob", "carol", "dave"]
    assert updated.updated_at >= before
    assert store.users.get_by_id(carol.id).games_participate == [game.id]
    assert store.users.get_by_id(dave.id).games_participate == [game.id]


def test_add_existing_member_conflicts_and_leaves_players_unchanged(store, make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    game = create_game(store, players=["bob"], game_type="Mafia", creator_id=alice.id)

    with pytest.raises(Conflict):
        add_players_to_game(store, game.id, ["bob"])

    assert get_game_players(store, game.id) == ["bob"]
    assert store.users.get_by_id(bob.id).games_participate == [game.id]


def test_add_unknown_user_scenario(store, make_user):
    alice = make_user("alice")
    bob = make_user("bob")

    game = create_game(store, players=["bob"], game_type="Chess", creator_id=alice.id)
    assert game.players == ["bob"]
    assert store.users.get_by_id(alice.id).games_created == [game.id]
    assert store.users.get_by_id(bob.id).games_participate == [game.id]

    with pytest.raises(NotFound):
        add_players_to_game(store, game.id, ["carol"])

    assert get_game_players(store, game.id) == ["bob"]


def test_add_players_partial_failure_keeps_earlier_players(store, make_user):
    alice = make_user("alice")
    dave = make_user("dave")
    game = create_game(store, players=["alice"], game_type="Mafia", creator_id=alice.id)

    with pytest.raises(NotFound):
        add_players_to_game(store, game.id, ["dave", "carol"])

    assert get_game_players(store, game.id) == ["alice", "dave"]
    assert store.users.get_by_id(dave.id).games_participate == [game.id]


def test_add_players_to_missing_game(store, make_user):
    make_user("bob")
    with pytest.raises(NotFound):
        add_players_to_game(store, "no-such-game", ["bob"])


def test_remove_players(store, make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    carol = make_user("carol")
    game = create_game(store, players=["bob", "carol"], game_type="Mafia", creator_id=alice.id)

    remove_players_from_game(store, game.id, ["bob"])

    assert get_game_players(store, game.id) == ["carol"]
    assert store.users.get_by_id(bob.id).games_participate == []
    assert store.users.get_by_id(carol.id).games_participate == [game.id]


def test_remove_non_member_conflicts_and_leaves_state(store, make_user):
    alice = make_user("alice")
    carol = make_user("carol")
    game = create_game(store, players=["alice"], game_type="Mafia", creator_id=alice.id)

    with pytest.raises(Conflict):
        remove_players_from_game(store, game.id, ["carol"])

    assert get_game_players(store, game.id) == ["alice"]
    assert store.users.get_by_id(carol.id).games_participate == []


def test_remove_tolerates_missing_back_reference(store, make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    game = create_game(store, players=["bob"], game_type="Mafia", creator_id=alice.id)
    stale = store.users.get_by_id(bob.id)
    stale.games_participate = []
    store.users.save(stale)

    remove_players_from_game(store, game.id, ["bob"])

    assert get_game_players(store, game.id) == []
    assert store.users.get_by_id(bob.id).games_participate == []


def test_remove_unknown_user(store, make_user):
    alice = make_user("alice")
    game = create_game(store, players=["ghost"], game_type="Mafia", creator_id=alice.id)

    with pytest.raises(NotFound):
        remove_players_from_game(store, game.id, ["ghost"])
    assert get_game_players(store, game.id) == ["ghost"]


def test_delete_game_strips_every_back_reference(store, make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    carol = make_user("carol")
    doomed = create_game(store, players=["bob", "carol"], game_type="Mafia", creator_id=alice.id)
    kept = create_game(store, players=["bob"], game_type="Chess", creator_id=alice.id)

    delete_game(store, doomed.id)

    with pytest.raises(NotFound):
        get_game(store, doomed.id)
    for user in store.users.find({}):
        assert doomed.id not in user.games_participate
        assert doomed.id not in user.games_created
    assert store.users.get_by_id(alice.id).games_created == [kept.id]
    assert store.users.get_by_id(bob.id).games_participate == [kept.id]
    assert store.users.get_by_id(carol.id).games_participate == []


def test_delete_missing_game(store):
    with pytest.raises(NotFound):
        delete_game(store, "no-such-game")


def test_reads_do_not_mutate(store, make_user):
    alice = make_user("alice")
    make_user("bob")
    game = create_game(store, players=["bob"], game_type="Mafia", creator_id=alice.id)
    snapshot = ([u.to_dict() for u in store.users.find({})], [g.to_dict() for g in store.games.find({})])

    first = (get_game_players(store, game.id), get_games_by_user(store, alice.id))
    second = (get_game_players(store, game.id), get_games_by_user(store, alice.id))

    assert first == second == (["bob"], [game.id])
    assert snapshot == ([u.to_dict() for u in store.users.find({})], [g.to_dict() for g in store.games.find({})])


def test_store_failure_mid_create_is_not_rolled_back(store, make_user, monkeypatch):
    alice = make_user("alice")
    make_user("bob")
    real_save = store.users.save

    def failing_save(record):
        if record.username == "alice":
            raise StoreFailure("connection lost")
        real_save(record)

    monkeypatch.setattr(store.users, "save", failing_save)

    with pytest.raises(StoreFailure):
        create_game(store, players=["bob"], game_type="Mafia", creator_id=alice.id)

    games = store.games.find({})
    assert len(games) == 1
    assert store.users.find_one({"username": "bob"}).games_participate == [games[0].id]
    assert store.users.get_by_id(alice.id).games_created == []


def test_add_players_conflict_mid_batch_keeps_earlier_players(store, make_user):
    alice = make_user("alice")
    make_user("bob")
    carol = make_user("carol")
    game = create_game(store, players=["bob"], game_type="Mafia", creator_id=alice.id)

    with pytest.raises(Conflict):
        add_players_to_game(store, game.id, ["carol", "bob"])

    assert get_game_players(store, game.id) == ["bob", "carol"]
    assert store.users.get_by_id(carol.id).games_participate == [game.id]


def test_remove_players_partial_failure_keeps_earlier_removals(store, make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    game = create_game(store, players=["bob", "nobody"], game_type="Mafia", creator_id=alice.id)

    with pytest.raises(NotFound):
        remove_players_from_game(store, game.id, ["bob", "nobody"])

    assert get_game_players(store, game.id) == ["nobody"]
    assert store.users.get_by_id(bob.id).games_participate == []


def test_delete_game_failing_mid_cascade_leaves_game(store, make_user, monkeypatch):
    alice = make_user("alice")
    bob = make_user("bob")
    carol = make_user("carol")
    game = create_game(store, players=["bob", "carol"], game_type="Mafia", creator_id=alice.id)
    real_save = store.users.save

    def failing_save(record):
        if record.username == "carol":
            raise StoreFailure("connection lost")
        real_save(record)

    monkeypatch.setattr(store.users, "save", failing_save)

    with pytest.raises(StoreFailure):
        delete_game(store, game.id)

    assert get_game(store, game.id).players == ["bob", "carol"]
    assert store.users.get_by_id(bob.id).games_participate == []
    assert store.users.get_by_id(carol.id).games_participate == [game.id]
    assert store.users.get_by_id(alice.id).games_created == [game.id]
