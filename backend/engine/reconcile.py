"""
Back-reference repair.
Re-derives every user's games_participate / games_created from the authoritative
Game.players / Game.creator_id. This is the recovery path after a relationship
operation failed part-way.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from backend.engine.records import GameRecord, UserRecord
from backend.engine.store import RecordStore

logger = logging.getLogger("mafia.engine.reconcile")


@dataclass
class UserRepair:
    user_id: str
    username: str
    participate_added: list[str] = field(default_factory=list)
    participate_removed: list[str] = field(default_factory=list)
    created_added: list[str] = field(default_factory=list)
    created_removed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "participate_added": self.participate_added,
            "participate_removed": self.participate_removed,
            "created_added": self.created_added,
            "created_removed": self.created_removed,
        }


@dataclass
class ReconcileReport:
    users_scanned: int = 0
    games_scanned: int = 0
    repairs: list[UserRepair] = field(default_factory=list)
    dry_run: bool = False

    @property
    def users_repaired(self) -> int:
        return len(self.repairs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "users_scanned": self.users_scanned,
            "games_scanned": self.games_scanned,
            "users_repaired": self.users_repaired,
            "dry_run": self.dry_run,
            "repairs": [r.to_dict() for r in self.repairs],
        }


def _rebuild(current: list[str], expected: list[str]) -> tuple[list[str], list[str], list[str]]:
    """
    Keep current order for ids that belong, drop stale ids and duplicates, append missing ids in game order.
    Returns (rebuilt, added, removed).
    """
    wanted = set(expected)
    rebuilt: list[str] = []
    removed: list[str] = []
    for game_id in current:
        if game_id in wanted and game_id not in rebuilt:
            rebuilt.append(game_id)
        else:
            removed.append(game_id)
    added = [g for g in expected if g not in rebuilt]
    rebuilt.extend(added)
    return rebuilt, added, removed


def expected_back_references(user: UserRecord, games: list[GameRecord]) -> tuple[list[str], list[str]]:
    """(games_participate, games_created) the user should hold, in game order."""
    participate = [g.id for g in games if user.username in g.players]
    created = [g.id for g in games if g.creator_id == user.id]
    return participate, created


def reconcile_back_references(store: RecordStore, dry_run: bool = False) -> ReconcileReport:
    """Repair every user whose back-references disagree with the games. dry_run reports without saving."""
    games = store.games.find({})
    users = store.users.find({})
    report = ReconcileReport(users_scanned=len(users), games_scanned=len(games), dry_run=dry_run)

    for user in users:
        expected_participate, expected_created = expected_back_references(user, games)
        participate, p_added, p_removed = _rebuild(user.games_participate, expected_participate)
        created, c_added, c_removed = _rebuild(user.games_created, expected_created)
        if participate == user.games_participate and created == user.games_created:
            continue

        report.repairs.append(UserRepair(
            user_id=user.id,
            username=user.username,
            participate_added=p_added,
            participate_removed=p_removed,
            created_added=c_added,
            created_removed=c_removed,
        ))
        if dry_run:
            continue
        user.games_participate = participate
        user.games_created = created
        store.users.save(user)
        logger.info(
            "Repaired back-references of user %s: participate +%d/-%d, created +%d/-%d",
            user.id, len(p_added), len(p_removed), len(c_added), len(c_removed),
        )

    logger.info(
        "Reconciled %d users against %d games, %d repaired%s",
        report.users_scanned, report.games_scanned, report.users_repaired,
        " (dry run)" if dry_run else "",
    )
    return report
