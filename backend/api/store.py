"""
Record store adapter: engine collections backed by the SQLAlchemy tables.
Each call commits on its own. SQLAlchemy errors roll the session back and surface as StoreFailure.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.engine.errors import StoreFailure
from backend.engine.records import GameRecord, UserRecord
from backend.engine.store import Collection, RecordStore, matches_filter

from .database import get_db
from .models import Game as GameModel, User as UserModel

logger = logging.getLogger("mafia.api.store")


def _load_json(raw: Any) -> Any:
    """Decode a JSON text column; record from_dict coerces whatever comes back."""
    try:
        return json.loads(raw) if isinstance(raw, str) else raw
    except (TypeError, json.JSONDecodeError):
        return None


class SqlCollection(Collection):
    """
    Collection over one table. Subclasses map rows <-> records.
    Filters on scalar columns go to SQL; filters on JSON list columns are matched in Python.
    """
    model = None
    list_fields: tuple[str, ...] = ()

    def __init__(self, db: Session):
        self.db = db

    def to_record(self, row):
        raise NotImplementedError

    def apply(self, row, record) -> None:
        """Copy record fields onto the row (all fields except id)."""
        raise NotImplementedError

    def _fail(self, op: str, exc: SQLAlchemyError) -> StoreFailure:
        self.db.rollback()
        logger.error("%s.%s failed: %s", type(self).__name__, op, exc)
        return StoreFailure(f"Store operation {op} failed")

    def get_by_id(self, record_id: str):
        try:
            row = self.db.query(self.model).filter(self.model.id == str(record_id)).first()
        except SQLAlchemyError as e:
            raise self._fail("get_by_id", e) from e
        return self.to_record(row) if row else None

    def find(self, filter_: dict[str, Any] | None = None) -> list:
        filter_ = filter_ or {}
        sql_filter = {k: v for k, v in filter_.items() if k not in self.list_fields}
        list_filter = {k: v for k, v in filter_.items() if k in self.list_fields}
        try:
            query = self.db.query(self.model)
            for key, value in sql_filter.items():
                query = query.filter(getattr(self.model, key) == value)
            rows = query.order_by(self.model.created_at).all()
        except SQLAlchemyError as e:
            raise self._fail("find", e) from e
        records = [self.to_record(r) for r in rows]
        if list_filter:
            records = [r for r in records if matches_filter(r, list_filter)]
        return records

    def insert(self, record):
        if not record.id:
            record.id = str(uuid.uuid4())
        if record.created_at is None:
            record.created_at = datetime.utcnow()
        row = self.model(id=record.id)
        self.apply(row, record)
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("insert", e) from e
        return record

    def save(self, record) -> None:
        try:
            row = self.db.query(self.model).filter(self.model.id == str(record.id)).first()
            if row is None:
                raise StoreFailure(f"Cannot save {self.model.__tablename__} record {record.id}: it no longer exists")
            self.apply(row, record)
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("save", e) from e

    def delete_by_id(self, record_id: str) -> None:
        try:
            row = self.db.query(self.model).filter(self.model.id == str(record_id)).first()
            if row is not None:
                self.db.delete(row)
                self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("delete_by_id", e) from e


class UserCollection(SqlCollection):
    model = UserModel
    list_fields = ("games_participate", "games_created")

    def to_record(self, row: UserModel) -> UserRecord:
        return UserRecord.from_dict({
            "id": row.id,
            "name": row.name,
            "username": row.username,
            "email": row.email,
            "password": row.password_hash,
            "role": row.role,
            "games_participate": _load_json(row.games_participate),
            "games_created": _load_json(row.games_created),
            "created_at": row.created_at,
        })

    def apply(self, row: UserModel, record: UserRecord) -> None:
        row.name = record.name
        row.username = record.username
        row.email = record.email
        row.password_hash = record.password
        row.role = record.role
        row.games_participate = json.dumps(record.games_participate)
        row.games_created = json.dumps(record.games_created)
        row.created_at = record.created_at


class GameCollection(SqlCollection):
    model = GameModel
    list_fields = ("players",)

    def to_record(self, row: GameModel) -> GameRecord:
        return GameRecord.from_dict({
            "id": row.id,
            "type": row.type,
            "creator_id": row.creator_id,
            "players": _load_json(row.players),
            "created_at": row.created_at,
            "updated_at": row.updated_at,
        })

    def apply(self, row: GameModel, record: GameRecord) -> None:
        row.type = record.type
        row.creator_id = record.creator_id
        row.players = json.dumps(record.players)
        row.created_at = record.created_at
        row.updated_at = record.updated_at


def make_store(db: Session) -> RecordStore:
    return RecordStore(users=UserCollection(db), games=GameCollection(db))


def get_store(db: Session = Depends(get_db)) -> RecordStore:
    """Dependency that yields a RecordStore bound to this request's session."""
    return make_store(db)
