"""
SQLAlchemy models for users and games.
List-valued fields are stored as JSON text, the way the record store hands them to the engine.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text

from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # uuid
    name = Column(String(128), nullable=False)
    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="user")
    games_participate = Column(Text, nullable=False, default="[]")  # JSON array of game ids
    games_created = Column(Text, nullable=False, default="[]")  # JSON array of game ids
    created_at = Column(DateTime, default=datetime.utcnow)


class Game(Base):
    __tablename__ = "games"

    id = Column(String(36), primary_key=True)  # uuid
    type = Column(String(64), nullable=False)
    creator_id = Column(String(36), nullable=False, index=True)  # plain string, no FK: users can be deleted under a game
    players = Column(Text, nullable=False, default="[]")  # JSON array of usernames
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True)
