"""
Single place for runtime configuration.
Values come from the environment (a local .env file is loaded first), with defaults suited to local development.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Raw database URL; backend.api.database normalizes it and falls back to a local SQLite file when unset.
DATABASE_URL = os.environ.get("DATABASE_URL")

JWT_SECRET = os.environ.get("JWT_SECRET", "change-me-in-production-use-env")
ACCESS_TOKEN_EXPIRE_HOURS = int(os.environ.get("ACCESS_TOKEN_EXPIRE_HOURS", "3"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.environ.get("REFRESH_TOKEN_EXPIRE_DAYS", "1"))
# Lower rounds = faster signup/login; 4 is the bcrypt minimum
BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

# Players listed when a game is created (add-players is not capped)
MAX_PLAYERS_PER_GAME = int(os.environ.get("MAX_PLAYERS_PER_GAME", "3"))
DEFAULT_ROLE = "user"
ADMIN_ROLE = "admin"

CORS_ORIGINS = [
    o.strip()
    for o in os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
PORT = int(os.environ.get("PORT", "8001"))
