"""
Auth helpers: password hashing, signup field rules and JWT.
Bcrypt accepts at most 72 bytes; we truncate manually before hashing.
We use bcrypt directly so the truncated bytes are passed through with no extra encoding.
"""

import bcrypt
import re
from datetime import datetime, timedelta
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from backend import config
from backend.engine.records import UserRecord
from backend.engine.store import RecordStore

from .store import get_store

# Username: alphanumeric and underscore only, 2–32 chars
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{2,32}$")
# Password: 8–16 letters/digits with at least one of each
PASSWORD_PATTERN = re.compile(r"^(?=.*[0-9])(?=.*[a-zA-Z])[0-9a-zA-Z]{8,16}$")
# Name: at least one Latin or Cyrillic letter
NAME_PATTERN = re.compile(r"[A-Za-zА-Яа-яЁё]")

SECRET_KEY = config.JWT_SECRET
ALGORITHM = "HS256"
ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"

BCRYPT_MAX_BYTES = 72
security = HTTPBearer(auto_error=False)


def _truncate_password(password: str) -> bytes:
    """Truncate to 72 bytes so bcrypt never raises."""
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    pwd_bytes = _truncate_password(password)
    return bcrypt.hashpw(pwd_bytes, bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    pwd_bytes = _truncate_password(plain)
    try:
        return bcrypt.checkpw(pwd_bytes, hashed.encode("ascii"))
    except ValueError:
        # Not a bcrypt hash
        return False


def _create_token(user_id: str, token_type: str, lifetime: timedelta) -> str:
    expire = datetime.utcnow() + lifetime
    payload = {"sub": user_id, "type": token_type, "exp": expire}
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def create_access_token(user_id: str) -> str:
    return _create_token(user_id, ACCESS_TOKEN, timedelta(hours=config.ACCESS_TOKEN_EXPIRE_HOURS))


def create_refresh_token(user_id: str) -> str:
    return _create_token(user_id, REFRESH_TOKEN, timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS))


def decode_token(token: str, expected_type: str = ACCESS_TOKEN) -> str | None:
    """Return the user id in the token, or None if it is invalid, expired or of the wrong type."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload.get("sub")


def validate_username(username: str) -> bool:
    return bool(USERNAME_PATTERN.match(username))


def validate_password(password: str) -> bool:
    return bool(PASSWORD_PATTERN.match(password))


def validate_name(name: str) -> bool:
    return bool(NAME_PATTERN.search(name))


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    store: RecordStore = Depends(get_store),
) -> UserRecord:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = decode_token(credentials.credentials)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    user = store.users.get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_self_or_admin(current: UserRecord, user_id: str) -> None:
    """Raise 403 unless the caller is acting on their own account or is an admin."""
    if str(current.id) != str(user_id) and current.role != config.ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to modify this user")
