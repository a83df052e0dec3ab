"""
FastAPI backend for Mafia Madness.
Provides REST API endpoints for users, authentication and games.
Each game endpoint decodes the request, calls one engine operation and serializes the result.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr

from backend import config
from backend.engine.errors import Conflict, EngineError, NotFound, StoreFailure, ValidationFailed
from backend.engine.queries import get_game_players, get_games_by_user, list_games
from backend.engine.records import UserRecord
from backend.engine.relationships import (
    add_players_to_game,
    create_game,
    delete_game,
    remove_players_from_game,
)
from backend.engine.store import RecordStore

from .auth import (
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
    hash_password,
    require_self_or_admin,
    validate_name,
    validate_password,
    validate_username,
    verify_password,
)
from .database import init_db
from .store import get_store

logger = logging.getLogger("mafia.api")


@asynccontextmanager
async def lifespan(app):
    """Startup: logging and tables. Nothing to release on shutdown."""
    configure_logging()
    init_db()
    yield


app = FastAPI(
    title="Mafia Madness API",
    description="Backend API for Mafia Madness - users, authentication and games",
    version="1.0.0",
    lifespan=lifespan,
)

CORS_ORIGINS = config.CORS_ORIGINS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Engine error kind -> HTTP status. Conflicts are 422 as the API has always answered them.
ERROR_STATUS = {
    ValidationFailed: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_422_UNPROCESSABLE_ENTITY,
    StoreFailure: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def configure_logging(level: str | None = None) -> None:
    """Root logging setup; called once at startup."""
    logging.basicConfig(
        level=getattr(logging, level or config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.middleware("http")
async def log_requests(request, call_next):
    """Log method and path so 500s can be traced to the failing endpoint."""
    method = getattr(request, "method", "?")
    url = getattr(request, "url", None)
    path = url.path if url else "?"
    try:
        response = await call_next(request)
        if response.status_code >= 500:
            logger.error("[500] %s %s", method, path)
        return response
    except Exception:
        logger.exception("[500] %s %s (exception)", method, path)
        raise


@app.exception_handler(EngineError)
async def engine_error_handler(request, exc: EngineError):
    """Map a tagged engine failure to its HTTP status."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "kind": exc.kind})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc):
    """Return 500 with CORS headers so the frontend can read the error."""
    logger.exception("Unhandled error at %s %s", request.method, request.url.path)
    origin = request.headers.get("origin")
    allow_origin = origin if origin in CORS_ORIGINS else (CORS_ORIGINS[0] if CORS_ORIGINS else "*")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error, please tell developers about it and the time it happened"},
        headers={
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Credentials": "true",
        },
    )


# ===== Pydantic Models =====

class SignupRequest(BaseModel):
    name: str
    email: EmailStr
    username: str
    password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class UpdatePasswordRequest(BaseModel):
    user_id: str
    new_password: str


class CreateGameRequest(BaseModel):
    players: list[str]
    type: str
    creator_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class GamePlayersRequest(BaseModel):
    gid: str
    players: list[str]


# ===== API Endpoints =====

@app.get("/")
def root():
    return {"message": "Mafia Madness API", "version": "1.0.0"}


# ----- Users & auth -----

@app.post("/api/users/signup", status_code=status.HTTP_201_CREATED)
def signup(request: SignupRequest, store: RecordStore = Depends(get_store)):
    """Register with name, email, username (unique, no spaces/special) and password."""
    if not validate_name(request.name):
        raise ValidationFailed("Name is not valid.")
    if not validate_username(request.username):
        raise ValidationFailed("Username must be 2–32 characters, letters numbers and underscore only")
    if not validate_password(request.password):
        raise ValidationFailed(
            "Password must be 8–16 letters and digits and contain at least 1 letter and 1 numeral."
        )
    email = str(request.email).lower()
    if store.users.find_one({"email": email}) or store.users.find_one({"username": request.username}):
        logger.warning("User creation failed due to using already existing user credentials")
        raise ValidationFailed("User with such username or email already exists")

    user = store.users.insert(UserRecord(
        name=request.name,
        username=request.username,
        email=email,
        password=hash_password(request.password),
        role=config.DEFAULT_ROLE,
    ))
    logger.info("Created new user, email: %s", email)
    return {"user": user.to_dict()}


@app.post("/api/users/login")
def login(request: LoginRequest, store: RecordStore = Depends(get_store)):
    """Login with email and password; returns an access and a refresh token."""
    user = store.users.find_one({"email": str(request.email).lower()})
    if not user or not verify_password(request.password, user.password):
        logger.warning("Attempt of using wrong credentials")
        raise HTTPException(status_code=401, detail="Wrong credentials or user does not exist")
    return {
        "access_token": create_access_token(user.id),
        "refresh_token": create_refresh_token(user.id),
        "token_type": "bearer",
    }


@app.post("/api/users/refresh")
def refresh(request: RefreshRequest, store: RecordStore = Depends(get_store)):
    """Exchange a refresh token for a new access token."""
    user_id = decode_token(request.refresh_token, expected_type=REFRESH_TOKEN)
    if not user_id or store.users.get_by_id(user_id) is None:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")
    return {"access_token": create_access_token(user_id), "token_type": "bearer"}


@app.get("/api/users")
def get_users(store: RecordStore = Depends(get_store)):
    """All users, without password hashes."""
    users = store.users.find({})
    logger.info("getUsers invoked")
    return {"users": [u.to_dict() for u in users]}


@app.get("/api/users/profile")
def get_profile(user: UserRecord = Depends(get_current_user)):
    """Return the authenticated user."""
    logger.info("Profile requested by %s (%s)", user.id, user.email)
    return user.to_dict()


@app.patch("/api/users")
def update_password(
    request: UpdatePasswordRequest,
    current: UserRecord = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    """Change a user's password. Callers may change their own; admins any."""
    require_self_or_admin(current, request.user_id)
    user = store.users.get_by_id(request.user_id)
    if user is None:
        raise NotFound(f"No such user with given id of {request.user_id}")
    if verify_password(request.new_password, user.password):
        logger.warning("User %s used the same password as before", user.id)
        raise HTTPException(status_code=400, detail="You cannot use the same password as before.")
    if not validate_password(request.new_password):
        raise ValidationFailed(
            "Password must be 8–16 letters and digits and contain at least 1 letter and 1 numeral."
        )
    user.password = hash_password(request.new_password)
    store.users.save(user)
    logger.info("User %s updated their password.", user.id)
    return user.to_dict()


@app.delete("/api/users/{user_id}")
def delete_user(
    user_id: str,
    current: UserRecord = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    """Delete a user. Games keep their creator_id and player usernames."""
    require_self_or_admin(current, user_id)
    if store.users.get_by_id(user_id) is None:
        raise NotFound(f"No such user with given id of {user_id}")
    store.users.delete_by_id(user_id)
    logger.info("User %s got deleted.", user_id)
    return {"message": "User deleted"}


# ----- Games -----

@app.get("/api/games")
def get_games(store: RecordStore = Depends(get_store)):
    return {"games": [g.to_dict() for g in list_games(store)]}


@app.get("/api/games/user/{user_id}")
def get_games_of_user(user_id: str, store: RecordStore = Depends(get_store)):
    """Ids of the games the user created."""
    return get_games_by_user(store, user_id)


@app.post("/api/games", status_code=status.HTTP_201_CREATED)
def post_game(request: CreateGameRequest, store: RecordStore = Depends(get_store)):
    """Create a game; registered players and the creator get back-references to it."""
    game = create_game(
        store,
        players=request.players,
        game_type=request.type,
        creator_id=request.creator_id,
        created_at=request.created_at,
        updated_at=request.updated_at,
    )
    return game.to_dict()


# /players routes must be registered before /{game_id}
@app.patch("/api/games/players")
def patch_game_players(request: GamePlayersRequest, store: RecordStore = Depends(get_store)):
    add_players_to_game(store, request.gid, request.players)
    return {"message": "Game has been successfully updated"}


@app.delete("/api/games/players")
def delete_game_players(request: GamePlayersRequest, store: RecordStore = Depends(get_store)):
    remove_players_from_game(store, request.gid, request.players)
    return {"message": "Game has been successfully updated"}


@app.get("/api/games/{game_id}")
def get_game_by_id(game_id: str, store: RecordStore = Depends(get_store)):
    """Usernames of the game's players (not resolved to users)."""
    return get_game_players(store, game_id)


@app.delete("/api/games/{game_id}")
def remove_game(game_id: str, store: RecordStore = Depends(get_store)):
    """Delete a game and strip every back-reference to it."""
    delete_game(store, game_id)
    return {"message": "Game deleted successfully"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
