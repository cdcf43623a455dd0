import logging
import os
import secrets
import sqlite3
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from src.api.auth import (
    hash_password,
    issue_login_payload,
    require_current_user,
    restore_current_user,
    verify_password,
)
from src.api.config import Settings, configure_logging, load_settings
from src.api.db import (
    DuplicateEmailError,
    PostRepository,
    UserRepository,
    get_post_repository,
    get_user_repository,
    init_db,
)
from src.api.errors import InvalidCredentialsError, NotFoundError, ValidationError, register_error_handlers
from src.api.validation import (
    LoginInput,
    PostInput,
    RegisterInput,
    login_input,
    post_input,
    register_input,
)

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "CSRF-TOKEN"
EMAIL_TAKEN = "A user has already registered with this address"


def _json_body(model) -> Dict[str, Any]:
    """OpenAPI request body for routes that validate the raw JSON themselves."""
    schema = {"content": {"application/json": {"schema": model.model_json_schema()}}, "required": True}
    return {"requestBody": schema}


# Pydantic models

class UserOut(BaseModel):
    id: int
    username: str
    email: str


class LoginPayload(UserOut):
    token: str = Field(..., description="Signed token; send back as 'Authorization: Bearer <token>'")


class AuthorOut(BaseModel):
    id: int
    username: str


class PostOut(BaseModel):
    id: int
    text: str
    author: AuthorOut
    created_at: str


class HealthOut(BaseModel):
    status: str
    db: str


# Routers
health_router = APIRouter()

@health_router.get("/", response_model=HealthOut, summary="Health Check", tags=["health"])
def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        JSON message confirming service health and the database in use.
    """
    return HealthOut(status="ok", db=request.app.state.settings.sqlite_db)

users_router = APIRouter(prefix="/api/users", tags=["users"])

# PUBLIC_INTERFACE
@users_router.get("/current", response_model=Optional[UserOut], summary="Current user", description="Return the user identified by the bearer token, or null.")
def current_user(request: Request, response: Response, user: Optional[Dict[str, Any]] = Depends(restore_current_user)):
    if not request.app.state.settings.is_production:
        # Lets a development front-end pick up an anti-forgery token on first load.
        response.set_cookie(key=CSRF_COOKIE_NAME, value=secrets.token_urlsafe(32), samesite="lax")
    if user is None:
        return None
    return UserOut(id=user["id"], username=user["username"], email=user["email"])

# PUBLIC_INTERFACE
@users_router.post("/register", response_model=LoginPayload, summary="Register", description="Create a user and return a login payload.", openapi_extra=_json_body(RegisterInput))
async def register(
    request: Request,
    payload: Dict[str, Any] = Depends(register_input),
    users: UserRepository = Depends(get_user_repository),
):
    """Reject taken emails, then hash the password, persist the user and log them in."""
    if await run_in_threadpool(users.get_by_email, payload["email"]):
        raise ValidationError(errors={"email": EMAIL_TAKEN})
    hashed = await run_in_threadpool(hash_password, payload["password"])
    try:
        user = await run_in_threadpool(users.create, payload["username"], payload["email"], hashed)
    except DuplicateEmailError:
        # lost a race with a concurrent registration
        raise ValidationError(errors={"email": EMAIL_TAKEN})
    logger.info("Registered user id=%s", user["id"])
    return issue_login_payload(user, request.app.state.settings)

# PUBLIC_INTERFACE
@users_router.post("/login", response_model=LoginPayload, summary="Login", description="Authenticate with email and password.", openapi_extra=_json_body(LoginInput))
async def login(
    request: Request,
    payload: Dict[str, Any] = Depends(login_input),
    users: UserRepository = Depends(get_user_repository),
):
    user = await run_in_threadpool(users.get_by_email, payload["email"])
    if user is None or not await run_in_threadpool(verify_password, payload["password"], user["hashed_password"]):
        logger.info("Failed login for %s", payload["email"])
        raise InvalidCredentialsError()
    return issue_login_payload(user, request.app.state.settings)

tweets_router = APIRouter(prefix="/api/tweets", tags=["tweets"])

# PUBLIC_INTERFACE
@tweets_router.get("", response_model=List[PostOut], summary="List tweets", description="All tweets, newest first.")
def list_tweets(posts: PostRepository = Depends(get_post_repository)):
    try:
        return posts.list_all()
    except sqlite3.Error:
        logger.warning("Tweet lookup failed; returning an empty list", exc_info=True)
        return []

# PUBLIC_INTERFACE
@tweets_router.get("/user/{user_id}", response_model=List[PostOut], summary="List a user's tweets")
def list_user_tweets(
    user_id: str,
    users: UserRepository = Depends(get_user_repository),
    posts: PostRepository = Depends(get_post_repository),
):
    try:
        user = users.get_by_id(user_id)
    except sqlite3.Error:
        logger.warning("User lookup for %s failed", user_id, exc_info=True)
        user = None
    if user is None:
        raise NotFoundError("User not found", {"message": "No user found with that id"})
    try:
        return posts.list_by_author(user["id"])
    except sqlite3.Error:
        logger.warning("Tweet lookup for user %s failed; returning an empty list", user["id"], exc_info=True)
        return []

# PUBLIC_INTERFACE
@tweets_router.get("/{tweet_id}", response_model=PostOut, summary="Get tweet")
def get_tweet(tweet_id: str, posts: PostRepository = Depends(get_post_repository)):
    post = posts.get_by_id(tweet_id)
    if post is None:
        raise NotFoundError("Tweet not found", {"message": "No tweet found with that id"})
    return post

# PUBLIC_INTERFACE
@tweets_router.post("", response_model=PostOut, summary="Create tweet", description="Post a tweet as the current user.", openapi_extra=_json_body(PostInput))
def create_tweet(
    user: Dict[str, Any] = Depends(require_current_user),
    payload: Dict[str, Any] = Depends(post_input),
    posts: PostRepository = Depends(get_post_repository),
):
    """Authentication is checked before the body is validated."""
    return posts.create(payload["text"], user["id"])


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API application; settings default to the environment."""
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Tweeter Backend",
        description="REST API for registering, logging in, and posting and listing short text posts.",
        version="1.0.0",
        openapi_tags=[
            {"name": "health", "description": "Service health and metadata"},
            {"name": "users", "description": "Registration, login and the current user"},
            {"name": "tweets", "description": "Posting and listing tweets"},
        ],
    )
    app.state.settings = settings

    init_db(settings.sqlite_db)

    # CORS for frontend access
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # Register routers
    app.include_router(health_router)
    app.include_router(users_router)
    app.include_router(tweets_router)

    logger.info("App ready (db=%s, environment=%s)", settings.sqlite_db, settings.environment)
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "5000")))
