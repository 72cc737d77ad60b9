"""API: users, bearer tokens, and scopes.

Demonstrates a complete leanapi service: global middleware (errors,
request ids, CORS, JSON bodies), aliased route middleware (auth, rate
limiting, ETags), a versioned route group, a controller, and
problem+json errors.

Run with any ASGI server:
    uvicorn examples.api.app:app

Inspect or cache the routes:
    leanapi routes examples.api.app:app
    leanapi route-cache examples.api.app:app
"""

import hashlib
import hmac
import os
import threading
from dataclasses import dataclass
from datetime import UTC, datetime

from leanapi import (
    App,
    AppConfig,
    BearerAuthMiddleware,
    CORSConfig,
    CORSMiddleware,
    ErrorHandlerMiddleware,
    ETagMiddleware,
    JsonBodyMiddleware,
    RateLimitMiddleware,
    Request,
    RequestIdMiddleware,
    RequireScopes,
    Response,
    TokenSigner,
    UnprocessableContent,
    configure_logging,
    validate,
)
from leanapi.http import problem
from leanapi.ratelimit import MemoryStore

config = AppConfig.from_env()
configure_logging(config)

if os.environ.get("AUTH_TOKEN_KEYS"):
    signer = TokenSigner.from_env()
else:
    signer = TokenSigner({"dev": "dev-secret-change-me"}, current_kid="dev")

app = App(config)

app.set_global_middleware([
    ErrorHandlerMiddleware(debug=config.debug),
    RequestIdMiddleware(),
    CORSMiddleware(CORSConfig.from_env()),
    JsonBodyMiddleware(),
])
app.alias_middleware("auth", BearerAuthMiddleware(signer))
app.alias_middleware(
    "throttle",
    RateLimitMiddleware(MemoryStore(), config.rate_limit_requests, config.rate_limit_window),
)
app.alias_middleware("etag", ETagMiddleware())
app.alias_middleware("scope:users.read", RequireScopes("users.read"))
app.alias_middleware("scope:users.write", RequireScopes("users.write"))


# ---------------------------------------------------------------------------
# In-memory user storage
# ---------------------------------------------------------------------------


def hash_password(password: str, salt: bytes | None = None) -> str:
    salt = salt or os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, 100_000)
    return f"{salt.hex()}${digest.hex()}"


def check_password(password: str, stored: str) -> bool:
    salt_hex, _, _ = stored.partition("$")
    return hmac.compare_digest(hash_password(password, bytes.fromhex(salt_hex)), stored)


@dataclass(frozen=True, slots=True)
class User:
    id: int
    name: str
    email: str
    password: str
    scopes: tuple[str, ...]
    created_at: str

    def public(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "scopes": list(self.scopes),
            "created_at": self.created_at,
        }


_users: dict[int, User] = {}
_lock = threading.Lock()


def add_user(name: str, email: str, password: str, scopes: tuple[str, ...]) -> User:
    with _lock:
        user = User(
            id=len(_users) + 1,
            name=name,
            email=email,
            password=hash_password(password),
            scopes=scopes,
            created_at=datetime.now(UTC).isoformat(timespec="seconds"),
        )
        _users[user.id] = user
        return user


def find_by_email(email: str) -> User | None:
    with _lock:
        return next((u for u in _users.values() if u.email == email), None)


add_user("Admin", "admin@example.com", "secret123", ("users.read", "users.write"))


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


@app.get("/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat(timespec="seconds")}


LOGIN_RULES = {
    "email": "required|email",
    "password": "required|string|min:6",
}

NEW_USER_RULES = {
    "name": "required|string|min:2|max:100",
    "email": "required|email|max:255",
    "password": "required|string|min:8",
    "scopes": "string|max:255",
}


@app.post("/auth/token")
async def login(request: Request):
    data = validate(await request.json(), LOGIN_RULES).raise_for_errors()
    email, password = data["email"], data["password"]

    user = find_by_email(email)
    if user is None or not check_password(password, user.password):
        return problem.problem(401, detail="Invalid email or password", instance=request.path)

    token = signer.issue(
        {"sub": str(user.id), "email": user.email, "name": user.name, "scopes": list(user.scopes)}
    )
    return {
        "token": token,
        "token_type": "Bearer",
        "expires_in": signer.ttl,
        "user": user.public(),
    }


class UserController:
    """Instantiated per request; methods receive the request and path params."""

    def index(self, request: Request) -> Response:
        limit = min(max(request.query.get_int("limit", default=20) or 20, 1), 100)
        offset = max(request.query.get_int("offset", default=0) or 0, 0)

        with _lock:
            users = sorted(_users.values(), key=lambda u: u.id)
        page = users[offset : offset + limit]

        return Response.from_json(
            {
                "users": [u.public() for u in page],
                "pagination": {
                    "total": len(users),
                    "limit": limit,
                    "offset": offset,
                    "count": len(page),
                },
            }
        ).with_header("X-Total-Count", str(len(users)))

    def show(self, request: Request, id: int):
        with _lock:
            user = _users.get(id)
        if user is None:
            return problem.not_found(f"User {id} not found", instance=request.path)
        return {"user": user.public()}

    async def create(self, request: Request):
        data = validate(await request.json(), NEW_USER_RULES).raise_for_errors()
        name, email, password = data["name"], data["email"], data["password"]
        if find_by_email(email) is not None:
            raise UnprocessableContent({"email": ["The email has already been taken."]})

        scopes = tuple(s.strip() for s in str(data.get("scopes", "users.read")).split(",") if s.strip())
        user = add_user(name, email, password, scopes)
        return Response.from_json({"user": user.public()}, status=201).with_header(
            "Location", f"/v1/users/{user.id}"
        )


@app.group("/v1", middleware=["auth", "throttle"])
def v1(app: App) -> None:
    app.get("/users", (UserController, "index"), middleware=["scope:users.read", "etag"])
    app.get(
        "/users/{id:\\d+}",
        (UserController, "show"),
        middleware=["scope:users.read", "etag"],
        name="users.show",
    )
    app.post("/users", (UserController, "create"), middleware=["scope:users.write"])
