import logging
import os
from pathlib import Path
from typing import Any

import jwt
from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
from pydantic import BaseModel, Field
try:
    from backend.app.services.channel_store import ChannelStore
    from backend.app.services.channels import ChannelService
    from backend.app.services.errors import ChannelError, InvalidIdentifier, InvalidRequest, RateLimited, Unauthorized
    from backend.app.services.rate_limit import (
        GLOBAL_RATE_LIMIT_DURATION_SECONDS,
        GLOBAL_RATE_LIMIT_POINTS,
        VOTE_RATE_LIMIT_DURATION_SECONDS,
        VOTE_RATE_LIMIT_POINTS,
        FixedWindowRateLimiter,
    )
    from backend.app.services.resolver import RESOLVE_TIMEOUT_SECONDS, ChannelResolver
    from backend.app.services.ttl_cache import CACHE_TTL_SECONDS, StalenessCache
except ModuleNotFoundError:
    from app.services.channel_store import ChannelStore
    from app.services.channels import ChannelService
    from app.services.errors import ChannelError, InvalidIdentifier, InvalidRequest, RateLimited, Unauthorized
    from app.services.rate_limit import (
        GLOBAL_RATE_LIMIT_DURATION_SECONDS,
        GLOBAL_RATE_LIMIT_POINTS,
        VOTE_RATE_LIMIT_DURATION_SECONDS,
        VOTE_RATE_LIMIT_POINTS,
        FixedWindowRateLimiter,
    )
    from app.services.resolver import RESOLVE_TIMEOUT_SECONDS, ChannelResolver
    from app.services.ttl_cache import CACHE_TTL_SECONDS, StalenessCache


# ---------------------------
# Settings
# ---------------------------

load_dotenv()

logging.basicConfig(
    level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("backend.main")

CHANNEL_DB_PATH = Path(
    os.getenv("CHANNEL_DB_PATH")
    or (Path(__file__).resolve().parent / "data_runtime" / "channels.sqlite")
)


def env_number(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


def parse_admin_ids() -> list[str]:
    raw = os.getenv("ADMIN_IDS") or os.getenv("ADMIN_DISCORD_IDS") or ""
    return [admin_id.strip() for admin_id in raw.split(",") if admin_id.strip()]


def parse_cors_origins() -> tuple[list[str], bool]:
    raw = (os.getenv("CORS_ALLOWED_ORIGINS") or "").strip()
    if not raw or raw == "*":
        return ["*"], False
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        return ["*"], False
    return origins, True


def build_channel_service() -> ChannelService:
    store = ChannelStore(CHANNEL_DB_PATH)
    store.init_db()
    return ChannelService(
        store=store,
        cache=StalenessCache(ttl_seconds=env_number("CACHE_TTL_SECONDS", CACHE_TTL_SECONDS)),
        resolver=ChannelResolver(timeout=env_number("RESOLVE_TIMEOUT_SECONDS", RESOLVE_TIMEOUT_SECONDS)),
        global_limiter=FixedWindowRateLimiter(
            points=int(env_number("RATE_LIMIT_POINTS", GLOBAL_RATE_LIMIT_POINTS)),
            duration_seconds=env_number("RATE_LIMIT_DURATION_SECONDS", GLOBAL_RATE_LIMIT_DURATION_SECONDS),
            scope="global",
        ),
        vote_limiter=FixedWindowRateLimiter(
            points=int(env_number("VOTE_LIMIT_POINTS", VOTE_RATE_LIMIT_POINTS)),
            duration_seconds=env_number("VOTE_LIMIT_DURATION_SECONDS", VOTE_RATE_LIMIT_DURATION_SECONDS),
            scope="vote",
        ),
        admin_ids=parse_admin_ids(),
    )


# ---------------------------
# App setup
# ---------------------------

app = FastAPI()

cors_origins, cors_credentials = parse_cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_credentials,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.on_event("startup")
def on_startup_build_channel_service():
    app.state.channel_service = build_channel_service()
    app.state.jwt_secret = os.getenv("JWT_SECRET") or None
    if app.state.jwt_secret is None:
        logger.warning("JWT_SECRET is not set; /me and /verify will reject every token")
    logger.info("Channel store at %s", CHANNEL_DB_PATH)


@app.on_event("shutdown")
def on_shutdown_close_channel_service():
    service = getattr(app.state, "channel_service", None)
    if service is not None:
        service.close()


@app.exception_handler(ChannelError)
async def channel_error_handler(_request: Request, exc: ChannelError):
    headers = {}
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(max(1, int(round(exc.retry_after))))
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    logger.debug("Rejected malformed request body: %s", exc.errors())
    return await channel_error_handler(request, InvalidRequest())


# ---------------------------
# Request helpers
# ---------------------------

class VoteRequest(BaseModel):
    channel_id: str = Field(alias="channelId")
    vote: str


class VerifyRequest(BaseModel):
    channel_id: str = Field(alias="channelId")
    status: int


def get_client_ip(request: Request) -> str:
    forwarded = (request.headers.get("x-forwarded-for") or "").strip()
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_channel_service(request: Request) -> ChannelService:
    return request.app.state.channel_service


def get_jwt_secret(request: Request) -> str | None:
    return getattr(request.app.state, "jwt_secret", None)


def session_claims(authorization: str | None, jwt_secret: str | None) -> dict[str, Any] | None:
    """Claims of a valid HS256 session token carrying an `id`, else None."""
    scheme, _, token = (authorization or "").strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or not jwt_secret:
        return None
    try:
        claims = jwt.decode(token, jwt_secret, algorithms=["HS256"])
    except jwt.PyJWTError as exc:
        logger.info("Rejected session token: %s", exc)
        return None
    if claims.get("id") in (None, ""):
        return None
    return claims


# ---------------------------
# Routes
# ---------------------------

@app.get("/health")
def health():
    return {"ok": True}


@app.get("/me")
def me(
    request: Request,
    authorization: str | None = Header(default=None),
    service: ChannelService = Depends(get_channel_service),
    jwt_secret: str | None = Depends(get_jwt_secret),
) -> dict[str, Any]:
    service.global_limiter.consume(get_client_ip(request))
    claims = session_claims(authorization, jwt_secret)
    if claims is None:
        raise Unauthorized()
    user_id = str(claims["id"])
    return {
        "id": user_id,
        "username": claims.get("username"),
        "isAdmin": service.is_admin(user_id),
    }


@app.get("/channel/{raw_id:path}")
def get_channel(
    raw_id: str,
    request: Request,
    service: ChannelService = Depends(get_channel_service),
) -> dict[str, Any]:
    # Starlette has already percent-decoded the path.
    raw_id = (raw_id or "").strip()
    if not raw_id:
        raise InvalidIdentifier("Bad Request")
    record = service.get_channel(raw_id, actor=get_client_ip(request))
    return record.to_payload()


@app.post("/vote")
def vote(
    payload: VoteRequest,
    request: Request,
    service: ChannelService = Depends(get_channel_service),
) -> dict[str, bool]:
    channel_id = (payload.channel_id or "").strip()
    if not channel_id:
        raise InvalidIdentifier("Invalid request")
    return service.vote(channel_id, payload.vote, actor=get_client_ip(request))


@app.post("/verify")
def verify(
    payload: VerifyRequest,
    request: Request,
    authorization: str | None = Header(default=None),
    service: ChannelService = Depends(get_channel_service),
    jwt_secret: str | None = Depends(get_jwt_secret),
) -> dict[str, bool]:
    channel_id = (payload.channel_id or "").strip()
    if not channel_id:
        raise InvalidIdentifier("Invalid request")
    claims = session_claims(authorization, jwt_secret)
    return service.verify(
        channel_id,
        payload.status,
        acting_identity=str(claims["id"]) if claims else None,
        actor=get_client_ip(request),
    )
