import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
import sentry_sdk
from fastapi import FastAPI
from sqlalchemy import text

from app.config import settings
from app.database import engine

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize Sentry
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=0.2 if settings.ENVIRONMENT == "production" else 1.0,
        send_default_pii=False,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: verify DB connection and connect Redis
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))

    app.state.redis = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    try:
        await app.state.redis.ping()
    except redis.RedisError:
        # Daily limits are skipped while Redis is unreachable
        logger.warning("Redis unavailable at %s; rate limits disabled", settings.REDIS_URL)
        await app.state.redis.close()
        app.state.redis = None

    yield

    # Shutdown
    if app.state.redis is not None:
        await app.state.redis.close()
    await engine.dispose()


app = FastAPI(
    title="ToFocus API",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from app.middleware.error_handler import register_error_handlers  # noqa: E402

register_error_handlers(app)

# Routers
from app.routers.auth import router as auth_router  # noqa: E402
from app.routers.friends import router as friends_router  # noqa: E402
from app.routers.messages import router as messages_router  # noqa: E402
from app.routers.notifications import router as notifications_router  # noqa: E402
from app.routers.shared_plans import router as shared_plans_router  # noqa: E402

app.include_router(auth_router)
app.include_router(friends_router)
app.include_router(messages_router)
app.include_router(shared_plans_router)
app.include_router(notifications_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
