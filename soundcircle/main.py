import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from soundcircle.config import settings
from soundcircle.database import engine
from soundcircle.middleware.error_handler import register_error_handlers
from soundcircle.middleware.rate_limit import RateLimitMiddleware
from soundcircle.routers.auth import router as auth_router
from soundcircle.routers.friends import router as friends_router
from soundcircle.routers.users import router as users_router

logging.getLogger("soundcircle").setLevel(settings.LOG_LEVEL)
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
    await app.state.redis.ping()
    logger.info("SoundCircle API started (%s)", settings.ENVIRONMENT)

    yield

    # Shutdown
    await app.state.redis.aclose()
    await engine.dispose()


app = FastAPI(
    title="SoundCircle API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(friends_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
