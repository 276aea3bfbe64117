import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from forumcore.config import LOG_LEVEL
from forumcore.database import Base, engine
from forumcore.errors import ForumError
from forumcore.routes import forum_routes, user_routes

# 🔒 Rate limiting setup
from forumcore.limiter import limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

# registers the tables on Base.metadata
from forumcore.models import forum_model, user_model  # noqa: F401

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
log = logging.getLogger("forumcore")

app = FastAPI(title="Forum Core API")

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests. Please slow down."}
    )

@app.exception_handler(ForumError)
async def forum_error_handler(request: Request, exc: ForumError):
    # stable code + message only; never the driver error or a traceback
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})

# ✅ Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ✅ Include your routers
app.include_router(forum_routes.router)
app.include_router(user_routes.router)

# ✅ Run DB init on startup
@app.on_event("startup")
async def on_startup():
    # Tiny retry so a momentary DB disconnect doesn't crash the app.
    for attempt in range(2):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            break  # success
        except Exception as e:
            if attempt == 0:
                log.warning("[startup] DB init failed, retrying once: %r", e)
                await asyncio.sleep(0.5)
            else:
                # Tables should already exist from previous runs.
                log.error("[startup] Skipping DB init due to error: %r", e)
