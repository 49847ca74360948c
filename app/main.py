import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.middleware import SlowAPIMiddleware

from .bootstrap import bootstrap_admin, init_db
from .config import get_settings
from .database import SessionLocal, engine
from .routers import auth, classrooms, reservations, users
from .error_handlers import register_exception_handlers

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# -----------------------------------------
# Startup: create tables, make sure the admin account exists
# -----------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(engine)
    db = SessionLocal()
    try:
        bootstrap_admin(db, settings)
    finally:
        db.close()
    logger.info("%s started", settings.app_name)
    yield


# -----------------------------------------
# Rate Limiter, per client IP
# -----------------------------------------
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)

app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Classroom reservations: classrooms, slot booking, batch locking and user administration.",
    lifespan=lifespan,
)

# Attach limiter to app and add middleware
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


# -----------------------------------------
# Routers (/api + versioned /api/v1)
# -----------------------------------------
for prefix in ("/api", "/api/v1"):
    app.include_router(auth.router, prefix=prefix)
    app.include_router(classrooms.router, prefix=prefix)
    app.include_router(reservations.router, prefix=prefix)
    app.include_router(users.router, prefix=prefix)


# -----------------------------------------
# Health check endpoint
# -----------------------------------------
@app.get("/health", tags=["health"])
def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.api_host, port=settings.api_port)
