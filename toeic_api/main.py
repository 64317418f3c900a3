import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# ✅ Import All API Routes
from toeic_api.api.routes import admin, auth, billing, chat, health, notifications, practice, vocabulary

# ✅ Import Core Services
from toeic_api.core import config
from toeic_api.core.errors import register_exception_handlers
from toeic_api.core.logging_config import setup_logging
from toeic_api.core.rate_limit import rate_limit_middleware
from toeic_api.core.request_logging import request_logging_middleware
from toeic_api.db.session import engine

setup_logging(config.LOG_LEVEL, config.LOG_TO_FILE)
logger = logging.getLogger(__name__)


# ============================================
# ✅ STARTUP: MIGRATIONS + SCHEMA PATCHES
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {config.APP_NAME} API v{config.APP_VERSION}")
    if config.RUN_MIGRATIONS:
        from toeic_api.db.migrate import run_migrations
        run_migrations()
    elif config.DATABASE_URL.startswith("sqlite"):
        from toeic_api.db.init_db import init_db
        init_db()

    if config.RUN_SCHEMA_PATCHES:
        from toeic_api.db.schema_patches import run_schema_patches_safely
        run_schema_patches_safely(engine)

    yield
    logger.info(f"Stopping {config.APP_NAME} API")


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title=f"{config.APP_NAME} API", version=config.APP_VERSION, lifespan=lifespan)

register_exception_handlers(app)

# Last added runs first: CORS -> request logging -> rate limit -> routes
app.middleware("http")(rate_limit_middleware)
app.middleware("http")(request_logging_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(health.router, prefix="/api")
app.include_router(auth.router, prefix="/api")
app.include_router(billing.router, prefix="/api")
app.include_router(practice.router, prefix="/api")
app.include_router(chat.router, prefix="/api")
app.include_router(vocabulary.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")
app.include_router(admin.router, prefix="/api")


# ============================================
# ✅ HEALTH CHECK ROOT ENDPOINT
# ============================================

@app.get("/")
def root():
    return {"status": f"{config.APP_NAME} API running"}
