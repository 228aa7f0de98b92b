import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from pcdungeon import __version__, config, settings_store
from pcdungeon.database import db, ensure_indexes
from pcdungeon.errors import register_exception_handlers
from pcdungeon.routers import (
    auth,
    categories,
    compatibility,
    components,
    orders,
    prebuild_pcs,
    products,
    sales,
    settings,
    suppliers,
    user_builds,
    users,
    visitors,
    webhooks,
)
from pcdungeon.security import ensure_admin_account

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def check_database() -> None:
    try:
        db.command("ping")
    except PyMongoError as exc:
        logger.critical("Database connection failed: %s", exc)
        raise SystemExit(1)
    logger.info("Connected to database %s", config.DATABASE_NAME)
    ensure_indexes()
    settings_store.initialize_defaults()
    ensure_admin_account(config.ADMIN_EMAIL, config.ADMIN_PASSWORD, config.ADMIN_USERNAME)


@asynccontextmanager
async def lifespan(app: FastAPI):
    check_database()
    yield


# App setup
app = FastAPI(title="PC Dungeon API", version=__version__, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

for module in (auth, users, categories, components, prebuild_pcs, user_builds, compatibility,
               products, orders, suppliers, sales, settings, visitors, webhooks):
    app.include_router(module.router)


# Health
@app.get("/")
def root():
    return {"message": "PC Dungeon API running"}


@app.get("/health")
def health():
    try:
        db.command("ping")
    except PyMongoError as exc:
        logger.warning("Health check could not reach the database: %s", exc)
        return {"status": "degraded", "database": "unavailable", "version": __version__}
    return {"status": "ok", "database": config.DATABASE_NAME, "version": __version__}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("pcdungeon.main:app", host="0.0.0.0", port=config.PORT)
