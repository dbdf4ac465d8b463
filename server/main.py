"""FastAPI server for Cribbage tables."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from config import config
from logging_config import request_id_var, setup_logging
from routers.health import router as health_router, set_health_dependencies
from routers.tables import router as tables_router, set_table_manager
from stores.hand_store import HandStore, close_hand_store, get_hand_store
from stores.state_cache import StateCache, close_state_cache, get_state_cache
from table import TableManager

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


# =============================================================================
# Services (initialized in lifespan)
# =============================================================================

_hand_store: Optional[HandStore] = None
_state_cache: Optional[StateCache] = None
table_manager: Optional[TableManager] = None


async def _init_state_cache() -> None:
    """Connect the Redis snapshot cache; tables still work without it."""
    global _state_cache
    try:
        _state_cache = await get_state_cache(config.REDIS_URL)
    except Exception as e:
        logger.warning(f"Redis connection failed: {e} - snapshot cache disabled")
        _state_cache = None


async def _shutdown_services() -> None:
    if _hand_store is not None:
        await close_hand_store()
        logger.info("Hand store closed")
    if _state_cache is not None:
        await close_state_cache()
        logger.info("Redis connection closed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for async service initialization."""
    global _hand_store, table_manager

    if config.REDIS_URL:
        await _init_state_cache()

    if config.DATABASE_URL:
        try:
            _hand_store = await get_hand_store(config.DATABASE_URL)
        except Exception as e:
            logger.error(f"Failed to initialize hand store: {e}")
            raise
    else:
        logger.warning("DATABASE_URL not configured - tables are kept in memory only")

    table_manager = TableManager(hand_store=_hand_store, state_cache=_state_cache)
    set_table_manager(table_manager)
    set_health_dependencies(
        hand_store=_hand_store,
        state_cache=_state_cache,
        table_manager=table_manager,
    )

    logger.info(f"Cribbage server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    set_table_manager(None)
    await _shutdown_services()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Cribbage Table Server",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Propagate X-Request-ID (or generate one) and expose it to logging."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        request_id_var.reset(token)


app.include_router(tables_router)
app.include_router(health_router)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Cribbage server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
