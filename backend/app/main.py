"""GigFlow Backend API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from gigflow import AccountService, GigFlowConfig, MarketplaceService, MessagingService, NotificationBus
from gigflow.storage import EntityStore, InMemoryEntityStore

from .config import Settings, get_settings
from .errors import register_exception_handlers
from .logging_config import get_logger, setup_logging
from .rate_limit import limiter
from .routes import auth_router, bids_router, gigs_router, messages_router, realtime_router

logger = get_logger("gigflow.api")

API_PREFIX = "/api"
VERSION = "0.1.0"


def build_store(settings: Settings) -> EntityStore:
    """The entity store selected by STORE_BACKEND."""
    if settings.store_backend == "memory":
        return InMemoryEntityStore()
    from .database import SupabaseEntityStore, get_supabase_client

    return SupabaseEntityStore(get_supabase_client(settings))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    settings = get_settings()
    setup_logging(settings.log_level, settings.debug)
    config = GigFlowConfig(
        notify_timeout_seconds=settings.notify_timeout_seconds,
        max_page_size=settings.max_page_size,
        default_page_size=min(GigFlowConfig.default_page_size, settings.max_page_size),
        password_hash_rounds=settings.password_hash_rounds,
    )
    store = build_store(settings)
    bus = NotificationBus(send_timeout=config.notify_timeout_seconds)

    app.state.store = store
    app.state.bus = bus
    app.state.accounts = AccountService(store, config)
    app.state.marketplace = MarketplaceService(store, bus, config)
    app.state.messaging = MessagingService(store, bus, config)
    logger.info(f"Starting GigFlow Backend API (store={settings.store_backend}, debug={settings.debug})")
    yield
    # Shutdown
    await bus.close()
    logger.info("Shutting down GigFlow Backend API")


app = FastAPI(
    title="GigFlow Backend API",
    description="Freelance marketplace: gigs, bids, hiring and real-time messaging",
    version=VERSION,
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_exception_handlers(app)

# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(gigs_router, prefix=API_PREFIX)
app.include_router(bids_router, prefix=API_PREFIX)
app.include_router(messages_router, prefix=API_PREFIX)
app.include_router(realtime_router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "gigflow-backend",
        "version": VERSION,
        "status": "ok",
    }


@app.get("/health")
async def health():
    """Health check with store and real-time bus status."""
    store_status = "ok"
    try:
        # Cheap read that touches the backing store
        app.state.store.get_account("00000000-0000-0000-0000-000000000000")
    except Exception as e:
        store_status = f"error: {str(e)[:50]}"

    overall_status = "healthy" if store_status == "ok" else "degraded"

    return {
        "status": overall_status,
        "store": store_status,
        "connections": app.state.bus.connection_count(),
    }
