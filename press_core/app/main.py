from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import LOG_LEVEL, LOG_DIR, get_cors_origins
from .db import create_db_and_tables
from .logging_config import setup_logging, get_logger
from .auth import router as auth_router
from .customers import router as customers_router
from .notifications import router as notifications_router
from .users import router as users_router
from .routers.inventory import router as inventory_router
from .routers.jobs import router as jobs_router
from .routers.payments import router as payments_router

logger = get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging(log_level=LOG_LEVEL, log_dir=LOG_DIR, enable_file_logging=bool(LOG_DIR))

    app = FastAPI(
        title="Print Shop Ledger",
        description="Jobs, payments and paper inventory for a print shop, with a full material audit trail",
        version="1.0.0"
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(notifications_router)
    app.include_router(customers_router)
    app.include_router(inventory_router)
    app.include_router(jobs_router)
    app.include_router(payments_router)

    @app.on_event("startup")
    def on_startup():
        logger.info("Creating database tables at startup...")
        create_db_and_tables()
        logger.info("Database ready.")

    return app


app = create_app()
