"""Main entrypoint and application factory for the Family Finance Ledger API.

This module builds the FastAPI application, configures logging, sets up the database, and exposes the Scalar API reference endpoint for interactive OpenAPI documentation. It also includes the main entrypoint for running the app with Uvicorn.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from scalar_fastapi import get_scalar_api_reference
from sqlalchemy.exc import SQLAlchemyError

from family_finance import __version__
from family_finance.api.routes import router
from family_finance.core.db import build_session_factory, get_engine, init_db
from family_finance.core.settings import Settings, get_settings
from family_finance.core.utils import ensure_dir, get_logger

LOGGER_PREFIX = "family-finance"


# --- Logging Setup ---
def setup_logging(settings: Settings) -> None:
    """Configure the project loggers and add a plain-text file handler when a log file is set."""
    root = get_logger(LOGGER_PREFIX)
    root.setLevel(logging.INFO)
    if not settings.log_file:
        return
    ensure_dir(Path(settings.log_file).parent)
    file_handler = logging.FileHandler(settings.log_file)
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    # Project loggers do not propagate, so each one gets the file handler.
    names = [name for name in logging.root.manager.loggerDict if name.startswith(LOGGER_PREFIX)]
    for name in names:
        logger = logging.getLogger(name)
        if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
            logger.addHandler(file_handler)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application with its database and routes."""
    settings = settings or get_settings()
    setup_logging(settings)
    logger = get_logger(f"{LOGGER_PREFIX}.main")
    engine = get_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Create the ledger tables on startup and release the engine on shutdown."""
        try:
            init_db(engine)
        except SQLAlchemyError:
            logger.exception("Failed to create the ledger tables")
            raise
        app.state.session_factory = build_session_factory(engine)
        logger.info(f"Ledger database ready at {engine.url.render_as_string(hide_password=True)}")
        yield
        engine.dispose()

    app = FastAPI(
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        title="Family Finance Ledger API",
        description="""
    The Family Finance Ledger API imports bank statements and receipts into a shared household ledger and serves the budgeting dashboards built on it.

    **Endpoints:**
    - `POST /imports/statement`: Import a pasted or uploaded statement (Revolut layouts parsed locally, others via LLM).
    - `POST /imports/receipt`: Read a receipt photo into a transaction draft.
    - `/transactions`, `/budget-items`, `/goals`: Household ledger, budget plan and savings goals.
    - `GET /summary/{month}`: Monthly totals, category breakdown, forecast and budget comparison.
    - `GET /subscriptions`: Detected recurring charges.
    - `POST /advisor/chat`: Ask the financial advisor.
    - `GET /health`: Health check endpoint.
    - `GET /scalar`: Interactive Scalar OpenAPI documentation.

    Household routes require the `X-Household-Id` header.
    """,
        version=__version__,
    )
    app.state.settings = settings
    app.include_router(router)

    @app.get("/scalar", include_in_schema=False)
    async def scalar_docs() -> JSONResponse:
        """Return Scalar API reference."""
        return get_scalar_api_reference(openapi_url=app.openapi_url, title=app.title)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("main:app", host=settings.server_host, port=settings.server_port, reload=True)
