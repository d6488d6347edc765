"""Application entry point for the voice triage service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development),
  forwarding ERROR events to Sentry
- **SQLite** session store and undo ledger on one WAL-mode connection
- **Gmail** mailbox backend (if a token is available) and the optional
  ordering scraper client
- **TriageDispatcher** shared by the session REST routes and the voice webhook
- A background sweep that drops idle session locks and expired undo entries
"""

from __future__ import annotations

import asyncio
import logging
import os
import socket
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from triage.api.routes import register_error_handlers
from triage.api.routes import router as sessions_router
from triage.api.voice import router as voice_router
from triage.config import Settings, get_settings, validate_credentials
from triage.dispatch.dispatcher import TriageDispatcher
from triage.dispatch.locks import SessionLocks
from triage.health import register_health_routes
from triage.mailbox.ordering import ScrapeOrderingClient
from triage.observability.metrics import setup_metrics
from triage.observability.middleware import RequestIdMiddleware
from triage.observability.sentry import get_sentry_processor, init_sentry
from triage.state.schema import close_db, init_db
from triage.state.store import SessionStore
from triage.undo.ledger import UndoLedger

logger = structlog.get_logger()


def configure_logging(production: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Args:
        production: JSON at INFO when ``True``; colored console at DEBUG otherwise.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        get_sentry_processor(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service="voice-triage")


def _build_mailbox(settings: Settings) -> Any | None:
    if not settings.gmail_token_path.exists():
        logger.warning("gmail_token_missing", path=str(settings.gmail_token_path))
        return None
    try:
        from triage.mailbox.credentials import get_gmail_service
        from triage.mailbox.gmail import GmailMailbox

        service = get_gmail_service(settings.gmail_token_path, settings.gmail_credentials_path)
        mailbox = GmailMailbox(service, max_results=settings.inbox_max_results)
    except Exception:
        logger.exception("gmail_init_failed")
        return None
    logger.info("gmail_mailbox_initialized")
    return mailbox


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.  ``dispatcher``
        and ``mailbox`` are ``None`` when no mailbox backend could be built.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    db_path = settings.db_path
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)
    db_conn = init_db(db_path)
    services["db_conn"] = db_conn

    session_store = SessionStore(db_conn)
    undo_ledger = UndoLedger(db_conn, window_seconds=settings.undo_window_seconds)
    session_locks = SessionLocks(ttl_seconds=settings.lock_idle_ttl_seconds)
    services["session_store"] = session_store
    services["undo_ledger"] = undo_ledger
    services["session_locks"] = session_locks

    ordering = None
    if settings.scraper_base_url:
        ordering = ScrapeOrderingClient(
            settings.scraper_base_url,
            api_key=settings.scraper_api_key.get_secret_value(),
            timeout=settings.scraper_timeout_seconds,
        )
        logger.info("ordering_client_initialized", base_url=settings.scraper_base_url)
    services["ordering"] = ordering

    mailbox = _build_mailbox(settings)
    services["mailbox"] = mailbox

    dispatcher = None
    if mailbox is not None:
        dispatcher = TriageDispatcher(
            session_store,
            undo_ledger,
            mailbox,
            ordering=ordering,
            locks=session_locks,
            worker_id=f"{socket.gethostname()}:{os.getpid()}",
            lease_ttl_seconds=settings.lease_ttl_seconds,
            excerpt_chars=settings.announcement_excerpt_chars,
        )
    else:
        logger.warning("dispatcher_disabled_no_mailbox")
    services["dispatcher"] = dispatcher

    return services


def sweep_once(services: dict[str, Any]) -> tuple[int, int]:
    """Drop idle session locks and expired undo entries.

    Returns:
        ``(locks_evicted, undo_entries_purged)``.
    """
    locks_evicted = len(services["session_locks"].sweep())
    purged = services["undo_ledger"].purge_expired()
    if locks_evicted or purged:
        logger.debug("sweep_completed", locks_evicted=locks_evicted, undo_purged=purged)
    return locks_evicted, purged


async def sweep_periodically(services: dict[str, Any], interval_seconds: float) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            sweep_once(services)
        except Exception:
            logger.exception("sweep_failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Run the sweep task while the app is up and close the database on shutdown."""
    services = app.state.services
    settings: Settings = app.state.settings
    sweeper = asyncio.create_task(sweep_periodically(services, settings.sweep_interval_seconds))
    logger.info("application_starting")
    yield
    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    db_conn = services.get("db_conn")
    if db_conn is not None:
        close_db(db_conn)
        logger.info("database_closed")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with routers, health checks, metrics and middleware.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Voice Inbox Triage", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings") or get_settings()
    fastapi_app.add_middleware(RequestIdMiddleware)
    fastapi_app.include_router(sessions_router)
    fastapi_app.include_router(voice_router)
    register_error_handlers(fastapi_app)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


def main() -> None:
    """Configure logging and Sentry, build services and serve with uvicorn."""
    settings = get_settings()
    init_sentry(settings.sentry_dsn, environment="production" if settings.production else "development")
    configure_logging(production=settings.production)
    logger.info("service_starting", port=settings.port)

    validate_credentials(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    uvicorn.run(fastapi_app, host="0.0.0.0", port=settings.port, log_level="info")


if __name__ == "__main__":
    main()
