from contextlib import asynccontextmanager

import asyncpg
from fastapi import FastAPI

from ticketsync.api.routes import passes, ping
from ticketsync.core.config import get_settings
from ticketsync.core.logging import configure_logging, init_tracer, shutdown_tracer
from ticketsync.services.slack import SlackClient
from ticketsync.tickets.repository import PostgresRowStore
from ticketsync.tickets.service import TicketSyncService


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    provider = init_tracer(settings)

    slack: SlackClient | None = None
    if settings.slack_bot_token is not None and settings.slack_bot_token.get_secret_value():
        slack = SlackClient(
            settings.slack_bot_token.get_secret_value(),
            base_url=settings.slack_api_base_url,
            timeout=settings.http_timeout,
        )
    else:
        logger.error("SLACK_BOT_TOKEN is not set; passes and reports will be skipped")

    pool = await asyncpg.create_pool(dsn=settings.postgres_dsn, min_size=1, max_size=2)
    store = PostgresRowStore(pool, table=settings.store_table)
    app.state.sync_service = TicketSyncService(
        store,
        settings.ticket_sync_config(),
        fetcher=slack,
        notifier=slack,
        report_channel=settings.report_channel,
        weekdays=settings.active_weekdays,
        timezone_name=settings.schedule_timezone,
    )
    try:
        yield
    finally:
        app.state.sync_service = None
        await pool.close()
        if slack is not None:
            await slack.close()
        shutdown_tracer(provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(passes.router)
    return app


app = create_app()
