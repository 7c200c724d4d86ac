"""sos-dispatch FastAPI application."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sos_dispatch.api import admin, alerts, auth, contacts, health, volunteers, ws
from sos_dispatch.core.config import settings
from sos_dispatch.core.ws_manager import ConnectionManager
from sos_dispatch.db.session import get_session_factory
from sos_dispatch.services.sms_gateway import SmsVoiceGateway
from sos_dispatch.services.sweeper_service import sweeper_loop

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the push channel and SMS gateway once; run the sweeper while up."""
    app.state.publisher = ConnectionManager()
    app.state.gateway = SmsVoiceGateway.from_settings(settings)

    sweeper_task = None
    if settings.sweeper_enabled:
        sweeper_task = asyncio.create_task(
            sweeper_loop(get_session_factory(), settings.sweeper_interval_hours * 3600)
        )

    yield

    if sweeper_task is not None:
        sweeper_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper_task
    app.state.gateway.close()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(alerts.router)
app.include_router(volunteers.router)
app.include_router(contacts.router)
app.include_router(admin.router)
app.include_router(ws.router)
