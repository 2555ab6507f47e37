from __future__ import annotations

from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI  # noqa: E402
from supportdesk.api.routes_customer_companies import router as customer_companies_router  # noqa: E402
from supportdesk.api.routes_dynamic_fields import router as dynamic_fields_router  # noqa: E402
from supportdesk.api.routes_health import router as health_router  # noqa: E402
from supportdesk.api.routes_postmaster import router as postmaster_router  # noqa: E402
from supportdesk.api.routes_tickets import router as tickets_router  # noqa: E402
from supportdesk.core.config import settings  # noqa: E402
from supportdesk.core.logging import configure_logging  # noqa: E402
from supportdesk.db.session import init_db  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="Support Desk", version="0.1.0", lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(dynamic_fields_router)
    app.include_router(tickets_router)
    app.include_router(customer_companies_router)
    app.include_router(postmaster_router)
    return app


app = create_app()
