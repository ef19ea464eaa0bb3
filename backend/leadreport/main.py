from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import get_settings
from .core.logging import configure_logging
from .api.routes_reports import router as reports_router
from .services.connectors.news import NewsConnector
from .services.dispatch import CeleryDispatcher
from .services.orchestrator import ReportOrchestrator
from .services.report_store import ReportStore


def _cors_origins(settings) -> list[str]:
    # In prod, FRONTEND_ORIGIN is required and we never fall back to "*".
    if settings.ENV.lower() == "prod":
        if not settings.FRONTEND_ORIGIN:
            raise RuntimeError(
                "FRONTEND_ORIGIN must be set in production – refusing to start with wide-open CORS."
            )
        return [o.strip() for o in settings.FRONTEND_ORIGIN.split(",") if o.strip()]
    if settings.CORS_ALLOW_ALL_ORIGINS or not settings.FRONTEND_ORIGIN:
        return ["*"]
    return [o.strip() for o in settings.FRONTEND_ORIGIN.split(",") if o.strip()]


def create_app(orchestrator: ReportOrchestrator | None = None) -> FastAPI:
    """
    Build the API. Tests pass a ready orchestrator; otherwise one is built
    in the lifespan from DATABASE_URL with a Celery dispatcher. The API
    process never talks to Apollo or the LLM itself.
    """
    configure_logging()
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_store = None
        if getattr(app.state, "orchestrator", None) is None:
            owned_store = ReportStore.from_url(
                settings.DATABASE_URL,
                create_tables=settings.ENV == "dev",
            )
            app.state.orchestrator = ReportOrchestrator(
                store=owned_store,
                dispatcher=CeleryDispatcher(),
                news=NewsConnector(),
            )
        try:
            yield
        finally:
            if owned_store is not None:
                owned_store.dispose()

    app = FastAPI(title="Lead Report API", lifespan=lifespan)
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(settings),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        allow_credentials=False,
    )

    app.include_router(reports_router, prefix=settings.API_PREFIX)
    return app


app = create_app()
