from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from moedinha.api.routes import api_router
from moedinha.core.config import Settings, get_settings
from moedinha.core.rate_limit import SlidingWindowLimiter
from moedinha.db.base import Base
from moedinha.db.session import SessionLocal, engine
import moedinha.models  # noqa: F401
from moedinha.services.seed import seed_alert_definitions


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("moedinha.api")


def _prepare_database(settings: Settings) -> None:
    if settings.auto_create_schema:
        Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        try:
            created = seed_alert_definitions(db)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Alert definitions were not seeded.")
            return
    if created:
        logger.info("Seeded %s alert definition(s).", created)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    limiter = SlidingWindowLimiter(settings.rate_limit_requests, settings.rate_limit_window_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _prepare_database(settings)
        logger.info("%s ready.", settings.app_name)
        yield
        engine.dispose()

    app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def limit_and_log(request: Request, call_next):
        client = request.client.host if request.client else "unknown"
        if not limiter.allow(f"{client}:{request.url.path}"):
            return JSONResponse(status_code=429, content={"detail": "Muitas requisições. Tente novamente em instantes."})

        started = time.monotonic()
        response = await call_next(request)
        logger.info(
            "%s %s -> %s %.2fms",
            request.method,
            request.url.path,
            response.status_code,
            (time.monotonic() - started) * 1000,
        )
        return response

    @app.get("/healthz")
    def healthz() -> dict:
        return {"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}

    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
