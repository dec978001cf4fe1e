from contextlib import asynccontextmanager

from fastapi import FastAPI
from .config import get_settings
from .db import engine
from .redis_client import close_redis
from .api.routers import health as health_router
from .api.routers import phone_auth as phone_auth_router
from .observability.logging import setup_logging
from .middleware.request_context import RequestContextMiddleware
from .observability.metrics import MetricsHTTPMiddleware, metrics_app
import uvicorn

settings = get_settings()
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # schema is managed by alembic (`alembic upgrade head`), never from the request path
    yield
    await close_redis()
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)

    # CORS headers for the phone-auth endpoint are set by its own routes
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(MetricsHTTPMiddleware)

    app.include_router(health_router.router)
    app.add_api_route("/metrics", metrics_app(), methods=["GET"], include_in_schema=False)
    app.include_router(phone_auth_router.router)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("phone_auth.main:app", host=settings.APP_HOST, port=settings.APP_PORT, reload=settings.DEBUG)
