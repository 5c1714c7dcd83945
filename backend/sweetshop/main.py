import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from sweetshop.api.health import router as health_router
from sweetshop.api.rate_limit import limiter, rate_limit_exceeded
from sweetshop.api.routes_admin import router as admin_router
from sweetshop.api.routes_auth import router as auth_router
from sweetshop.api.routes_cart import router as cart_router
from sweetshop.api.routes_catalogue import router as catalogue_router
from sweetshop.api.routes_order import router as order_router
from sweetshop.config import settings
from sweetshop.db import init_db
from sweetshop.utils.logging_setup import configure_logging

configure_logging()
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # RESET_DB=1 drops and recreates the schema (CI, demos)
    init_db(reset=settings.RESET_DB)
    log.info("Sweet Shop backend started")
    yield
    log.info("Sweet Shop backend stopped")


app = FastAPI(title="Sweet Shop - Backend", version="0.1.0", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(auth_router, tags=["auth"])

app.include_router(catalogue_router, tags=["catalogue"])

app.include_router(cart_router, tags=["cart"])

app.include_router(order_router, tags=["orders"])

app.include_router(admin_router, tags=["admin"])


def run():
    import uvicorn

    uvicorn.run("sweetshop.main:app", host=settings.APP_HOST, port=settings.APP_PORT)


if __name__ == "__main__":
    run()
