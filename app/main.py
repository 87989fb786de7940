"""
PayFlow API entry point.

Run with ``uvicorn app.main:app``. Every router lives under /api/v1;
/health stays at the root for the load balancer.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import admin, auth, beneficiaries, kyc, rates, transactions
from app.config import settings
from app.core.errors import PayFlowError

VERSION = "0.1.0"
API_PREFIX = "/api/v1"

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.database import engine
    from app.redis_client import redis

    logger.info("%s %s starting (%s)", settings.APP_NAME, VERSION, settings.APP_ENV)
    yield

    await engine.dispose()
    await redis.aclose()
    logger.info("%s stopped", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="USD to INR remittance service: quotes, beneficiaries, transfers and KYC.",
    version=VERSION,
    lifespan=lifespan,
)

# Credentials are allowed so the browser sends the token cookie.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PayFlowError)
async def unhandled_domain_error(request: Request, exc: PayFlowError):
    """Routers translate the errors they expect; anything else is a 400, logged."""
    logger.warning("Unmapped %s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


ROUTERS = [
    (auth.router, "auth", "Authentication"),
    (beneficiaries.router, "beneficiaries", "Beneficiaries"),
    (transactions.router, "transactions", "Transactions"),
    (rates.router, "rates", "Rates"),
    (kyc.router, "kyc", "KYC"),
    (admin.router, "admin", "Admin"),
]

for router, path, tag in ROUTERS:
    app.include_router(router, prefix=f"{API_PREFIX}/{path}", tags=[tag])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": settings.APP_NAME, "version": VERSION}
