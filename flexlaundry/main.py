import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import CORS_ORIGINS, ENVIRONMENT, SECURITY_HEADERS_ENABLED
from .domain.bags.router import router as bags_router
from .domain.billing.router import router as checkout_router
from .domain.billing.webhooks import router as stripe_webhooks_router
from .domain.drops.router import router as drops_router
from .domain.members.router import router as members_router
from .domain.portal.router import router as portal_router
from .domain.support.router import router as tickets_router
from .routes.audit import router as audit_router
from .routes.cron import router as cron_router
from .routes.notify import router as notify_router
from .routes.ops_auth import router as ops_auth_router
from .routes.ops_sla import router as ops_sla_router
from .routes.portal_auth import router as portal_auth_router
from .routes.public import ops_router as ops_content_router
from .routes.public import router as public_router
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"FLEX API starting up ({ENVIRONMENT})...")
    try:
        from .redis_client import get_redis_client

        get_redis_client()  # Connection test
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis connection failed - caching disabled and login codes unavailable: {e}")

    yield
    logger.info("FLEX API shutting down...")


app = FastAPI(title="FLEX Laundry API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
    logger.info("Security headers enabled")
else:
    logger.warning("Security headers DISABLED - only use in development!")

logger.info(f"CORS allowed origins: {CORS_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,  # Session cookies
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Public site and checkout
app.include_router(public_router)
app.include_router(checkout_router)
app.include_router(stripe_webhooks_router)

# Member portal
app.include_router(portal_auth_router)
app.include_router(portal_router)

# Ops dashboard
app.include_router(ops_auth_router)
app.include_router(drops_router)
app.include_router(bags_router)
app.include_router(members_router)
app.include_router(tickets_router)
app.include_router(audit_router)
app.include_router(ops_sla_router)
app.include_router(ops_content_router)

# Scheduler and Airtable automation
app.include_router(cron_router)
app.include_router(notify_router)


@app.get("/")
def root():
    return {"message": "FLEX Laundry API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
