"""
Enrollment Payments API
Program enrollment with Razorpay checkout, GST-inclusive invoices and email delivery
"""

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import uvicorn
from contextlib import asynccontextmanager
import logging
from datetime import datetime

from app.config import get_settings
from app.database import engine, Base, SessionLocal, get_db
from app.models import enrollment_order, user  # noqa: F401  registers tables
from app.routers import admin, auth, invoices, payments
from app.services.user_service import UserService
from app.utils.error_handler import register_exception_handlers
from app.utils.rate_limit import limiter

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


async def bootstrap_admin():
    """Create the configured admin account on first start"""
    if not (settings.initial_admin_username and settings.initial_admin_password):
        return
    db = SessionLocal()
    try:
        await UserService(db).ensure_admin(
            settings.initial_admin_username, settings.initial_admin_email, settings.initial_admin_password
        )
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    logger.info(f"Starting {settings.app_name} ({settings.app_env})...")
    settings.check_production_secrets()
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")
    await bootstrap_admin()

    yield

    logger.info(f"Shutting down {settings.app_name}...")


app = FastAPI(
    title=settings.app_name,
    description="REST API for program enrollment payments and invoices",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

prefix = settings.api_prefix
app.include_router(auth.router, prefix=f"{prefix}/auth", tags=["authentication"])
app.include_router(payments.router, prefix=f"{prefix}/payments", tags=["payments"])
app.include_router(invoices.router, prefix=f"{prefix}/invoices", tags=["invoices"])
app.include_router(admin.router, prefix=f"{prefix}/admin", tags=["admin"])


@app.get("/")
@limiter.limit("10/minute")
async def root(request: Request):
    """Service information - publicly accessible"""
    return {
        "message": settings.app_name,
        "version": VERSION,
        "docs": "/docs",
        "api_prefix": prefix,
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get("/health")
@limiter.limit("30/minute")
async def health_check(request: Request):
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get("/health/live")
async def liveness_check():
    """Process is up; no dependencies checked"""
    return {"status": "alive", "timestamp": datetime.utcnow().isoformat()}


@app.get("/health/ready")
async def readiness_check(db: Session = Depends(get_db)):
    """Ready to take traffic once the database answers"""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "timestamp": datetime.utcnow().isoformat()}
        )
    return {"status": "ready", "timestamp": datetime.utcnow().isoformat()}


@app.get("/health/detailed")
@limiter.limit("10/minute")
async def detailed_health_check(request: Request, db: Session = Depends(get_db)):
    """Health check including a database round trip"""
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        database = "unreachable"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "environment": settings.app_env,
        "version": VERSION,
        "checks": {"database": database},
        "timestamp": datetime.utcnow().isoformat()
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
        log_level=settings.log_level.lower()
    )
