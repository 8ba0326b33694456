"""
Main FastAPI Application
Entry point for the backend server
"""
import uvicorn
import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from datetime import datetime

from ems.config import settings
from ems.db import Database
from ems.logging import RequestIdMiddleware, setup_logging
from ems.models.user import User, UserRole

# Import routers
from ems.api.routes import auth, attendance, company, notifications

logger = structlog.get_logger(__name__)


async def ensure_default_admin() -> None:
    """Create the first admin if the users collection has none"""
    admin_count = await User.find(User.role == UserRole.ADMIN).count()
    if admin_count:
        return

    admin = User(
        employee_id="ADMIN001",
        first_name="System",
        last_name="Admin",
        email=settings.DEFAULT_ADMIN_EMAIL.lower(),
        password_hash=auth.get_password_hash(settings.DEFAULT_ADMIN_PASSWORD),
        role=UserRole.ADMIN,
        department="Management",
        position="Administrator",
        company=settings.DEFAULT_COMPANY_NAME,
        is_active=True,
        is_approved=True,
    )
    await admin.insert()
    logger.warning("default_admin_created", email=admin.email)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    logger.info("starting", app=settings.APP_NAME, version=settings.APP_VERSION)

    database = Database.from_settings(settings)
    await database.connect()
    app.state.database = database

    await ensure_default_admin()
    logger.info("server_ready", host=settings.HOST, port=settings.PORT)

    yield

    await database.disconnect()
    logger.info("shutdown_complete")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Employee attendance tracking with per-organization rules",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": "Invalid request",
            "error": jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Runs outside RequestIdMiddleware, so the header is set here
    request_id = getattr(request.state, "request_id", None)
    logger.exception("unhandled_error", path=request.url.path, request_id=request_id)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error", "error": str(exc)},
        headers={"X-Request-ID": request_id} if request_id else None,
    )


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(attendance.router, prefix="/api/attendance", tags=["Attendance"])
app.include_router(company.router, prefix="/api/company", tags=["Company Settings"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "success": True,
        "message": "Employee Management System API",
        "data": {"version": settings.APP_VERSION, "docs": "/api/docs"}
    }


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint"""
    database = getattr(request.app.state, "database", None)
    healthy = database is not None and await database.ping()
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "success": healthy,
            "data": {
                "status": "healthy" if healthy else "unhealthy",
                "database": "connected" if healthy else "unavailable",
                "timestamp": datetime.utcnow().isoformat()
            }
        },
    )


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
