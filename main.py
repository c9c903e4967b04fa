import logging
import subprocess
import sys
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

import click
import uvicorn
from alembic import command
from alembic.config import Config
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.database import Base, SessionLocal, engine
from app.core.decorator import DBException
from app.core.exceptions import ProgressError
from app.core.init import initialize_application, seed_demo_catalog
from app.core.limiter import custom_rate_limit_exceeded_handler, limiter
from app.models import *
from app.routers import routes

BASE_DIR = Path(__file__).parent
LOGS_DIR = BASE_DIR / settings.log_dir
ALEMBIC_INI = BASE_DIR / "alembic.ini"

LOGS_DIR.mkdir(parents=True, exist_ok=True)


# ============================================================================
# Logging
# ============================================================================
def setup_logging():
    """Log to stdout and to logs/progress.log with one shared format."""
    level = logging.DEBUG if settings.debug else settings.log_level.upper()

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(LOGS_DIR / "progress.log", mode="a", encoding="utf-8"),
        ],
        force=True,
    )

    # Engine SQL echo is controlled by settings.debug, not the root level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return logging.getLogger("progress")


logger = setup_logging()


# ============================================================================
# Lifespan
# ============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Prepare the catalog and progress tables before serving.

    Production schemas are owned by Alembic (``progress-engine migrate``), so
    tables are only created here outside production.
    """
    logger.info(
        f"Progress engine {settings.app_version} starting on "
        f"{engine.url.render_as_string(hide_password=True)}"
    )

    if not settings.production:
        Base.metadata.create_all(bind=engine)
        logger.info(f"✓ Schema ready ({len(Base.metadata.tables)} tables)")

    db = SessionLocal()
    try:
        initialize_application(db)
    except Exception as e:
        logger.error(f"✗ Startup failed: {e}", exc_info=True)
        raise
    finally:
        db.close()

    yield

    engine.dispose()
    logger.info("Progress engine stopped, connection pool released")


# ============================================================================
# Application
# ============================================================================
app = FastAPI(
    title=settings.app_name,
    description=settings.app_description,
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    debug=settings.debug,
    lifespan=lifespan,
)

app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)


@app.middleware("http")
async def trace_request(request: Request, call_next):
    """Echo or mint a request id and report how long the cascade took."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    started = time.perf_counter()

    response = await call_next(request)

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = f"{time.perf_counter() - started:.4f}"
    return response


# ============================================================================
# Error responses
# ============================================================================
def error_body(message: str, error_type: str, **extra) -> dict:
    return {"error": message, "type": error_type, **extra}


async def progress_error_handler(request: Request, exc: ProgressError):
    logger.info(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code, content=error_body(exc.message, exc.code)
    )


async def db_error_handler(request: Request, exc: DBException):
    # CascadeAbortedError lands here too and carries its own code
    error_type = getattr(exc, "code", "database_error")
    logger.error(f"{request.method} {request.url.path} -> {error_type}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code, content=error_body(exc.message, error_type)
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Rejected payload on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content=error_body(
            "Validation error", "validation_error", details=jsonable_encoder(exc.errors())
        ),
    )


async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Unhandled {type(exc).__name__} on {request.url.path}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=error_body("Database error occurred", type(exc).__name__),
    )


def register_exception_handlers(application: FastAPI) -> None:
    application.add_exception_handler(ProgressError, progress_error_handler)
    application.add_exception_handler(DBException, db_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)
    application.add_exception_handler(SQLAlchemyError, sqlalchemy_error_handler)
    application.add_exception_handler(RateLimitExceeded, custom_rate_limit_exceeded_handler)


register_exception_handlers(app)


# ============================================================================
# Service endpoints
# ============================================================================
@app.get("/")
async def root():
    return {
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": "production" if settings.production else "development",
        "endpoints": sorted(
            {route.path for router in routes for route in router.routes}
        ),
    }


@app.get("/health")
@limiter.limit("10/minute")
async def health_check(request: Request):
    """Liveness plus a round trip to the progress database."""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {type(e).__name__}")
        db_status = "unhealthy"
    finally:
        db.close()

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "database": db_status,
        "version": settings.app_version,
        "timestamp": time.time(),
    }


for router in routes:
    app.include_router(router)


# ============================================================================
# CLI
# ============================================================================
@click.group()
def cli():
    """Learning progress engine management."""


def run_migrations(revision: str = "head") -> None:
    """Upgrade the schema; any failure aborts the calling command."""
    try:
        command.upgrade(Config(str(ALEMBIC_INI)), revision)
    except Exception as e:
        logger.error(f"Migration to {revision} failed: {e}", exc_info=True)
        raise click.ClickException(f"Migration failed: {e}")
    logger.info(f"✓ Schema upgraded to {revision}")


@cli.command()
@click.option("--revision", default="head", help="Target Alembic revision")
def migrate(revision: str):
    """Apply database migrations."""
    run_migrations(revision)


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind the server to")
@click.option("--port", default=8000, help="Port to run the server on")
@click.option("--reload", is_flag=True, help="Enable auto-reload (development only)")
def dev(host: str, port: int, reload: bool):
    """Run the API with Uvicorn; tables are created on startup."""
    logger.info(f"Development server on {host}:{port} (reload={reload})")
    uvicorn.run("main:app", host=host, port=port, reload=reload, log_level="debug")


@cli.command()
@click.option("--host", default="0.0.0.0", help="Host to bind the server to")
@click.option("--port", default=8000, help="Port to run the server on")
@click.option("--workers", default=4, help="Number of worker processes")
def prod(host: str, port: int, workers: int):
    """Migrate, then serve with Gunicorn. Never starts on a stale schema."""
    run_migrations()

    logger.info(f"Production server on {host}:{port} with {workers} workers")
    cmd = [
        "gunicorn",
        "main:app",
        "--worker-class",
        "uvicorn.workers.UvicornWorker",
        "--workers",
        str(workers),
        "--bind",
        f"{host}:{port}",
        "--access-logfile",
        "-",
        "--error-logfile",
        "-",
        "--timeout",
        "60",
        "--graceful-timeout",
        "30",
    ]

    try:
        subprocess.run(cmd, check=True)
    except FileNotFoundError:
        raise click.ClickException("Gunicorn not installed")
    except subprocess.CalledProcessError as e:
        raise click.ClickException(f"Gunicorn exited with status {e.returncode}")


@cli.command()
def seed():
    """Create the demo course catalog."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        course = seed_demo_catalog(db)
    finally:
        db.close()

    if course is None:
        click.echo("Demo course already present, nothing to do")
    else:
        click.echo(f"Demo course created: {course.id}")


@cli.command()
def info():
    """Display the effective configuration."""
    click.echo(f"Application: {settings.app_name} {settings.app_version}")
    click.echo(f"Database: {engine.url.render_as_string(hide_password=True)}")
    click.echo(f"Rate limiting: {settings.rate_limit_enabled}")
    click.echo(f"Demo catalog seeding: {settings.seed_demo_catalog}")
    click.echo(f"Logs: {LOGS_DIR.absolute()}")


if __name__ == "__main__":
    cli()
