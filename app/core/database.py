import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from app.core.config import settings

# -----------------------
# Logging setup
# -----------------------
logger = logging.getLogger(__name__)

# -----------------------
# Database URL
# -----------------------
DATABASE_URL = settings.sqlalchemy_database_url

# Hide password in logs
safe_db_url = make_url(DATABASE_URL).render_as_string(hide_password=True)
logger.info(f"Connecting to database: {safe_db_url}")


# -----------------------
# SQLAlchemy engine
# -----------------------
def build_engine(url: str):
    """Create the engine; SQLite URLs get a single shared connection."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=settings.debug,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    return create_engine(
        url,
        echo=settings.debug,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=30,
        pool_recycle=1800,
        connect_args={"connect_timeout": 5},
    )


engine = build_engine(DATABASE_URL)


# -----------------------
# Force the configured timezone for PostgreSQL connections
# -----------------------
if engine.dialect.name == "postgresql":

    @event.listens_for(engine, "connect")
    def set_timezone(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute(f"SET timezone='{settings.timezone}'")
        cursor.close()


# -----------------------
# Test connection
# -----------------------
try:
    with engine.connect() as conn:
        logger.info("Database connection successful ✅")
except Exception as e:
    logger.error(f"Failed to connect to database ❌: {str(e)}")
    raise

# -----------------------
# Session and Base
# -----------------------
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# -----------------------
# Dependency for FastAPI
# -----------------------
def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database error occurred: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()
