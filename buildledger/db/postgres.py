"""
PostgreSQL database connection and session management.
"""

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base

from buildledger.config import Config

# SQLAlchemy base for models
Base = declarative_base()

# Engine singleton
_engine = None
_SessionFactory = None


def get_engine():
    """Get or create the SQLAlchemy engine."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            Config.get_postgres_url(),
            echo=False,  # Set True for SQL debugging
            pool_pre_ping=True,
        )
    return _engine


def get_session():
    """Create a new database session."""
    global _SessionFactory
    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), autoflush=False)
    return _SessionFactory()


def get_db():
    """Dependency to get database session."""
    db = get_session()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Initialize database tables."""
    import buildledger.models  # noqa: F401  registers models on Base
    Base.metadata.create_all(get_engine())


def test_connection():
    """Test the database connection."""
    try:
        engine = get_engine()
        with engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            result.fetchone()
        return True, "Connected to database"
    except Exception as e:
        return False, str(e)
