import logging
from collections.abc import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from inventario.configs import DB_URI, DEBUG

logger = logging.getLogger(__name__)
# Only use client_encoding for PostgreSQL, not SQLite
engine_kwargs = {'echo': DEBUG}
if DB_URI.startswith('sqlite'):
    # One shared in-memory database across threads
    engine_kwargs['connect_args'] = {'check_same_thread': False}
    engine_kwargs['poolclass'] = StaticPool
else:
    engine_kwargs['client_encoding'] = 'utf8'
    engine_kwargs['pool_pre_ping'] = True
engine = create_engine(DB_URI, **engine_kwargs)
SessionLocal = sessionmaker(
    bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
session = scoped_session(SessionLocal)

Base = declarative_base()

def get_db() -> Generator:
    """FastAPI dependency yielding one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init(bind=engine):
    try:
        # Register every mapped class on Base before creating tables
        from inventario.core import models  # noqa: F401
        Base.metadata.create_all(bind=bind)
        return session
    except Exception as e:
        logger.warning(f"[WARNING] Database initialization failed: {e}")
