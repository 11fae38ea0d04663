"""Database engine, session factory and declarative base"""

from sqlalchemy import BigInteger, Integer, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from stalerepos.config.settings import settings

Base = declarative_base()

# SQLite only autoincrements INTEGER primary keys.
BigIntegerId = BigInteger().with_variant(Integer(), "sqlite")

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db():
    """FastAPI dependency yielding a request-scoped session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Create tables for every registered model."""
    import stalerepos.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
