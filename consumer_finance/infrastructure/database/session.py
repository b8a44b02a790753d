"""Database session management with connection pooling"""

import logging
from typing import Iterable, Optional

from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from consumer_finance.config import settings
from consumer_finance.infrastructure.database.models import Base, Vendor

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    """Create an engine; pooled for server databases, thread-shareable for SQLite files"""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    # Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine, vendor_names: Optional[Iterable[str]] = None) -> None:
    """Create tables and insert any configured vendors that are missing"""
    Base.metadata.create_all(bind=engine)

    names = list(vendor_names if vendor_names is not None else settings.seed_vendor_names)
    if not names:
        return

    with Session(engine) as db:
        existing = set(db.scalars(select(Vendor.name).where(Vendor.name.in_(names))))
        for name in names:
            if name not in existing:
                db.add(Vendor(name=name))
        db.commit()
    logger.info("Vendor seed applied", extra={"vendor_count": len(names)})


engine = build_engine(settings.database_url)

SessionLocal = build_session_factory(engine)
