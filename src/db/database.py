"""SQLite engine for the ride store and its schema version row."""

import logging
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .schema import Base, SchemaMetadata

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"
SCHEMA_VERSION_KEY = "schema_version"


def init_database(db_path: str, echo: bool = False) -> sessionmaker[Any]:
    """Create the ride tables under ``db_path`` and return a session factory.

    Sessions are shared with the tracker's worker threads, hence
    ``check_same_thread=False``.
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=echo,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)

    factory = sessionmaker(bind=engine)
    stored = _ensure_schema_version(factory)
    if stored != SCHEMA_VERSION:
        logger.warning(
            f"Ride database {db_path} has schema {stored}, this build expects {SCHEMA_VERSION}"
        )
    return factory


def _ensure_schema_version(factory: sessionmaker[Any]) -> str:
    """Stored schema version, recording the current one on a fresh database."""
    with factory() as session:
        row = session.get(SchemaMetadata, SCHEMA_VERSION_KEY)
        if row is not None:
            return row.value
        session.add(SchemaMetadata(key=SCHEMA_VERSION_KEY, value=SCHEMA_VERSION))
        session.commit()
    logger.info(f"Initialised ride database schema {SCHEMA_VERSION}")
    return SCHEMA_VERSION
