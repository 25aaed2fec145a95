"""
Database Connection Manager.

This module handles the low-level details of connecting to the database.
It exposes the SQLModel engine which will be used by the Repositories.
"""

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from ...config import settings


def make_engine(database_url: str) -> Engine:
    """
    Builds an engine for the given URL.
    In-memory SQLite shares a single connection so every Session sees the same tables.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=False, **kwargs)
    # echo=False in production to avoid leaking answers into logs
    return create_engine(database_url, echo=False)


engine = make_engine(settings.DATABASE_URL)


def init_db(target: Engine = engine):
    """
    Idempotent initialization.
    Creates tables if they do not exist.
    """
    # Register the table models on SQLModel.metadata
    from . import tables  # noqa: F401

    SQLModel.metadata.create_all(target)
