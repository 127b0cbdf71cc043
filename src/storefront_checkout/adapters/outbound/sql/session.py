from __future__ import annotations

import logging
from functools import wraps
from typing import Callable, TypeVar

from returns.result import Failure
from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from storefront_checkout.adapters.outbound.sql.schema import Base
from storefront_checkout.core.domain.model.errors import StorageFailure

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)


def create_database(url: str = "sqlite:///storefront.db") -> tuple[sessionmaker[Session], Engine]:
    """Create tables if missing and return (session_factory, engine)."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, echo=False, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return sessionmaker(engine, expire_on_commit=False), engine


def storage_call(operation: str) -> Callable[[F], F]:
    """Turn driver errors raised inside a repository method into StorageFailure."""

    def decorator(fn: F) -> F:
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except SQLAlchemyError as exc:
                logger.error("%s failed: %s", operation, exc)
                return Failure(StorageFailure(f"{operation} failed: {type(exc).__name__}"))

        return wrapper  # type: ignore[return-value]

    return decorator
