"""Shared plumbing for repository classes."""
from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from presence_relay.core.errors import InfrastructureError

logger = logging.getLogger(__name__)


class Repository:
    """Thin wrapper around a synchronous SQLAlchemy session."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    @contextmanager
    def _store_operation(self, operation: str) -> Iterator[None]:
        """Translate database failures into ``InfrastructureError``.

        The session is rolled back so it stays usable for the rest of the event.
        """
        try:
            yield
        except SQLAlchemyError as exc:
            logger.warning("Store operation %s failed: %s", operation, exc)
            self.session.rollback()
            raise InfrastructureError(f"Store unavailable during {operation}") from exc
