"""Shared API dependencies for the relay transports."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session, sessionmaker
from starlette.requests import HTTPConnection

from presence_relay.db.session import get_db
from presence_relay.services.gateway import PushGateway

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_push_gateway(connection: HTTPConnection) -> PushGateway:
    """Return the process-wide push gateway stored on the application state."""
    return connection.app.state.push_gateway


def get_session_factory(connection: HTTPConnection) -> sessionmaker[Session]:
    """Return the session factory used to open one session per socket event."""
    return connection.app.state.session_factory


PushGatewayDep = Annotated[PushGateway, Depends(get_push_gateway)]
SessionFactoryDep = Annotated[sessionmaker[Session], Depends(get_session_factory)]
