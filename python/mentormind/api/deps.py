"""FastAPI dependencies for route handlers.

Shared resources live on app.state (created in create_app / lifespan):
- session_factory: sessionmaker bound to the configured engine
- httpx_client: shared AsyncClient for vendor calls
"""

from collections.abc import Generator

import httpx
from fastapi import Request
from sqlalchemy.orm import Session, sessionmaker

from mentormind.services.user_keys import SqlCredentialStore


def get_session_factory(request: Request) -> sessionmaker[Session]:
    return request.app.state.session_factory


def get_db(request: Request) -> Generator[Session, None, None]:
    """Request-scoped database session, closed after the response."""
    db = get_session_factory(request)()
    try:
        yield db
    finally:
        db.close()


def get_http_client(request: Request) -> httpx.AsyncClient:
    """The shared vendor HTTP client (connection pooling)."""
    return request.app.state.httpx_client


def get_credential_store(request: Request) -> SqlCredentialStore:
    return SqlCredentialStore(get_session_factory(request))
