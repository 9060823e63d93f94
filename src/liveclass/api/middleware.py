"""Middleware: API key authentication for the control and state routes."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

if TYPE_CHECKING:
    from liveclass.config import Settings

_bearer_scheme = HTTPBearer(auto_error=False)


def _get_settings_from_request(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _matches(candidate: str | None, expected: str) -> bool:
    if candidate is None:
        return False
    return secrets.compare_digest(candidate.encode(), expected.encode())


async def verify_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    api_key: Annotated[str | None, Query(include_in_schema=False)] = None,
) -> None:
    """Check the caller's key against LIVECLASS_API_KEY.

    With no key configured all requests pass. Otherwise the key must arrive as
    'Authorization: Bearer <key>' or, for image tags on the page that cannot
    set headers, as the ``api_key`` query parameter.
    """
    settings = _get_settings_from_request(request)
    if settings.api_key is None:
        return

    token = credentials.credentials if credentials is not None else api_key
    if not _matches(token, settings.api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )
