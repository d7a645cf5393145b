"""Identity collaborator: who is acting on the ledger for this request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from fastapi import Request

from monthly_ledger.settings import DEFAULT_USER_HEADER

MAX_USER_ID_LENGTH = 64


@runtime_checkable
class IdentityProvider(Protocol):
    def current_user_id(self) -> str | None:
        """Return the authenticated user's id, or None when nobody is signed in."""
        ...


@dataclass(frozen=True)
class HeaderIdentity:
    """
    Trusts a user id forwarded by the authenticating proxy in a request header.
    """

    request: Request
    header_name: str = DEFAULT_USER_HEADER

    def current_user_id(self) -> str | None:
        raw_value = self.request.headers.get(self.header_name)
        if raw_value is None:
            return None
        user_id = raw_value.strip()
        if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
            return None
        return user_id


def resolve_user_id(request: Request) -> str | None:
    """FastAPI dependency returning the caller's user id (None when anonymous)."""
    settings = getattr(request.app.state, "settings", None)
    header_name = settings.user_header if settings is not None else DEFAULT_USER_HEADER
    return HeaderIdentity(request, header_name).current_user_id()
