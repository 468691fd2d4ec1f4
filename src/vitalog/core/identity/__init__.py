"""Identity provider contract: who is calling.

The identity provider is an external collaborator. The core trusts the
opaque user id it returns and scopes every read and write by it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from vitalog.core.errors import UnauthenticatedError


@runtime_checkable
class IdentityProvider(Protocol):
    """Resolves the authenticated caller to a stable opaque user id."""

    def current_owner_id(self) -> str:
        """Return the caller's user id or raise ``UnauthenticatedError``."""
        ...


class StaticIdentityProvider:
    """Single-owner identity for a personal server.

    The owner id comes from configuration (``VITALOG_OWNER_ID``). An empty id
    means nobody is signed in.
    """

    def __init__(self, owner_id: str) -> None:
        self._owner_id = (owner_id or "").strip()

    def current_owner_id(self) -> str:
        if not self._owner_id:
            raise UnauthenticatedError()
        return self._owner_id
