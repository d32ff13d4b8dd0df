"""Shop session handed to sync jobs.

Sessions are issued elsewhere (OAuth install flow); jobs only check that one
is present and pass it to the destination writer unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError


@dataclass(frozen=True)
class ShopSession:
    """Tenant identity plus Admin API credentials."""

    shop: str
    access_token: str

    def __repr__(self) -> str:
        return f"ShopSession(shop={self.shop!r}, access_token='***')"


def require_session(session: Optional[ShopSession]) -> ShopSession:
    """Reject a missing or incomplete session."""
    if session is None:
        raise ConfigurationError("A shop session is required")
    if not session.shop or not session.access_token:
        raise ConfigurationError("Shop session is missing shop or access token")
    return session


class StaticSessionProvider:
    """Session from configuration, used by the CLI and the scheduler."""

    def __init__(self, shop: str, access_token: str):
        self.shop = shop
        self.access_token = access_token

    def get_session(self) -> Optional[ShopSession]:
        if not self.shop or not self.access_token:
            return None
        return ShopSession(shop=self.shop, access_token=self.access_token)
