"""Bearer-token sources for the Strava API.

The token exchange itself happens elsewhere (OAuth in the browser); this
module only hands out tokens that were already obtained, skipping any that
were invalidated after the API rejected them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from strava_trails.config import Config
from strava_trails.errors import AuthError

logger = logging.getLogger("strava_trails.credentials")


class CredentialProvider(Protocol):
    async def acquire(self) -> str: ...

    def invalidate(self, token: str) -> None: ...


class StaticCredentialProvider:
    """Yields configured tokens in order, falling back when one is rejected."""

    def __init__(self, tokens: Iterable[str]) -> None:
        self._tokens = [t for t in tokens if t]
        self._invalid: set[str] = set()

    @classmethod
    def from_config(cls, config: Config) -> StaticCredentialProvider:
        """Primary access token first, then the fallback personal token."""
        return cls(config.strava.tokens())

    async def acquire(self) -> str:
        """Return the first token not yet invalidated.

        Raises:
            AuthError: If no usable token remains.
        """
        for token in self._tokens:
            if token not in self._invalid:
                return token
        if not self._tokens:
            raise AuthError("No Strava access token configured")
        raise AuthError("All configured Strava access tokens were rejected")

    def invalidate(self, token: str) -> None:
        if token in self._tokens and token not in self._invalid:
            self._invalid.add(token)
            remaining = len(self._tokens) - len(self._invalid)
            logger.warning("Strava token invalidated (%d remaining)", remaining)
