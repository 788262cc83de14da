import logging
from dataclasses import dataclass
from typing import Callable

import jwt

from pathfinder.auth import jwt_handler
from pathfinder.core.clock import utcnow
from pathfinder.core.errors import InvalidAccessToken, InvalidRefreshToken
from pathfinder.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenService:
    """Issues access/refresh pairs and rotates the single live refresh token per user."""

    def __init__(self, store: CredentialStore, clock: Callable = utcnow) -> None:
        self.store = store
        self._clock = clock

    def issue(self, user_id: str) -> TokenPair:
        now = self._clock()
        return TokenPair(
            access_token=jwt_handler.create_access_token(user_id, now=now),
            refresh_token=jwt_handler.create_refresh_token(user_id, now=now),
        )

    def verify_access(self, token: str) -> str:
        try:
            payload = jwt_handler.decode_access_token(token)
        except jwt.InvalidTokenError as exc:
            raise InvalidAccessToken() from exc
        return payload['sub']

    def verify_refresh(self, token: str) -> str:
        try:
            payload = jwt_handler.decode_refresh_token(token)
        except jwt.InvalidTokenError as exc:
            raise InvalidRefreshToken() from exc
        return payload['sub']

    def rotate(self, old_refresh_token: str) -> TokenPair:
        user_id = self.verify_refresh(old_refresh_token)
        pair = self.issue(user_id)
        # The swap only lands if the presented token is still the stored one.
        if not self.store.compare_and_set_refresh_token(user_id, old_refresh_token, pair.refresh_token):
            logger.warning('Rejected stale or already rotated refresh token for user %s', user_id)
            raise InvalidRefreshToken()
        return pair

    def revoke(self, user_id: str) -> None:
        self.store.set_refresh_token(user_id, None)
