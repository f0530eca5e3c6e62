from __future__ import annotations

import time
from collections.abc import Callable
from typing import Optional

from pydantic import ValidationError

from ..domain.credentials import create_random_string
from ..domain.errors import TokenExpired
from ..domain.records import TOKENS, Token
from ..logging_conf import get_logger
from .store import RecordCorrupt, RecordStore, StoreError

__all__ = [
    "TOKEN_ID_LENGTH",
    "TOKEN_TTL_MS",
    "now_ms",
    "TokenService",
]

logger = get_logger("service.auth")

TOKEN_ID_LENGTH = 20
TOKEN_TTL_MS = 60 * 60 * 1000


def now_ms() -> int:
    """Return current time in epoch milliseconds."""
    return int(time.time() * 1000)


class TokenService:
    """Issues, verifies, extends and revokes login tokens.

    Tokens are never reaped: an expired token stays on disk and is rejected
    by `verify_token` until it is revoked.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        ttl_ms: int = TOKEN_TTL_MS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.ttl_ms = ttl_ms
        self.clock = clock

    async def create_token(self, phone: str) -> Token:
        token = Token(
            id=create_random_string(TOKEN_ID_LENGTH),
            phone=phone,
            expires=self.clock() + self.ttl_ms,
        )
        await self.store.create(TOKENS, token.id, token.to_record())
        logger.info("token.create", extra={"event": "token_create", "phone": phone})
        return token

    async def read_token(self, token_id: str) -> Token:
        data = await self.store.read(TOKENS, token_id)
        try:
            return Token.model_validate(data)
        except ValidationError as e:
            raise RecordCorrupt(TOKENS, token_id, "token record has an unexpected shape") from e

    async def extend_token(self, token_id: str) -> Token:
        """Push expiry to now + ttl. Expired tokens are left untouched."""
        token = await self.read_token(token_id)
        now = self.clock()
        if not token.is_active(now):
            raise TokenExpired(
                "The token has already expired and cannot be extended. Please log in again"
            )
        token.expires = now + self.ttl_ms
        await self.store.update(TOKENS, token_id, token.to_record())
        logger.info("token.extend", extra={"event": "token_extend", "phone": token.phone})
        return token

    async def verify_token(self, token_id: Optional[str], phone: str) -> bool:
        """True only for an existing, unexpired token bound to `phone`."""
        token = await self._lookup(token_id)
        if token is None:
            return False
        return token.phone == phone and token.is_active(self.clock())

    async def resolve_owner(self, token_id: Optional[str]) -> Optional[str]:
        """Return the phone bound to a currently valid token, else None."""
        token = await self._lookup(token_id)
        if token is None or not token.is_active(self.clock()):
            return None
        return token.phone

    async def revoke_token(self, token_id: str) -> None:
        await self.store.delete(TOKENS, token_id)
        logger.info("token.revoke", extra={"event": "token_revoke"})

    async def _lookup(self, token_id: Optional[str]) -> Optional[Token]:
        if not token_id:
            return None
        try:
            return await self.read_token(token_id)
        except StoreError as e:
            logger.debug("token.lookup_failed", extra={"event": "token_lookup_failed", "error": str(e)})
            return None
