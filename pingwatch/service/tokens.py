from __future__ import annotations

from ..domain.credentials import passwords_match
from ..domain.errors import Forbidden, NotFound
from ..domain.records import USERS, User
from ..domain.request import RequestData
from ..domain.validation import AFFIRMATIVE, PASSWORD, PHONE, RECORD_ID, validate_field, validate_required
from ..logging_conf import get_logger
from .auth import TokenService
from .handlers import HandlerGroup, HandlerResult
from .store import RecordNotFound, RecordStore

logger = get_logger("service.tokens")

_LOGIN_RULES = {"phone": PHONE, "password": PASSWORD}
_EXTEND_RULES = {"extend": AFFIRMATIVE}


class TokenHandlers(HandlerGroup):
    """Login (post), lookup (get), extend (put) and logout (delete).

    Knowing a token's id is what authorizes get/put/delete on it.
    """

    resource = "tokens"

    def __init__(self, store: RecordStore, auth: TokenService, *, secret: str) -> None:
        super().__init__(store, auth)
        self.secret = secret

    async def post(self, data: RequestData) -> HandlerResult:
        fields = validate_required(data.payload, _LOGIN_RULES)
        phone = fields["phone"]
        try:
            user = await self.load(User, USERS, phone)
        except RecordNotFound as e:
            logger.info("token.login_rejected", extra={"event": "login_rejected", "reason": "no_user"})
            raise Forbidden("Phone number or password did not match") from e
        if not passwords_match(fields["password"], user.hashed_password, self.secret):
            logger.info("token.login_rejected", extra={"event": "login_rejected", "reason": "password"})
            raise Forbidden("Phone number or password did not match")
        token = await self.auth.create_token(phone)
        return 200, token.to_record()

    async def get(self, data: RequestData) -> HandlerResult:
        token_id = validate_field("id", data.query_value("id"), RECORD_ID)
        try:
            token = await self.auth.read_token(token_id)
        except RecordNotFound as e:
            raise NotFound(f"The token with ID {token_id} does not exist") from e
        return 200, token.to_record()

    async def put(self, data: RequestData) -> HandlerResult:
        token_id = validate_field("id", data.query_value("id"), RECORD_ID)
        validate_required(data.payload, _EXTEND_RULES)
        try:
            token = await self.auth.extend_token(token_id)
        except RecordNotFound as e:
            raise NotFound(f"The token with ID {token_id} does not exist") from e
        return 200, token.to_record()

    async def delete(self, data: RequestData) -> HandlerResult:
        token_id = validate_field("id", data.query_value("id"), RECORD_ID)
        try:
            await self.auth.revoke_token(token_id)
        except RecordNotFound as e:
            raise NotFound(f"The token with ID {token_id} does not exist") from e
        return 200, None
