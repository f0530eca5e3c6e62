from __future__ import annotations

import asyncio

from ..domain.credentials import hash_password
from ..domain.errors import Conflict, IntegrityFailure, NotFound
from ..domain.records import CHECKS, USERS, User
from ..domain.request import RequestData
from ..domain.validation import AFFIRMATIVE, NAME, PASSWORD, PHONE, validate_field, validate_optional, validate_required
from ..logging_conf import get_logger
from .auth import TokenService
from .handlers import HandlerGroup, HandlerResult
from .store import RecordExists, RecordNotFound, RecordStore, StoreError

logger = get_logger("service.users")

_CREATE_RULES = {
    "firstName": NAME,
    "lastName": NAME,
    "phone": PHONE,
    "password": PASSWORD,
    "tosAgreement": AFFIRMATIVE,
}
_UPDATE_RULES = {
    "firstName": NAME,
    "lastName": NAME,
    "password": PASSWORD,
}


class UserHandlers(HandlerGroup):
    resource = "users"

    def __init__(self, store: RecordStore, auth: TokenService, *, secret: str) -> None:
        super().__init__(store, auth)
        self.secret = secret

    async def post(self, data: RequestData) -> HandlerResult:
        """Register a new account. No token: the account cannot exist yet."""
        fields = validate_required(data.payload, _CREATE_RULES)
        user = User(
            first_name=fields["firstName"],
            last_name=fields["lastName"],
            phone=fields["phone"],
            hashed_password=hash_password(fields["password"], self.secret),
            tos_agreement=True,
        )
        try:
            await self.store.create(USERS, user.phone, user.to_record())
        except RecordExists as e:
            raise Conflict(f"A user with phone number {user.phone} already exists") from e
        logger.info("user.create", extra={"event": "user_create", "phone": user.phone})
        return 200, user.public()

    async def get(self, data: RequestData) -> HandlerResult:
        phone = validate_field("phone", data.query_value("phone"), PHONE)
        await self.require_token_for(data, phone)
        try:
            user = await self.load(User, USERS, phone)
        except RecordNotFound as e:
            raise NotFound(f"The user with phone number {phone} does not exist") from e
        return 200, user.public()

    async def put(self, data: RequestData) -> HandlerResult:
        """Patch names and/or password; at least one must be valid."""
        payload = data.payload if isinstance(data.payload, dict) else None
        phone = validate_field("phone", payload.get("phone") if payload else None, PHONE)
        fields = validate_optional(payload, _UPDATE_RULES)
        await self.require_token_for(data, phone)
        try:
            user = await self.load(User, USERS, phone)
        except RecordNotFound as e:
            raise NotFound(f"The user with phone number {phone} does not exist") from e

        if "firstName" in fields:
            user.first_name = fields["firstName"]
        if "lastName" in fields:
            user.last_name = fields["lastName"]
        if "password" in fields:
            user.hashed_password = hash_password(fields["password"], self.secret)

        try:
            await self.store.update(USERS, phone, user.to_record())
        except RecordNotFound as e:
            raise NotFound(f"The user with phone number {phone} does not exist") from e
        logger.info(
            "user.update",
            extra={"event": "user_update", "phone": phone, "fields": sorted(fields)},
        )
        return 200, user.public()

    async def delete(self, data: RequestData) -> HandlerResult:
        """Remove the account, then every check it owns.

        The user record goes first. Check removal is best-effort per check;
        checks that are already gone count as removed. Any check left behind
        is reported as an IntegrityFailure naming the leftover ids; the
        reconciliation pass can clean them up later.
        """
        phone = validate_field("phone", data.query_value("phone"), PHONE)
        await self.require_token_for(data, phone)
        try:
            user = await self.load(User, USERS, phone)
            await self.store.delete(USERS, phone)
        except RecordNotFound as e:
            raise NotFound(f"The user with phone number {phone} does not exist") from e

        results = await asyncio.gather(
            *(self.store.delete(CHECKS, check_id) for check_id in user.checks),
            return_exceptions=True,
        )
        leftover: list[str] = []
        for check_id, result in zip(user.checks, results):
            if isinstance(result, RecordNotFound):
                continue
            if isinstance(result, StoreError):
                leftover.append(check_id)
            elif isinstance(result, BaseException):
                raise result

        logger.info(
            "user.delete",
            extra={
                "event": "user_delete",
                "phone": phone,
                "checks": len(user.checks),
                "leftover": len(leftover),
            },
        )
        if leftover:
            raise IntegrityFailure(
                "The user was deleted but not all of the user's checks could be deleted",
                details={"checks": leftover},
            )
        return 200, None
