from __future__ import annotations

from ..domain.credentials import create_random_string
from ..domain.errors import CheckLimitReached, Forbidden, IntegrityFailure, NotFound, StorageFailure
from ..domain.records import CHECKS, USERS, Check, User
from ..domain.request import RequestData
from ..domain.validation import (
    METHOD,
    PROTOCOL,
    RECORD_ID,
    SUCCESS_CODES,
    TIMEOUT_SECONDS,
    URL,
    validate_field,
    validate_optional,
    validate_required,
)
from ..logging_conf import get_logger
from .auth import TokenService
from .handlers import HandlerGroup, HandlerResult
from .store import RecordNotFound, RecordStore, StoreError

logger = get_logger("service.checks")

CHECK_ID_LENGTH = 20

_CHECK_RULES = {
    "protocol": PROTOCOL,
    "url": URL,
    "method": METHOD,
    "successCodes": SUCCESS_CODES,
    "timeoutSeconds": TIMEOUT_SECONDS,
}
# wire name -> Check attribute
_ATTRS = {
    "protocol": "protocol",
    "url": "url",
    "method": "method",
    "successCodes": "success_codes",
    "timeoutSeconds": "timeout_seconds",
}


class CheckHandlers(HandlerGroup):
    resource = "checks"

    def __init__(self, store: RecordStore, auth: TokenService, *, max_checks: int) -> None:
        super().__init__(store, auth)
        self.max_checks = max_checks

    async def post(self, data: RequestData) -> HandlerResult:
        """Create a check for the token's owner, then link it to the user.

        If linking fails the new check is deleted again, so a failed create
        leaves nothing behind.
        """
        fields = validate_required(data.payload, _CHECK_RULES)
        phone = await self.auth.resolve_owner(data.header("token"))
        if phone is None:
            raise Forbidden("The token is missing, invalid or has expired. Please log in")
        try:
            user = await self.load(User, USERS, phone)
        except RecordNotFound as e:
            raise Forbidden("The token's owner no longer exists") from e

        if len(user.checks) >= self.max_checks:
            raise CheckLimitReached(
                f"The user already has the maximum number of checks ({self.max_checks})"
            )

        check = Check(
            id=create_random_string(CHECK_ID_LENGTH),
            user_phone=phone,
            protocol=fields["protocol"],
            url=fields["url"],
            method=fields["method"],
            success_codes=fields["successCodes"],
            timeout_seconds=fields["timeoutSeconds"],
        )
        await self.store.create(CHECKS, check.id, check.to_record())

        user.checks.append(check.id)
        try:
            await self.store.update(USERS, phone, user.to_record())
        except StoreError as e:
            await self._discard(check.id)
            raise StorageFailure("Could not update the user with the new check") from e

        logger.info(
            "check.create",
            extra={"event": "check_create", "check_id": check.id, "phone": phone},
        )
        return 200, check.to_record()

    async def get(self, data: RequestData) -> HandlerResult:
        check_id = validate_field("id", data.query_value("id"), RECORD_ID)
        check = await self._owned_check(data, check_id)
        return 200, check.to_record()

    async def put(self, data: RequestData) -> HandlerResult:
        check_id = validate_field("id", data.query_value("id"), RECORD_ID)
        fields = validate_optional(data.payload, _CHECK_RULES)
        check = await self._owned_check(data, check_id)
        for name, value in fields.items():
            setattr(check, _ATTRS[name], value)
        try:
            await self.store.update(CHECKS, check_id, check.to_record())
        except RecordNotFound as e:
            raise NotFound(f"The check with ID {check_id} does not exist") from e
        logger.info(
            "check.update",
            extra={"event": "check_update", "check_id": check_id, "fields": sorted(fields)},
        )
        return 200, check.to_record()

    async def delete(self, data: RequestData) -> HandlerResult:
        """Delete the check, then unlink it from its owner."""
        check_id = validate_field("id", data.query_value("id"), RECORD_ID)
        check = await self._owned_check(data, check_id)
        try:
            await self.store.delete(CHECKS, check_id)
        except RecordNotFound as e:
            raise NotFound(f"The check with ID {check_id} does not exist") from e

        try:
            user = await self.load(User, USERS, check.user_phone)
        except RecordNotFound as e:
            raise IntegrityFailure(
                "The check was deleted but its owner could not be found",
                details={"check_id": check_id},
            ) from e
        if check_id not in user.checks:
            raise IntegrityFailure(
                "Could not find the check on the user's record, so it could not be removed",
                details={"check_id": check_id},
            )
        user.checks.remove(check_id)
        try:
            await self.store.update(USERS, user.phone, user.to_record())
        except StoreError as e:
            raise StorageFailure("The check was deleted but the user could not be updated") from e

        logger.info(
            "check.delete",
            extra={"event": "check_delete", "check_id": check_id, "phone": user.phone},
        )
        return 200, None

    # ------------------------
    # Internals
    # ------------------------
    async def _owned_check(self, data: RequestData, check_id: str) -> Check:
        try:
            check = await self.load(Check, CHECKS, check_id)
        except RecordNotFound as e:
            raise NotFound(f"The check with ID {check_id} does not exist") from e
        await self.require_token_for(data, check.user_phone)
        return check

    async def _discard(self, check_id: str) -> None:
        try:
            await self.store.delete(CHECKS, check_id)
        except StoreError as e:
            # Left for the reconciliation pass.
            logger.error(
                "check.compensation_failed",
                extra={"event": "check_compensation_failed", "check_id": check_id, "error": str(e)},
            )
        else:
            logger.warning(
                "check.create_rolled_back",
                extra={"event": "check_create_rolled_back", "check_id": check_id},
            )
