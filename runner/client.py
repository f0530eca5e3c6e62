from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

import httpx

from pingwatch.logging_conf import get_logger
from runner.types import Account, SmokeError, UnexpectedStatus

logger = get_logger("runner.client")


async def wait_for_ping(base_url: str, timeout_s: float = 20.0) -> None:
    """Call /ping until it answers 200 or raise after `timeout_s`."""
    deadline = time.monotonic() + timeout_s
    async with httpx.AsyncClient(base_url=base_url, timeout=5.0, verify=False) as client:
        while time.monotonic() < deadline:
            try:
                r = await client.get("/ping")
                if r.status_code == 200:
                    logger.info("ping.ok", extra={"event": "ping_ok"})
                    return
            except httpx.HTTPError:
                pass
            await asyncio.sleep(0.25)
    raise SmokeError("Ping did not answer within timeout")


class ApiClient:
    """Thin wrapper over the pingwatch HTTP API used by the smoke flow."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def _call(
        self,
        step: str,
        method: str,
        path: str,
        *,
        expected: int = 200,
        token: Optional[str] = None,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
    ) -> Any:
        headers = {"token": token} if token else None
        r = await self.client.request(method, path, params=params, json=json, headers=headers)
        if r.status_code != expected:
            raise UnexpectedStatus(step, expected, r.status_code, r.text)
        logger.info("step.ok", extra={"event": "step_ok", "step": step, "status_code": r.status_code})
        return r.json() if r.content else {}

    async def create_user(self, account: Account) -> dict:
        return await self._call(
            "user.create",
            "POST",
            "/users",
            json={
                "firstName": "Smoke",
                "lastName": "Runner",
                "phone": account.phone,
                "password": account.password,
                "tosAgreement": True,
            },
        )

    async def login(self, account: Account) -> str:
        body = await self._call(
            "token.create",
            "POST",
            "/tokens",
            json={"phone": account.phone, "password": account.password},
        )
        account.token = body["id"]
        return account.token

    async def read_user(self, account: Account) -> dict:
        return await self._call(
            "user.read", "GET", "/users", token=account.token, params={"phone": account.phone}
        )

    async def create_check(self, account: Account, url: str, *, expected: int = 200) -> dict:
        body = await self._call(
            "check.create",
            "POST",
            "/checks",
            expected=expected,
            token=account.token,
            json={
                "protocol": "https",
                "url": url,
                "method": "get",
                "successCodes": [200, 201],
                "timeoutSeconds": 3,
            },
        )
        if expected == 200:
            account.check_ids.append(body["id"])
        return body

    async def read_check(self, account: Account, check_id: str, *, expected: int = 200) -> dict:
        return await self._call(
            "check.read", "GET", "/checks", expected=expected, token=account.token, params={"id": check_id}
        )

    async def extend_token(self, account: Account) -> dict:
        return await self._call(
            "token.extend", "PUT", "/tokens", params={"id": account.token}, json={"extend": True}
        )

    async def delete_user(self, account: Account) -> dict:
        return await self._call(
            "user.delete", "DELETE", "/users", token=account.token, params={"phone": account.phone}
        )

    async def logout(self, account: Account) -> dict:
        return await self._call("token.delete", "DELETE", "/tokens", params={"id": account.token})
