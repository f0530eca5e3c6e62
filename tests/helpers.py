"""Payload builders and flows shared by the API tests."""
from __future__ import annotations

from httpx import AsyncClient

PHONE = "5551234567"
OTHER_PHONE = "5559876543"
PASSWORD = "correct horse"


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def user_payload(phone: str = PHONE, password: str = PASSWORD, **extra) -> dict:
    payload = {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "phone": phone,
        "password": password,
        "tosAgreement": True,
    }
    payload.update(extra)
    return payload


def check_payload(**extra) -> dict:
    payload = {
        "protocol": "https",
        "url": "example.com/health",
        "method": "get",
        "successCodes": [200, 201],
        "timeoutSeconds": 3,
    }
    payload.update(extra)
    return payload


async def signup(client: AsyncClient, phone: str = PHONE, password: str = PASSWORD) -> str:
    """Register a user and return a fresh token id."""
    r = await client.post("/users", json=user_payload(phone, password))
    assert r.status_code == 200, r.text
    r = await client.post("/tokens", json={"phone": phone, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["id"]


async def create_check(client: AsyncClient, token: str, **extra) -> dict:
    r = await client.post("/checks", json=check_payload(**extra), headers={"token": token})
    assert r.status_code == 200, r.text
    return r.json()
