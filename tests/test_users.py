"""Users API — create, read, update and cascading delete.

Invariants:
    - The password is stored only as its hash and never returned
    - A duplicate phone is a 409 Conflict and the original record stays intact
    - Concurrent creates for one phone admit exactly one
    - Deleting a user deletes every check it owned
"""
import asyncio

from pingwatch.domain.credentials import hash_password
from pingwatch.domain.records import CHECKS, USERS
from pingwatch.service.store import StoreIOError
from tests.helpers import OTHER_PHONE, PASSWORD, PHONE, create_check, signup, user_payload


async def test_create_then_read_round_trip(client, store):
    r = await client.post("/users", json=user_payload())
    assert r.status_code == 200
    assert "hashedPassword" not in r.json()

    token = (await client.post("/tokens", json={"phone": PHONE, "password": PASSWORD})).json()["id"]
    r = await client.get("/users", params={"phone": PHONE}, headers={"token": token})
    assert r.status_code == 200
    body = r.json()
    assert body["firstName"] == "Ada"
    assert body["lastName"] == "Lovelace"
    assert body["phone"] == PHONE
    assert body["checks"] == []
    assert "hashedPassword" not in body


async def test_only_password_hash_is_persisted(client, store):
    await client.post("/users", json=user_payload())
    stored = await store.read(USERS, PHONE)
    assert stored["hashedPassword"] == hash_password(PASSWORD, "test-secret")
    assert PASSWORD not in str(stored)


async def test_duplicate_phone_conflicts_and_keeps_original(client, store):
    await client.post("/users", json=user_payload())
    before = await store.read(USERS, PHONE)

    r = await client.post("/users", json=user_payload(firstName="Eve", password="other"))
    assert r.status_code == 409
    assert r.json()["error_code"] == "conflict"
    assert await store.read(USERS, PHONE) == before


async def test_create_requires_tos_agreement(client, store):
    r = await client.post("/users", json=user_payload(tosAgreement=False))
    assert r.status_code == 400
    assert "tosAgreement" in r.json()["details"]["fields"]
    assert await store.list_keys(USERS) == []


async def test_create_with_malformed_body(client):
    r = await client.post("/users", content=b"{broken", headers={"content-type": "application/json"})
    assert r.status_code == 400
    assert r.json()["error_code"] == "invalid_input"


async def test_create_rejects_non_ascii_digit_phone(client, store):
    r = await client.post("/users", json=user_payload(phone="١" * 10))
    assert r.status_code == 400
    assert "phone" in r.json()["details"]["fields"]
    assert await store.list_keys(USERS) == []


async def test_concurrent_creates_for_one_phone_admit_exactly_one(client, store):
    payloads = [user_payload(firstName=f"Ada{i}") for i in range(8)]
    responses = await asyncio.gather(*(client.post("/users", json=p) for p in payloads))

    statuses = sorted(r.status_code for r in responses)
    assert statuses == [200] + [409] * 7
    winner = next(r.json() for r in responses if r.status_code == 200)
    assert (await store.read(USERS, PHONE))["firstName"] == winner["firstName"]


async def test_read_requires_token(client, token):
    r = await client.get("/users", params={"phone": PHONE})
    assert r.status_code == 403


async def test_read_rejects_other_users_token(client, token):
    other = await signup(client, OTHER_PHONE)
    r = await client.get("/users", params={"phone": PHONE}, headers={"token": other})
    assert r.status_code == 403


async def test_read_rejects_invalid_phone(client, token):
    r = await client.get("/users", params={"phone": "123"}, headers={"token": token})
    assert r.status_code == 400


async def test_update_single_field(client, token):
    r = await client.put(
        "/users", json={"phone": PHONE, "lastName": "Byron"}, headers={"token": token}
    )
    assert r.status_code == 200
    assert r.json()["lastName"] == "Byron"
    assert r.json()["firstName"] == "Ada"


async def test_update_password_changes_login(client, token):
    r = await client.put(
        "/users", json={"phone": PHONE, "password": "new secret"}, headers={"token": token}
    )
    assert r.status_code == 200
    old = await client.post("/tokens", json={"phone": PHONE, "password": PASSWORD})
    new = await client.post("/tokens", json={"phone": PHONE, "password": "new secret"})
    assert old.status_code == 403
    assert new.status_code == 200


async def test_update_without_valid_fields_is_invalid(client, token):
    r = await client.put(
        "/users", json={"phone": PHONE, "firstName": "  "}, headers={"token": token}
    )
    assert r.status_code == 400


async def test_update_requires_matching_token(client, token):
    other = await signup(client, OTHER_PHONE)
    r = await client.put(
        "/users", json={"phone": PHONE, "lastName": "Byron"}, headers={"token": other}
    )
    assert r.status_code == 403


async def test_delete_cascades_to_owned_checks(client, store, token):
    first = await create_check(client, token)
    second = await create_check(client, token, url="example.com/other")

    r = await client.delete("/users", params={"phone": PHONE}, headers={"token": token})
    assert r.status_code == 200

    assert await store.list_keys(USERS) == []
    remaining = [await store.read(CHECKS, key) for key in await store.list_keys(CHECKS)]
    assert [c for c in remaining if c["userPhone"] == PHONE] == []
    assert first["id"] not in await store.list_keys(CHECKS)
    assert second["id"] not in await store.list_keys(CHECKS)


async def test_delete_reports_checks_left_behind(client, store, token, monkeypatch):
    kept = await create_check(client, token)
    gone = await create_check(client, token, url="example.com/other")
    original_delete = store.delete

    async def flaky_delete(collection, key):
        if collection == CHECKS and key == kept["id"]:
            raise StoreIOError(collection, key, "disk unplugged")
        await original_delete(collection, key)

    monkeypatch.setattr(store, "delete", flaky_delete)
    r = await client.delete("/users", params={"phone": PHONE}, headers={"token": token})

    assert r.status_code == 500
    body = r.json()
    assert body["error_code"] == "integrity_failure"
    assert body["details"]["checks"] == [kept["id"]]
    assert await store.list_keys(USERS) == []
    assert await store.list_keys(CHECKS) == [kept["id"]]
    assert gone["id"] not in await store.list_keys(CHECKS)


async def test_delete_unknown_user(client, auth):
    token = await auth.create_token(PHONE)
    r = await client.delete("/users", params={"phone": PHONE}, headers={"token": token.id})
    assert r.status_code == 404
