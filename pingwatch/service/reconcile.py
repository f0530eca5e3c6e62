"""Repair pass for users and checks that drifted apart.

User deletion and check creation both span two records. When a step fails
midway, this pass makes the two collections consistent again:

- a check whose owner is missing, or whose owner does not list it, is deleted;
- a user's check list loses ids whose check record no longer exists.

Running it twice in a row is a no-op the second time.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from ..domain.records import CHECKS, USERS, Check, User
from ..logging_conf import get_logger
from .store import RecordNotFound, RecordStore, StoreError

logger = get_logger("service.reconcile")


@dataclass
class ReconcileReport:
    orphaned_checks: list[str] = field(default_factory=list)
    pruned_links: dict[str, list[str]] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "orphaned_checks": self.orphaned_checks,
            "pruned_links": self.pruned_links,
            "errors": self.errors,
        }


async def reconcile(store: RecordStore) -> ReconcileReport:
    report = ReconcileReport()
    users: dict[str, User] = {}
    unreadable_users: set[str] = set()
    for phone in await store.list_keys(USERS):
        try:
            users[phone] = User.model_validate(await store.read(USERS, phone))
        except (StoreError, ValueError) as e:
            unreadable_users.add(phone)
            report.errors.append(f"{USERS}/{phone}: {e}")

    existing: set[str] = set()
    for check_id in await store.list_keys(CHECKS):
        try:
            check = Check.model_validate(await store.read(CHECKS, check_id))
        except (StoreError, ValueError) as e:
            # Unreadable but present: keep any link pointing at it.
            existing.add(check_id)
            report.errors.append(f"{CHECKS}/{check_id}: {e}")
            continue
        if check.user_phone in unreadable_users:
            existing.add(check_id)
            continue
        owner = users.get(check.user_phone)
        if owner is not None and check_id in owner.checks:
            existing.add(check_id)
            continue
        try:
            await store.delete(CHECKS, check_id)
        except RecordNotFound:
            pass
        except StoreError as e:
            report.errors.append(str(e))
            continue
        report.orphaned_checks.append(check_id)

    for phone, user in users.items():
        dangling = [cid for cid in user.checks if cid not in existing]
        if not dangling:
            continue
        user.checks = [cid for cid in user.checks if cid in existing]
        try:
            await store.update(USERS, phone, user.to_record())
        except StoreError as e:
            report.errors.append(str(e))
            continue
        report.pruned_links[phone] = dangling

    logger.info(
        "reconcile.done",
        extra={
            "event": "reconcile_done",
            "orphaned_checks": len(report.orphaned_checks),
            "pruned_users": len(report.pruned_links),
            "errors": len(report.errors),
        },
    )
    return report
