#!/usr/bin/env python3
"""End-to-end smoke run against a live pingwatch server.

Steps:
- wait for /ping
- register a throwaway user and log in
- fill the user's check quota, then confirm the next create is refused
- extend the token
- delete the user and confirm its checks are gone
- log out and emit a compact summary + exit code
"""
from __future__ import annotations

import asyncio
import secrets
import sys

import httpx

from pingwatch.logging_conf import get_logger, setup_logging
from runner.cli import parse_args
from runner.client import ApiClient, wait_for_ping
from runner.types import Account, SmokeError, StepResult, UnexpectedStatus, random_phone

setup_logging()
logger = get_logger("runner")


async def _flow(api: ApiClient, account: Account, max_checks: int) -> list[StepResult]:
    steps: list[StepResult] = []

    await api.create_user(account)
    steps.append(StepResult("user.create", True, 200))
    await api.login(account)
    steps.append(StepResult("token.create", True, 200))

    user = await api.read_user(account)
    steps.append(StepResult("user.read", "hashedPassword" not in user, 200))

    for i in range(max_checks):
        await api.create_check(account, f"example.com/smoke/{i}")
    steps.append(StepResult("check.create", len(account.check_ids) == max_checks, 200,
                            f"{len(account.check_ids)} created"))

    await api.create_check(account, "example.com/smoke/over-limit", expected=400)
    steps.append(StepResult("check.limit", True, 400))

    await api.extend_token(account)
    steps.append(StepResult("token.extend", True, 200))

    await api.delete_user(account)
    steps.append(StepResult("user.delete", True, 200))

    for check_id in account.check_ids:
        await api.read_check(account, check_id, expected=404)
    steps.append(StepResult("check.cascade", True, 404, f"{len(account.check_ids)} gone"))

    await api.logout(account)
    steps.append(StepResult("token.delete", True, 200))
    return steps


def summarize(steps: list[StepResult]) -> tuple[dict, int]:
    failed = [s for s in steps if not s.ok]
    summary = {
        "component": "runner",
        "event": "summary",
        "steps": len(steps),
        "failed": [{"step": s.name, "status_code": s.status_code, "detail": s.detail} for s in failed],
    }
    return summary, 1 if failed else 0


async def run_smoke(*, base_url: str, timeout_s: float = 20.0, max_checks: int = 5) -> int:
    await wait_for_ping(base_url, timeout_s)
    account = Account(phone=random_phone(), password=secrets.token_urlsafe(12))
    async with httpx.AsyncClient(base_url=base_url, timeout=10.0, verify=False) as client:
        try:
            steps = await _flow(ApiClient(client), account, max_checks)
        except UnexpectedStatus as e:
            logger.error("runner.step_failed", extra={"event": "step_failed", "step": e.step, "error": str(e)})
            steps = [StepResult(e.step, False, e.got, str(e))]
    summary, exit_code = summarize(steps)
    logger.info("runner.summary", extra=summary)
    return exit_code


def main(argv: list[str] | None = None) -> None:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        code = asyncio.run(
            run_smoke(base_url=args.base_url, timeout_s=args.timeout, max_checks=args.max_checks)
        )
    except SmokeError as e:
        logger.error("runner.aborted", extra={"event": "runner_aborted", "error": str(e)})
        code = 1
    raise SystemExit(code)


if __name__ == "__main__":
    main()
