from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Account:
    """Throwaway account created for one smoke run."""

    phone: str
    password: str
    token: Optional[str] = None
    check_ids: list[str] = field(default_factory=list)


@dataclass
class StepResult:
    name: str
    ok: bool
    status_code: Optional[int] = None
    detail: str = ""


class SmokeError(RuntimeError):
    """Raised when the smoke flow cannot proceed (e.g., ping never answers)."""


class UnexpectedStatus(SmokeError):
    """Raised when an API call answers with a status the flow did not expect."""

    def __init__(self, step: str, expected: int, got: int, body: str = "") -> None:
        super().__init__(f"{step}: expected {expected}, got {got} {body}".rstrip())
        self.step = step
        self.expected = expected
        self.got = got


def random_phone() -> str:
    """A 10-digit phone in the 555 range, unlikely to collide with real data."""
    return "555" + "".join(random.choice("0123456789") for _ in range(7))
