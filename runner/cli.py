from __future__ import annotations

import argparse
import os


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments for the smoke runner."""
    parser = argparse.ArgumentParser(description="pingwatch smoke runner")
    parser.add_argument("--base-url", default=os.getenv("BASE_URL", "http://127.0.0.1:3000"))
    parser.add_argument("--timeout", type=float, default=20.0)
    parser.add_argument(
        "--max-checks",
        type=int,
        default=int(os.getenv("MAX_CHECKS", "5")),
        help="Per-user check cap configured on the server",
    )
    return parser.parse_args(argv)
