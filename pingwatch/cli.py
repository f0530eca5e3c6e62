from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Optional

from .config import Settings, load_settings
from .logging_conf import setup_logging


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments for the pingwatch command."""
    parser = argparse.ArgumentParser(prog="pingwatch", description="pingwatch API server")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP(S) API server")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    sub.add_parser("reconcile", help="Repair user/check links left by partial failures")

    notify = sub.add_parser("notify", help="Send an SMS to one or more phones through the configured provider")
    notify.add_argument("--phone", action="append", required=True, help="repeat for several recipients")
    notify.add_argument("--message", required=True)
    return parser.parse_args(argv)


def serve(settings: Settings, host: Optional[str], port: Optional[int]) -> None:
    import uvicorn

    from .main import create_app

    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.http_port,
        ssl_keyfile=str(settings.ssl_keyfile) if settings.ssl_keyfile else None,
        ssl_certfile=str(settings.ssl_certfile) if settings.ssl_certfile else None,
        log_config=None,
    )


async def run_reconcile(settings: Settings) -> int:
    from .service.reconcile import reconcile
    from .service.store import RecordStore

    report = await reconcile(RecordStore(settings.data_dir))
    print(json.dumps(report.as_dict(), indent=2))
    return 1 if report.errors else 0


async def run_notify(settings: Settings, phones: list[str], message: str) -> int:
    from .service.notify import BackgroundNotifier, TwilioSmsSender

    notifier = BackgroundNotifier(TwilioSmsSender(settings.twilio))
    for phone in phones:
        notifier.notify(phone, message)
    failures = await notifier.drain()
    return 1 if failures else 0


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    settings = load_settings()
    setup_logging(settings.log_level)

    if args.command == "serve":
        serve(settings, args.host, args.port)
        return
    if args.command == "reconcile":
        code = asyncio.run(run_reconcile(settings))
    else:
        code = asyncio.run(run_notify(settings, args.phone, args.message))
    raise SystemExit(code)


if __name__ == "__main__":
    main()
