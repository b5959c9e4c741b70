"""Command line entry point.

    python -m idempotent_transfer serve [--host 0.0.0.0] [--port 8080]
    python -m idempotent_transfer stress [--url ...] [--concurrent 50] [--skip-setup]

Both commands read TransferConfig from the environment.
"""

import argparse
import asyncio
import sys
from decimal import Decimal, InvalidOperation

import uvicorn

from idempotent_transfer.api.app import create_app
from idempotent_transfer.config import TransferConfig
from idempotent_transfer.observability.logging import configure_logging
from idempotent_transfer.storage.ledger import SQLLedgerStore
from idempotent_transfer.stress import DEFAULT_URL, StressConfig, run_stress, seed_accounts


def _amount(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid amount: {value!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="idempotent_transfer")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the transfer API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8080)

    stress = commands.add_parser("stress", help="Fire concurrent duplicate transfers")
    stress.add_argument("--url", default=DEFAULT_URL)
    stress.add_argument("--key", default="stress-test-key-999")
    stress.add_argument("--concurrent", type=int, default=50)
    stress.add_argument("--from-id", type=int, default=1)
    stress.add_argument("--to-id", type=int, default=2)
    stress.add_argument("--amount", type=_amount, default=Decimal("10"))
    stress.add_argument(
        "--skip-setup",
        action="store_true",
        help="Do not seed accounts (they already exist)",
    )
    return parser


def _serve(config: TransferConfig, args: argparse.Namespace) -> int:
    uvicorn.run(
        create_app(config),
        host=args.host,
        port=args.port,
        log_level=config.log_level.lower(),
    )
    return 0


def _stress(config: TransferConfig, args: argparse.Namespace) -> int:
    stress_config = StressConfig(
        url=args.url,
        idempotency_key=args.key,
        concurrent_requests=args.concurrent,
        from_id=args.from_id,
        to_id=args.to_id,
        amount=args.amount,
    )

    if not args.skip_setup:
        ledger = SQLLedgerStore.from_url(config.database_url, config.database_timeout_seconds)
        try:
            seed_accounts(ledger, stress_config)
        finally:
            ledger.close()

    report = asyncio.run(run_stress(stress_config))
    print(report.format())
    return 0 if report.passed else 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = TransferConfig.from_env()
    configure_logging(level=config.log_level, json_output=config.json_logs)

    if args.command == "serve":
        return _serve(config, args)
    return _stress(config, args)


if __name__ == "__main__":
    sys.exit(main())
