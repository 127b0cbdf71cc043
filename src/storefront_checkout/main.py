from __future__ import annotations

import argparse

from storefront_checkout.adapters.inbound.cli import run_reconcile, run_review
from storefront_checkout.bootstrap import build_adapters, configure_logging, wire
from storefront_checkout.config import Settings


def create_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storefront-checkout",
        description="Checkout and inventory reconciliation service.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)

    reconcile = subparsers.add_parser("reconcile", help="Retry pending stock adjustments once")
    reconcile.add_argument("--limit", type=int, default=settings.reconcile_batch)

    subparsers.add_parser("review", help="List stock adjustments that need manual review")
    return parser


def main(argv: list[str] | None = None) -> int:
    settings = Settings.from_env()
    parser = create_parser(settings)
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    configure_logging(settings.log_level)
    adapters = build_adapters(settings)
    usecases = wire(adapters, settings)

    if args.command == "serve":
        import uvicorn

        from storefront_checkout.adapters.inbound.web.fastapi_app import create_app

        uvicorn.run(create_app(usecases), host=args.host, port=args.port, workers=1)
        return 0

    if args.command == "review":
        return run_review(adapters.outbox)

    return run_reconcile(usecases.reconciliation, args.limit)


if __name__ == "__main__":
    raise SystemExit(main())
