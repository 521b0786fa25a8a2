"""Command-line interface for database maintenance and the API server."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from spendtrack.database import init_db, session_scope
from spendtrack.logging import configure_cli_logging
from spendtrack.seed import seed_default_categories

DESCRIPTION = "Spendtrack expense and budget service"
LOG = logging.getLogger("spendtrack.cli")


def _add_init_db_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    subparsers.add_parser("init-db", help="Create the database tables if missing")


def _add_seed_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    seed = subparsers.add_parser("seed-defaults", help="Insert the default categories")
    seed.add_argument(
        "--path",
        type=Path,
        default=None,
        help="YAML file with the default categories (defaults to the bundled list)",
    )


def _add_serve_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    serve = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    serve.add_argument("--port", type=int, default=8000, help="Port to listen on")
    serve.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Restart the server when source files change",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="spendtrack", description=DESCRIPTION)
    parser.add_argument(
        "--json-logs",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Mirror logs to artifacts/logs/spendtrack.log in JSON format",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (overridden by SPENDTRACK_LOG_LEVEL)",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)
    _add_init_db_subparser(sub)
    _add_seed_subparser(sub)
    _add_serve_subparser(sub)
    return parser


def _handle_init_db(args: argparse.Namespace) -> None:
    init_db()
    print("[spendtrack] init-db status=ok")


def _handle_seed(args: argparse.Namespace) -> None:
    """Create tables if needed, then seed the default categories once."""

    init_db()
    with session_scope() as session:
        inserted = seed_default_categories(session, args.path)
    print(f"[spendtrack] seed-defaults inserted={inserted}")


def _handle_serve(args: argparse.Namespace) -> None:
    import uvicorn

    LOG.info("Starting API on %s:%d", args.host, args.port)
    uvicorn.run("spendtrack.server:app", host=args.host, port=args.port, reload=args.reload)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_cli_logging(json_logs=bool(args.json_logs), level=args.log_level)
    if args.cmd == "init-db":
        _handle_init_db(args)
    elif args.cmd == "seed-defaults":
        _handle_seed(args)
    elif args.cmd == "serve":
        _handle_serve(args)
    else:
        print(f"[spendtrack] command = {args.cmd}")


if __name__ == "__main__":
    main()
