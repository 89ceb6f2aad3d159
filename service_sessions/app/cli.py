"""
Command line entry point: ``sessions serve`` and ``sessions schema``.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from shared.config import LOG_LEVELS, get_config
from shared.errors import ConfigurationError


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sessions",
        description="A service providing Beamline Session data from ISPyB"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Starts a webserver serving the GraphQL API")
    serve.add_argument("-p", "--port", type=int, default=None, help="The port to bind to (env: PORT)")
    serve.add_argument("--database-url", default=None, help="The URL of the ISPyB instance (env: DATABASE_URL)")
    serve.add_argument("--opa-url", default=None, help="The Open Policy Agent decision endpoint (env: OPA_URL)")
    serve.add_argument("--log-level", choices=LOG_LEVELS, default=None, help="The level to log at (env: LOG_LEVEL)")
    serve.add_argument("--otel-collector-url", default=None, help="The OpenTelemetry collector to send traces to (env: OTEL_COLLECTOR_URL)")

    schema = commands.add_parser("schema", help="Produces the GraphQL schema")
    schema.add_argument("-p", "--path", type=Path, default=None, help="Where to write the schema, stdout if not set")

    return parser.parse_args(argv)


def serve(args: argparse.Namespace) -> int:
    from .main import SessionsService

    try:
        config = get_config(
            port=args.port,
            database_url=args.database_url,
            opa_url=args.opa_url,
            log_level=args.log_level,
            otel_collector_url=args.otel_collector_url,
        )
        service = SessionsService(config)
    except (ValidationError, ConfigurationError) as exc:
        print(f"[sessions] invalid configuration: {exc}", file=sys.stderr)
        return 2

    service.run()
    return 0


def schema(args: argparse.Namespace) -> int:
    from .graphql.schema import export_schema

    schema_string = export_schema(args.path)
    if args.path is None:
        print(schema_string)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    if args.command == "serve":
        return serve(args)
    return schema(args)


if __name__ == "__main__":
    raise SystemExit(main())
