#!/usr/bin/env python3
"""
Regenerate the ISPyB table models from a live database.

Run this by hand (or from CI) whenever the upstream ISPyB schema changes;
the service itself never introspects the database. Only the tables and
columns allow-listed in service_sessions.app.persistence.reflection are
kept.
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from service_sessions.app.persistence.database import create_engine  # noqa: E402
from service_sessions.app.persistence.reflection import generate_models  # noqa: E402

DEFAULT_OUTPUT = Path(__file__).resolve().parent.parent / "service_sessions" / "app" / "persistence" / "models.py"


async def reflect(database_url: str) -> str:
    """Reflect the schema at ``database_url`` and return the models source."""
    engine = create_engine(database_url)
    try:
        return await generate_models(engine)
    finally:
        await engine.dispose()


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate ISPyB table models from a live database.")
    parser.add_argument("--database-url", default=os.getenv("DATABASE_URL"), help="ISPyB database URL (env: DATABASE_URL)")
    parser.add_argument("--output", type=Path, default=DEFAULT_OUTPUT, help="Where to write the models module")
    parser.add_argument("--check", action="store_true", help="Exit non-zero if the models module is out of date instead of writing it")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    if not args.database_url:
        print("[reflect-models] --database-url or DATABASE_URL is required", file=sys.stderr)
        return 2

    try:
        source = asyncio.run(reflect(args.database_url))
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[reflect-models] failed: {exc}", file=sys.stderr)
        return 1

    if args.check:
        current = args.output.read_text() if args.output.exists() else ""
        if current != source:
            print(f"[reflect-models] {args.output} is out of date", file=sys.stderr)
            return 1
        print(f"[reflect-models] {args.output} is up to date")
        return 0

    args.output.write_text(source)
    print(f"[reflect-models] wrote {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
