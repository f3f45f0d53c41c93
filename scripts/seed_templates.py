"""
Seed the built-in CSV import templates from CLI.
"""

from __future__ import annotations

import argparse
import json
import logging

from db.repositories.template_repository import TemplateRepository
from db.session import create_db_engine, create_session_factory
from stateimport.services.template_registry import TemplateRegistry


def main() -> int:
    parser = argparse.ArgumentParser(description="Insert missing built-in CSV import templates.")
    parser.add_argument(
        "--database-url",
        dest="database_url",
        default=None,
        help="Optional database URL; defaults to the environment-resolved URL.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    engine = create_db_engine(args.database_url)
    session_factory = create_session_factory(engine)
    try:
        with session_factory() as db:
            created = TemplateRegistry(TemplateRepository(db)).seed_default_templates()
            db.commit()
    finally:
        engine.dispose()

    print(json.dumps({"created": created}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
