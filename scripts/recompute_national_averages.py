"""
Recompute and persist national averages for one year from CLI.
"""

from __future__ import annotations

import argparse
import json
import logging

from db.session import create_db_engine, create_session_factory
from stateimport.config import get_aggregation_settings
from stateimport.services.aggregation_service import AggregationService
from stateimport.services.cache import TTLCache


def main() -> int:
    parser = argparse.ArgumentParser(description="Recompute national averages for a year.")
    parser.add_argument("year", type=int, help="Data year to recompute.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    settings = get_aggregation_settings()
    engine = create_db_engine()
    session_factory = create_session_factory(engine)
    try:
        with session_factory() as db:
            service = AggregationService(
                db,
                cache=TTLCache(ttl_seconds=settings.cache_ttl_seconds),
                settings=settings,
            )
            summary = service.recompute_national_averages(args.year)
    finally:
        engine.dispose()

    print(
        json.dumps(
            {"year": summary.year, "recomputed": summary.recomputed, "failed": summary.failed},
            indent=2,
        )
    )
    return 0 if not summary.failed else 1


if __name__ == "__main__":
    raise SystemExit(main())
