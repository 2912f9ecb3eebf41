#!/usr/bin/env python3
"""
Create (or recreate) the placement schema, and optionally run the contract
expiry sweep.

Reads the database URL from the active configuration
(placement_config/sets/default.yaml, $PLACEMENT_CONFIG, $PLACEMENT_DATABASE_URL).

Usage:
  python3 scripts/init_db.py                    # create missing tables
  python3 scripts/init_db.py --drop             # drop everything first
  python3 scripts/init_db.py --expire           # also expire overdue contracts
  python3 scripts/init_db.py --db-url sqlite:///dev.db
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Initialize the placement database")
    p.add_argument("--config", help="Configuration file (default: packaged default.yaml)")
    p.add_argument("--db-url", help="Override database.url from the configuration")
    p.add_argument("--drop", action="store_true", help="Drop all tables before creating them")
    p.add_argument("--expire", action="store_true", help="Mark overdue ACTIVE contracts EXPIRED")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from placement_config import get_active_config
    from placement_kernel.db.engine import (
        create_tables,
        drop_tables,
        init_engine_from_url,
        reset_engine,
    )
    from placement_kernel.logging_config import configure_logging
    from placement_services.orchestrator import PlacementOrchestrator

    config = get_active_config(args.config)
    configure_logging(level=config.logging.level)

    db_url = args.db_url or config.database.url
    init_engine_from_url(db_url, echo=config.database.echo)
    try:
        if args.drop:
            drop_tables()
            print("  Dropped all tables.")
        create_tables()
        print(f"  Schema ready ({db_url}).")

        if args.expire:
            orchestrator = PlacementOrchestrator(clock=None, limits=config.workload)
            expired = orchestrator.expire_contracts()
            print(f"  Expired {len(expired)} contract(s).")
    finally:
        reset_engine()
    return 0


if __name__ == "__main__":
    sys.exit(main())
