"""
Rebuild denormalized counters from the source rows.

- vendors.product_count / categories.product_count from products
- products and vendors rating + review_count from published reviews

Usage:
  python -m migration.reconcile_counters --db sqlite:///./marketplace.db
"""
import argparse
import logging

from sqlalchemy import inspect
from sqlalchemy.orm import sessionmaker

from marketplace import counters
from marketplace.config import setup_logging
from marketplace.db import make_engine

log = logging.getLogger("marketplace.migration")


def reconcile(db_url: str) -> dict:
    if db_url in ("sqlite://", "sqlite:///:memory:"):
        raise ValueError("Use a file-backed DB for the reconcile script")

    engine = make_engine(db_url)
    try:
        tables = set(inspect(engine).get_table_names())
        missing = {"vendors", "categories", "products", "reviews"} - tables
        if missing:
            raise RuntimeError(f"tables missing; cannot reconcile: {', '.join(sorted(missing))}")

        factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
        with factory() as db:
            result = {
                "product_counts_fixed": counters.reconcile_product_counts(db),
                "ratings_fixed": counters.reconcile_ratings(db),
            }
            db.commit()
    finally:
        engine.dispose()
    log.info("reconciled %s", result)
    return result


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", required=True, help="Database URL, e.g. sqlite:///./marketplace.db")
    args = parser.parse_args()
    setup_logging()
    result = reconcile(args.db)
    print(f"product counts fixed: {result['product_counts_fixed']}, ratings fixed: {result['ratings_fixed']}")


if __name__ == "__main__":
    main()
