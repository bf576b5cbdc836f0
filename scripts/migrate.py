#!/usr/bin/env python3
"""
Operator CLI for the WooCommerce -> BigCommerce migration.

Usage:
    python scripts/migrate.py catalog categories
    python scripts/migrate.py product prepare
    python scripts/migrate.py product batch --size 10
    python scripts/migrate.py product drain --size 10
    python scripts/migrate.py order readiness
    python scripts/migrate.py verification populate
    python scripts/migrate.py verification weights --size 20
"""
import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app.core.bigcommerce import BigCommerceClient
from app.core.config import settings
from app.core.logging import configure_logging
from app.db.mappings import MappingRepository
from app.db.session import SessionLocal, init_db
from app.preparers.attribute import AttributeMigrator
from app.preparers.b2b import B2BHandler
from app.preparers.category import CategoryMigrator
from app.processors.customers import CustomerBatchProcessor
from app.processors.orders import OrderBatchProcessor
from app.processors.products import ProductBatchProcessor
from app.processors.runner import run_until_done
from app.source.store import MigrationError, load_source_store
from app.verification.engine import VerificationEngine

ERROR_FIELDS = {
    "product": ("unit_key", "dest_parent_id", "message", "updated_at"),
    "customer": ("source_user_id", "customer_email", "message", "updated_at"),
    "order": ("source_order_id", "order_date", "message", "updated_at"),
}

PROCESSORS = {
    "product": ProductBatchProcessor,
    "customer": CustomerBatchProcessor,
    "order": OrderBatchProcessor,
}


def _print(result) -> None:
    print(json.dumps(result, indent=2, default=str))


def _rows(rows, fields) -> list:
    return [{f: getattr(r, f) for f in fields} for r in rows]


def run_entity(args, db, client, store):
    processor = PROCESSORS[args.entity](db, client, store)
    if args.action == "prepare":
        if args.entity == "product":
            return processor.prepare_products()
        if args.entity == "customer":
            return processor.prepare_customers()
        return processor.prepare_orders(
            date_from=datetime.fromisoformat(args.date_from) if args.date_from else None,
            date_to=datetime.fromisoformat(args.date_to) if args.date_to else None,
            status=args.status,
        )
    if args.action == "batch":
        return processor.process_batch(args.size)
    if args.action == "retry":
        return processor.retry_errors(args.size)
    if args.action == "stats":
        return processor.get_stats()
    if args.action == "drain":
        return run_until_done(processor.process_batch, args.size, args.max_batches)
    if args.action == "errors":
        return _rows(processor.list_errors(args.limit), ERROR_FIELDS[args.entity])
    if args.action == "readiness" and args.entity == "order":
        return processor.validate_order_dependencies()
    raise SystemExit(f"'{args.action}' is not available for {args.entity}")


def run_verification(args, db, client, store):
    engine = VerificationEngine(db, client, store)
    if args.action == "init":
        return engine.init()
    if args.action == "populate":
        return engine.populate()
    if args.action == "batch":
        return engine.verify_batch(args.size)
    if args.action == "retry":
        return engine.retry_failed(args.size)
    if args.action == "stats":
        return engine.get_stats()
    if args.action == "weights":
        return engine.update_weights_batch(args.size)
    if args.action == "drain":
        return run_until_done(engine.verify_batch, args.size, args.max_batches)
    if args.action == "failed":
        return _rows(engine.list_failed(args.limit), ("unit_key", "dest_parent_id", "dest_variant_id", "verification_message", "last_verified"))
    if args.action == "cleanup":
        return engine.cleanup_old_failed(args.days)
    raise SystemExit(f"'{args.action}' is not available for verification")


def run_catalog(args, db, client, store):
    mappings = MappingRepository(db)
    if args.action == "categories":
        return CategoryMigrator(client, mappings, store).migrate_all()
    if args.action == "attributes":
        return AttributeMigrator(client, mappings, store, excluded=settings.excluded_variant_attributes).migrate_all()
    if args.action == "b2b":
        return B2BHandler(client, mappings).setup_b2b_features()
    if args.action == "ping":
        return client.test_connection()
    raise SystemExit(f"Unknown catalog action: {args.action}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Migrate a WooCommerce store into BigCommerce")
    parser.add_argument("--source", default=None, help="Path to the source export JSON (default from settings)")
    sub = parser.add_subparsers(dest="entity", required=True)

    for entity in PROCESSORS:
        p = sub.add_parser(entity, help=f"{entity} migration")
        actions = ["prepare", "batch", "retry", "stats", "drain", "errors"]
        if entity == "order":
            actions.append("readiness")
            p.add_argument("--date-from", default=None)
            p.add_argument("--date-to", default=None)
            p.add_argument("--status", default=None)
        p.add_argument("action", choices=actions)
        p.add_argument("--size", type=int, default=10)
        p.add_argument("--max-batches", type=int, default=0)
        p.add_argument("--limit", type=int, default=50)

    v = sub.add_parser("verification", help="Verify and repair migrated products")
    v.add_argument("action", choices=["init", "populate", "batch", "retry", "stats", "weights", "drain", "failed", "cleanup"])
    v.add_argument("--size", type=int, default=50)
    v.add_argument("--max-batches", type=int, default=0)
    v.add_argument("--limit", type=int, default=50)
    v.add_argument("--days", type=int, default=30)

    c = sub.add_parser("catalog", help="One-shot catalog setup")
    c.add_argument("action", choices=["categories", "attributes", "b2b", "ping"])
    return parser


def main():
    args = build_parser().parse_args()
    configure_logging()
    init_db()

    try:
        store = load_source_store(args.source)
    except MigrationError as e:
        print(f"❌ {e}")
        sys.exit(1)

    db = SessionLocal()
    client = BigCommerceClient()
    try:
        if args.entity == "verification":
            result = run_verification(args, db, client, store)
        elif args.entity == "catalog":
            result = run_catalog(args, db, client, store)
        else:
            result = run_entity(args, db, client, store)
        _print(result)
    finally:
        client.close()
        db.close()


if __name__ == "__main__":
    main()
