#!/usr/bin/env python3
"""
Operational stock reports and the periodic alert sweep.

Usage:
    python3 scripts/stock_report.py --db-url sqlite:///stock.db init-db
    python3 scripts/stock_report.py sweep
    python3 scripts/stock_report.py valuate --as-of 2024-03-31 --method average
    python3 scripts/stock_report.py alerts
    python3 scripts/stock_report.py reorder
    python3 scripts/stock_report.py reconcile

The database URL defaults to $DATABASE_URL, then sqlite:///stock.db.
"""

import argparse
import logging
import os
import sys
from datetime import date
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DEFAULT_DB_URL = "sqlite:///stock.db"
W = 72


def _header(title: str) -> None:
    print()
    print("=" * W)
    print(f"  {title}".center(W))
    print("=" * W)


def cmd_init_db(inventory, engine, args) -> int:
    from stock_kernel.db.engine import create_tables

    create_tables(engine)
    print("  Tables created.")
    return 0


def cmd_sweep(inventory, engine, args) -> int:
    expired = inventory.expire_batches()
    changed = inventory.sweep_alerts()
    _header("ALERT SWEEP")
    print(f"  Batches marked expired: {len(expired)}")
    print(f"  Alerts created / updated / resolved: {len(changed)}")
    for alert in changed:
        print(
            f"  [{alert.priority.value.upper():6}] {alert.status.value:12} "
            f"{alert.alert_type.value:14} {alert.message}"
        )
    return 0


def cmd_alerts(inventory, engine, args) -> int:
    alerts = inventory.open_alerts()
    summary = inventory.alert_summary()
    _header(f"OPEN ALERTS ({summary.total_open})")
    for alert in alerts:
        print(
            f"  [{alert.priority.value.upper():6}] {alert.alert_type.value:14} "
            f"{alert.message}"
        )
    if summary.by_priority:
        print()
        for priority, count in sorted(summary.by_priority.items()):
            print(f"  {priority:8} {count:>6}")
    return 0


def cmd_valuate(inventory, engine, args) -> int:
    from stock_kernel.domain.values import ValuationMethod

    as_of = date.fromisoformat(args.as_of) if args.as_of else None
    method = ValuationMethod(args.method) if args.method else None
    report = inventory.valuate(as_of_date=as_of, method=method)
    skus = {p.id: p.sku for p in inventory.list_products()}

    _header(f"STOCK VALUATION  {report.as_of_date}  ({report.method.value.upper()})")
    print(f"  {'SKU':<20}{'Stock':>14}{'Unit cost':>14}{'Value':>16}")
    print("  " + "-" * (W - 4))
    for item in report.items:
        print(
            f"  {skus.get(item.product_id, str(item.product_id))[:20]:<20}"
            f"{item.current_stock:>14}{item.unit_cost_used:>14}{item.current_value:>16}"
        )
    print("  " + "-" * (W - 4))
    print(f"  {'TOTAL':<20}{report.total_stock:>14}{'':>14}{report.total_value:>16}")

    print()
    print("  Aging (days since receipt)")
    for bucket in report.aging:
        print(
            f"    {bucket.name:<12}{bucket.quantity:>14}{bucket.value:>16}"
            f"{bucket.batch_count:>8} batches"
        )
    return 0


def cmd_reorder(inventory, engine, args) -> int:
    suggestions = inventory.reorder_suggestions()
    _header(f"REORDER SUGGESTIONS ({len(suggestions)})")
    for s in suggestions:
        print(
            f"  {s.sku:<20} stock {s.current_stock:>12}  "
            f"reorder at {s.reorder_level:>10}  order {s.suggested_quantity:>10}"
        )
    return 0


def cmd_reconcile(inventory, engine, args) -> int:
    _header("STOCK RECONCILIATION")
    failures = 0
    for product in inventory.list_products():
        result = inventory.reconcile(product.id)
        status = "OK" if result.is_consistent else "FAIL"
        if not result.is_consistent:
            failures += 1
        print(
            f"  [{status:4}] {product.sku:<20} stock {result.current_stock}  "
            f"batches {result.batch_total}  movements {result.transaction_total}"
        )
    return 1 if failures else 0


COMMANDS = {
    "init-db": cmd_init_db,
    "sweep": cmd_sweep,
    "alerts": cmd_alerts,
    "valuate": cmd_valuate,
    "reorder": cmd_reorder,
    "reconcile": cmd_reconcile,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stock ledger reports and alert sweep")
    parser.add_argument(
        "--db-url",
        default=os.environ.get("DATABASE_URL", DEFAULT_DB_URL),
        help="Database URL",
    )
    parser.add_argument("--config", type=Path, default=None, help="Stock config YAML")
    parser.add_argument("--verbose", action="store_true", help="Emit JSON logs to stderr")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create tables")
    sub.add_parser("sweep", help="Expire batches and re-evaluate every alert")
    sub.add_parser("alerts", help="List open alerts")
    valuate = sub.add_parser("valuate", help="Inventory valuation report")
    valuate.add_argument("--as-of", type=str, default=None, help="Report date YYYY-MM-DD")
    valuate.add_argument("--method", choices=["fifo", "lifo", "average"], default=None)
    sub.add_parser("reorder", help="Reorder suggestions")
    sub.add_parser("reconcile", help="Check stock against batches and movements")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if not args.verbose:
        logging.disable(logging.CRITICAL)

    from stock_config import get_active_config
    from stock_kernel.db.engine import create_database_engine, create_session_factory
    from stock_kernel.domain.clock import SystemClock
    from stock_services.inventory_service import InventoryService

    config = get_active_config(args.config)
    try:
        engine = create_database_engine(args.db_url)
    except Exception as exc:
        print(f"  ERROR: Could not connect: {exc}", file=sys.stderr)
        return 1

    inventory = InventoryService(
        create_session_factory(engine), clock=SystemClock(), config=config
    )
    try:
        return COMMANDS[args.command](inventory, engine, args)
    finally:
        engine.dispose()
        if not args.verbose:
            logging.disable(logging.NOTSET)


if __name__ == "__main__":
    sys.exit(main())
