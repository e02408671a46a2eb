from __future__ import annotations

import argparse
import getpass
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from shoptrack import __version__
from shoptrack.application.container import AppContainer, build_container
from shoptrack.config import get_app_paths, load_settings
from shoptrack.currency import format_currency
from shoptrack.domain.errors import AppError
from shoptrack.logging_config import setup_logging
from shoptrack.services.auth_service import TenantSession

log = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shoptrack", description="Small-business inventory and sales tracker")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--db", type=Path, default=None, help="SQLite database path")
    parser.add_argument("--email", required=True, help="Tenant account email")
    parser.add_argument("--password", default=None, help="Tenant password (prompted when omitted)")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("summary", help="Print inventory and sales figures")

    imp = sub.add_parser("import-products", help="Import products from an .xlsx or .csv file")
    imp.add_argument("path", type=Path)

    exp = sub.add_parser("export-report", help="Write the Excel report")
    exp.add_argument("--out", type=Path, default=None)

    sell = sub.add_parser("sell", help="Record a sale")
    sell.add_argument("product_id", type=int)
    sell.add_argument("quantity", type=int)
    return parser


def _cmd_summary(app: AppContainer, session: TenantSession) -> int:
    currency = app.settings.currency
    with app.inventory_sync(session) as sync:
        summary = app.reporting.dashboard_summary(sync.products, sync.sales)
        print(f"Products:         {summary.product_count}")
        print(f"Low stock:        {summary.low_stock_count}")
        print(f"Out of stock:     {summary.out_of_stock_count}")
        print(f"Inventory value:  {format_currency(summary.inventory_value, currency)}")
        print(f"Total sales:      {format_currency(summary.total_sales, currency)}")
        print(f"This month:       {format_currency(summary.sales_stats.monthly_revenue, currency)}")
        print(f"Avg order value:  {format_currency(summary.sales_stats.average_order_value, currency)}")
        for p in sync.get_low_stock_products():
            print(f"  LOW  {p.sku:<16} {p.name} ({p.quantity}/{p.min_stock})")
        for p in sync.get_out_of_stock_products():
            print(f"  OUT  {p.sku:<16} {p.name}")
    return 0


def _cmd_import(app: AppContainer, session: TenantSession, path: Path) -> int:
    result = app.excel.parse_products_file(path)
    for err in result.errors:
        print(err, file=sys.stderr)
    with app.inventory_sync(session) as sync:
        ok, failed = sync.import_products(result.rows)
    print(f"Imported {ok} products, {failed} failed, {len(result.errors)} rows rejected")
    return 0 if failed == 0 else 1


def _cmd_export(app: AppContainer, session: TenantSession, out: Optional[Path]) -> int:
    with app.inventory_sync(session) as sync:
        business = session.tenant.business_name or "Shop"
        report = app.reporting.build_report(sync.products, sync.sales, business)
    target = app.excel.export_report_excel(report, out)
    print(f"Report written to {target}")
    return 0


def _cmd_sell(app: AppContainer, session: TenantSession, product_id: int, quantity: int) -> int:
    with app.inventory_sync(session) as sync:
        sale = sync.sell_product(product_id, quantity)
        notice = sync.notifier.latest()
    if sale is None:
        reason = notice.message if notice else "product not found or not enough stock"
        print(f"Sale rejected: {reason}", file=sys.stderr)
        return 1
    print(f"Sale #{sale.id}: {sale.quantity} x {sale.product_name} = "
          f"{format_currency(sale.total_amount, app.settings.currency)}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = load_settings()
    if args.db is not None:
        settings = replace(settings, db_path=args.db)
    paths = get_app_paths(settings=settings)
    setup_logging(paths.logs_dir, level=settings.log_level)

    app = build_container(paths.db_path, settings)
    password = args.password if args.password is not None else getpass.getpass("Password: ")
    try:
        session = app.auth.sign_in(args.email, password)
        if args.command == "summary":
            return _cmd_summary(app, session)
        if args.command == "import-products":
            return _cmd_import(app, session, args.path)
        if args.command == "export-report":
            return _cmd_export(app, session, args.out)
        return _cmd_sell(app, session, args.product_id, args.quantity)
    except AppError as e:
        log.warning("cli_command_failed command=%s error=%s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
