from __future__ import annotations

import csv
import logging
import math
import time
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.table import Table, TableStyleInfo

from shoptrack.config import Settings
from shoptrack.domain.errors import ValidationError
from shoptrack.domain.models import ImportedProduct
from shoptrack.services.reporting_service import ReportData

log = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {".xlsx", ".xlsm", ".csv"}

# Fields are resolved in this order. Each field tries its keywords in order
# and claims the first still-unclaimed header containing one; a header feeds
# at most one field and headers nobody claims are ignored.
COLUMN_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("cost_price", ("cost", "purchase")),
    ("min_stock", ("min", "threshold", "reorder")),
    ("name", ("name", "product")),
    ("sku", ("sku", "code", "id")),
    ("category", ("category", "type")),
    ("quantity", ("quantity", "stock", "qty")),
    ("price", ("price", "sell")),
)

DEFAULT_CATEGORY = "Uncategorized"


@dataclass(frozen=True)
class ImportResult:
    rows: list[ImportedProduct] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def resolve_columns(headers: Iterable[Any]) -> dict[str, int]:
    normalized = [str(h).strip().lower() if h is not None else "" for h in headers]
    claimed: set[int] = set()
    mapping: dict[str, int] = {}
    for field_name, keywords in COLUMN_RULES:
        for kw in keywords:
            idx = next(
                (i for i, h in enumerate(normalized) if h and i not in claimed and kw in h),
                None,
            )
            if idx is not None:
                mapping[field_name] = idx
                claimed.add(idx)
                break
    return mapping


def _cell(row: tuple, idx: Optional[int]) -> Any:
    if idx is None or idx >= len(row):
        return None
    return row[idx]


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_int(value: Any, default: int) -> int:
    if _blank(value):
        return default
    try:
        return int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return default


def _as_float(value: Any, default: float) -> float:
    if _blank(value):
        return default
    try:
        amount = float(str(value).strip())
    except ValueError:
        return default
    return amount if math.isfinite(amount) else default


class ExcelService:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()

    # ---------- import ----------
    def read_rows(self, path: str | Path) -> list[tuple]:
        p = Path(path)
        suffix = p.suffix.lower()
        if suffix not in SUPPORTED_SUFFIXES:
            raise ValidationError("Please upload an Excel (.xlsx) or CSV file")
        if not p.is_file():
            raise ValidationError(f"File not found: {p}")

        if suffix == ".csv":
            try:
                with p.open(newline="", encoding="utf-8-sig") as fh:
                    return [tuple(r) for r in csv.reader(fh)]
            except (UnicodeDecodeError, csv.Error) as e:
                raise ValidationError(f"Could not read CSV file: {e}") from e

        try:
            wb = load_workbook(p, read_only=True, data_only=True)
        except (zipfile.BadZipFile, InvalidFileException, KeyError) as e:
            raise ValidationError(f"Could not read Excel file: {e}") from e
        try:
            ws = wb.worksheets[0]
            return [tuple(r) for r in ws.iter_rows(values_only=True)]
        finally:
            wb.close()

    def parse_products_file(self, path: str | Path) -> ImportResult:
        """
        Map the first sheet (or CSV) onto ImportedProduct records.
        Row 1 holds headers; see COLUMN_RULES for how they are matched.
        """
        rows = self.read_rows(path)
        if len(rows) < 2:
            raise ValidationError("File is empty or has no data rows")
        return self.parse_rows(rows)

    def parse_rows(self, rows: list[tuple]) -> ImportResult:
        columns = resolve_columns(rows[0])
        default_min = int(self.settings.default_low_stock_threshold)
        stamp = int(time.time() * 1000)

        products: list[ImportedProduct] = []
        errors: list[str] = []
        for line_no, row in enumerate(rows[1:], start=2):
            if not row or all(_blank(v) for v in row):
                continue

            name_value = _cell(row, columns.get("name"))
            name = "" if _blank(name_value) else str(name_value).strip()
            if not name:
                errors.append(f"Row {line_no}: Missing product name")
                continue

            sku_value = _cell(row, columns.get("sku"))
            sku = f"SKU-{stamp}-{line_no - 1}" if _blank(sku_value) else str(sku_value).strip()
            category_value = _cell(row, columns.get("category"))
            category = DEFAULT_CATEGORY if _blank(category_value) else str(category_value).strip()

            quantity = _as_int(_cell(row, columns.get("quantity")), 0)
            min_stock = _as_int(_cell(row, columns.get("min_stock")), default_min)
            price = _as_float(_cell(row, columns.get("price")), 0.0)
            cost_price = _as_float(_cell(row, columns.get("cost_price")), 0.0)

            if min(quantity, min_stock) < 0 or min(price, cost_price) < 0:
                errors.append(f"Row {line_no}: Negative values are not allowed")
                continue

            products.append(
                ImportedProduct(
                    name=name,
                    sku=sku,
                    category=category,
                    quantity=quantity,
                    min_stock=min_stock,
                    price=price,
                    cost_price=cost_price,
                )
            )

        if errors:
            log.warning("Product file parsed with %s rejected row(s)", len(errors))
        return ImportResult(rows=products, errors=errors)

    # ---------- export ----------
    def default_report_name(self, report: ReportData) -> str:
        return f"{report.business_name}_Report_{report.generated_at.date().isoformat()}.xlsx"

    def export_report_excel(self, report: ReportData, path: str | Path | None = None) -> Path:
        target = Path(path) if path else Path(self.default_report_name(report))
        wb = Workbook()

        def money(cell):
            cell.number_format = "#,##0.00"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, end_col: int):
            if ws.max_row < 2:
                return
            ref = f"A1:{get_column_letter(end_col)}{ws.max_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = f"Shop Report - {report.business_name}"
        ws["A1"].font = Font(bold=True, size=14)
        ws["A2"] = f"Generated on: {report.generated_at.strftime('%b %d, %Y %H:%M')}"
        ws["A4"] = "Key Metrics"
        ws["A4"].font = Font(bold=True)

        metrics = [
            ("Inventory Value", report.inventory_value),
            ("Total Sales", report.total_sales),
            ("Potential Profit", report.profit.potential_profit),
        ]
        for i, (label, val) in enumerate(metrics):
            r = 5 + i
            ws[f"A{r}"] = label
            ws[f"B{r}"] = float(val)
            money(ws[f"B{r}"])
        ws["A8"] = "Profit Margin"
        ws["B8"] = f"{report.profit.margin_pct}%"
        ws["A9"] = "Currency"
        ws["B9"] = self.settings.currency
        set_widths(ws, {"A": 24, "B": 24})

        # -------- 2) Products --------
        ws2 = wb.create_sheet("Products")
        ws2.append(["Name", "SKU", "Category", "Quantity", "Min Stock", "Cost Price", "Selling Price", "Stock Value"])
        bold_row(ws2, 1)
        for r, p in enumerate(report.products, start=2):
            ws2.append([p.name, p.sku, p.category, p.quantity, p.min_stock, p.cost_price, p.price,
                        p.quantity * p.cost_price])
            for col in ("F", "G", "H"):
                money(ws2[f"{col}{r}"])
        ws2.freeze_panes = "A2"
        set_widths(ws2, {"A": 34, "B": 16, "C": 18, "D": 10, "E": 10, "F": 14, "G": 14, "H": 14})
        add_table(ws2, "ProductsTable", 8)

        # -------- 3) Sales --------
        ws3 = wb.create_sheet("Sales")
        ws3.append(["Date", "Product", "Quantity", "Unit Price", "Total Amount"])
        bold_row(ws3, 1)
        for r, s in enumerate(report.sales, start=2):
            ws3.append([s.date.strftime("%Y-%m-%d %H:%M"), s.product_name, s.quantity, s.unit_price, s.total_amount])
            money(ws3[f"D{r}"])
            money(ws3[f"E{r}"])
        ws3.freeze_panes = "A2"
        set_widths(ws3, {"A": 20, "B": 34, "C": 10, "D": 14, "E": 16})
        add_table(ws3, "SalesTable", 5)

        # -------- 4) Categories --------
        ws4 = wb.create_sheet("Categories")
        ws4.append(["Category", "Product Count", "Total Value"])
        bold_row(ws4, 1)
        for r, c in enumerate(report.categories, start=2):
            ws4.append([c.name, c.count, c.value])
            money(ws4[f"C{r}"])
        set_widths(ws4, {"A": 24, "B": 14, "C": 16})

        # -------- 5) Top Products --------
        ws5 = wb.create_sheet("Top Products")
        ws5.append(["Product", "Units Sold", "Revenue"])
        bold_row(ws5, 1)
        for r, t in enumerate(report.top_products, start=2):
            ws5.append([t.name, t.quantity, t.revenue])
            money(ws5[f"C{r}"])
        set_widths(ws5, {"A": 34, "B": 12, "C": 16})

        wb.save(target)
        log.info("report_exported path=%s products=%s sales=%s", target, len(report.products), len(report.sales))
        return target
