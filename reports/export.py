"""
Spreadsheet export of report rows and line items
"""

import logging
import os
from datetime import datetime
from io import BytesIO
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from etl.normalizer import LineItem, RETURN
from reports.aggregator import (
    DIMENSION_BRANCH, DIMENSION_CATEGORY, DIMENSION_INVOICE, DIMENSION_ITEM, DIMENSION_TYPE, ReportRow,
)

logger = logging.getLogger(__name__)

EXPORT_DIR = os.getenv('REPORTS_EXPORT_DIR', 'exports')

HEADER_FILL = PatternFill(start_color='1F4E78', end_color='1F4E78', fill_type='solid')
HEADER_FONT = Font(bold=True, color='FFFFFF')
STRIPE_FILL = PatternFill(start_color='F2F2F2', end_color='F2F2F2', fill_type='solid')
_THIN = Side(style='thin', color='BFBFBF')
THIN_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)

# (attribute, header) per report dimension
REPORT_COLUMNS: Dict[str, List[Tuple[str, str]]] = {
    DIMENSION_BRANCH: [
        ('name', 'الفرع'),
        ('gross', 'إجمالي المبيعات'),
        ('discount', 'الخصم'),
        ('tax', 'الضريبة'),
        ('net', 'الصافي'),
        ('cost', 'التكلفة'),
        ('profit', 'الربح'),
        ('invoice_count', 'عدد الفواتير'),
    ],
    DIMENSION_CATEGORY: [
        ('name', 'الفئة'),
        ('quantity', 'الكمية'),
        ('gross', 'إجمالي المبيعات'),
        ('discount', 'الخصم'),
        ('tax', 'الضريبة'),
        ('net', 'الصافي'),
        ('cost', 'التكلفة'),
        ('profit', 'الربح'),
        ('best_item', 'الصنف الأكثر مبيعاً'),
        ('best_item_quantity', 'كمية الصنف الأكثر مبيعاً'),
    ],
    DIMENSION_TYPE: [
        ('name', 'النوع'),
        ('quantity', 'الكمية'),
        ('gross', 'إجمالي المبيعات'),
        ('discount', 'الخصم'),
        ('tax', 'الضريبة'),
        ('net', 'الصافي'),
        ('cost', 'التكلفة'),
        ('profit', 'الربح'),
        ('best_item', 'الصنف الأكثر مبيعاً'),
        ('best_item_quantity', 'كمية الصنف الأكثر مبيعاً'),
    ],
    DIMENSION_INVOICE: [
        ('name', 'رقم الفاتورة/المرتجع'),
        ('kind', 'النوع'),
        ('date', 'التاريخ'),
        ('branch', 'الفرع'),
        ('warehouse', 'المخزن'),
        ('customer_name', 'العميل'),
        ('customer_phone', 'جوال العميل'),
        ('seller', 'البائع'),
        ('payment_method', 'طريقة الدفع'),
        ('gross', 'الإجمالي'),
        ('discount', 'الخصم'),
        ('tax', 'الضريبة'),
        ('net', 'الصافي'),
        ('cost', 'التكلفة'),
        ('profit', 'الربح'),
    ],
    DIMENSION_ITEM: [
        ('group_key', 'رقم الصنف'),
        ('name', 'اسم الصنف'),
        ('quantity', 'الكمية'),
        ('gross', 'إجمالي المبيعات'),
        ('discount', 'الخصم'),
        ('tax', 'الضريبة'),
        ('net', 'الصافي'),
        ('cost', 'التكلفة'),
        ('profit', 'الربح'),
    ],
}

LINE_ITEM_COLUMNS: List[Tuple[str, str]] = [
    ('invoice_number', 'رقم الفاتورة/المرتجع'),
    ('kind', 'النوع'),
    ('date', 'التاريخ'),
    ('branch', 'الفرع'),
    ('warehouse', 'المخزن'),
    ('item_number', 'رقم الصنف'),
    ('item_name', 'اسم الصنف'),
    ('category', 'الفئة'),
    ('unit', 'الوحدة'),
    ('quantity', 'الكمية'),
    ('price', 'السعر'),
    ('gross', 'الإجمالي'),
    ('discount', 'الخصم'),
    ('tax', 'الضريبة'),
    ('net', 'الصافي'),
    ('cost', 'التكلفة'),
    ('profit', 'الربح'),
    ('customer_name', 'العميل'),
    ('customer_phone', 'جوال العميل'),
    ('seller', 'البائع'),
]

KIND_LABELS = {'sale': 'مبيعات', RETURN: 'مرتجع'}

SHEET_NAME = 'التقرير'


class ExportError(Exception):
    """Raised when a workbook cannot be written"""


def export_filename(prefix: str, now: Optional[datetime] = None) -> str:
    """<prefix>_YYYYMMDD_HHMMSS.xlsx"""
    now = now or datetime.now()
    return f"{prefix}_{now.strftime('%Y%m%d_%H%M%S')}.xlsx"


def report_dataframe(rows: Sequence[ReportRow], dimension: str) -> pd.DataFrame:
    """Report rows as a frame with the dimension's fixed Arabic columns"""
    columns = REPORT_COLUMNS.get(dimension)
    if columns is None:
        raise ValueError(f"Unknown report dimension: {dimension}")

    records = []
    for row in rows:
        record = {}
        for attribute, header in columns:
            value = getattr(row, attribute)
            if attribute == 'kind':
                value = KIND_LABELS.get(value, value)
            record[header] = value
        records.append(record)
    return pd.DataFrame(records, columns=[header for _, header in columns])


def line_items_dataframe(line_items: Sequence[LineItem]) -> pd.DataFrame:
    records = []
    for line in line_items:
        record = {header: getattr(line, attribute) for attribute, header in LINE_ITEM_COLUMNS}
        record['النوع'] = KIND_LABELS.get(line.kind, line.kind)
        records.append(record)
    return pd.DataFrame(records, columns=[header for _, header in LINE_ITEM_COLUMNS])


def style_worksheet(worksheet, row_count: int, column_count: int) -> None:
    """Header styling, frozen header row, autofilter and striped rows"""
    worksheet.sheet_view.rightToLeft = True
    worksheet.freeze_panes = 'A2'
    if column_count:
        last_column = get_column_letter(column_count)
        worksheet.auto_filter.ref = f"A1:{last_column}{row_count + 1}"

    for cell in worksheet[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal='center', vertical='center')
        cell.border = THIN_BORDER

    for row_index, row in enumerate(worksheet.iter_rows(min_row=2, max_row=row_count + 1), start=2):
        for cell in row:
            cell.border = THIN_BORDER
            if isinstance(cell.value, float):
                cell.number_format = '#,##0.00'
            if row_index % 2 == 0:
                cell.fill = STRIPE_FILL

    for column_index in range(1, column_count + 1):
        letter = get_column_letter(column_index)
        width = max((len(str(cell.value)) for cell in worksheet[letter] if cell.value is not None), default=8)
        worksheet.column_dimensions[letter].width = min(max(width + 4, 12), 50)


def write_workbook(df: pd.DataFrame, target: Union[str, BytesIO], sheet_name: str = SHEET_NAME) -> None:
    try:
        with pd.ExcelWriter(target, engine='openpyxl') as writer:
            df.to_excel(writer, sheet_name=sheet_name, index=False)
            style_worksheet(writer.sheets[sheet_name], len(df), len(df.columns))
    except (OSError, ValueError) as e:
        logger.error(f"Error writing workbook: {e}")
        raise ExportError(str(e)) from e


def export_report_bytes(rows: Sequence[ReportRow], dimension: str) -> bytes:
    """Workbook of report rows, in memory"""
    output = BytesIO()
    write_workbook(report_dataframe(rows, dimension), output)
    return output.getvalue()


def export_line_items_bytes(line_items: Sequence[LineItem]) -> bytes:
    output = BytesIO()
    write_workbook(line_items_dataframe(line_items), output)
    return output.getvalue()


def export_report(rows: Sequence[ReportRow], dimension: str, prefix: Optional[str] = None,
                  output_dir: str = EXPORT_DIR) -> str:
    """
    Write report rows to a timestamped workbook

    Args:
        rows: Aggregated report rows
        dimension: Report dimension, selects the columns
        prefix: File name prefix, defaults to <dimension>_report
        output_dir: Target directory, created when missing

    Returns:
        Path of the written file
    """
    try:
        os.makedirs(output_dir, exist_ok=True)
    except OSError as e:
        raise ExportError(f"Cannot create export directory {output_dir}: {e}") from e

    output_file = os.path.join(output_dir, export_filename(prefix or f"{dimension}_report"))
    write_workbook(report_dataframe(rows, dimension), output_file)
    logger.info(f"Report exported to: {output_file} ({len(rows)} rows)")
    return output_file
