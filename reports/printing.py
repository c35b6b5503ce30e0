"""
Print-ready HTML for report rows, rendered with Jinja2
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from reports.aggregator import (
    DIMENSION_BRANCH, DIMENSION_CATEGORY, DIMENSION_INVOICE, DIMENSION_ITEM, DIMENSION_TYPE, ReportRow, summarize,
)
from reports.export import KIND_LABELS, REPORT_COLUMNS
from reports.lookups import DEFAULT_COMPANY

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / 'templates'
PRINT_TEMPLATE = 'print_report.html'

REPORT_TITLES = {
    DIMENSION_BRANCH: 'تقرير المبيعات حسب الفرع',
    DIMENSION_CATEGORY: 'تقرير المبيعات حسب الفئة',
    DIMENSION_TYPE: 'تقرير المبيعات حسب النوع',
    DIMENSION_INVOICE: 'تقرير الفواتير والمرتجعات',
    DIMENSION_ITEM: 'تقرير الأصناف المباعة',
}

TEXT_COLUMNS = {'name', 'group_key', 'kind', 'date', 'branch', 'warehouse', 'customer_name',
                'customer_phone', 'seller', 'payment_method', 'best_item'}


class PrintRenderError(Exception):
    """Raised when the print document cannot be rendered"""


def format_amount(value: Any) -> str:
    """Two decimals with thousands separators"""
    try:
        return f"{float(value):,.2f}"
    except (TypeError, ValueError):
        return str(value or '')


class ReportPrinter:
    """Renders report rows into a standalone printable HTML document"""

    def __init__(self, template_dir: Path = TEMPLATE_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(['html', 'xml']),
            trim_blocks=True,
            lstrip_blocks=True
        )
        self.env.filters['amount'] = format_amount

    def render(self, rows: Sequence[ReportRow], dimension: str,
               company: Optional[Dict[str, Any]] = None,
               filters_summary: Optional[Dict[str, str]] = None,
               generated_at: Optional[datetime] = None) -> str:
        """
        Render the print document

        Args:
            rows: Aggregated report rows
            dimension: Report dimension, selects title and columns
            company: Company profile; defaults fill missing fields
            filters_summary: Label -> value pairs shown under the title
            generated_at: Print timestamp, defaults to now

        Returns:
            The HTML document
        """
        columns = REPORT_COLUMNS.get(dimension)
        if columns is None:
            raise PrintRenderError(f"Unknown report dimension: {dimension}")

        table = []
        for row in rows:
            cells = []
            for attribute, _ in columns:
                value = getattr(row, attribute)
                if attribute == 'kind':
                    value = KIND_LABELS.get(value, value)
                cells.append({'value': value, 'numeric': attribute not in TEXT_COLUMNS})
            table.append(cells)

        context = {
            'company': {**DEFAULT_COMPANY, **(company or {})},
            'title': REPORT_TITLES.get(dimension, 'تقرير المبيعات'),
            'headers': [header for _, header in columns],
            'rows': table,
            'totals': summarize(rows),
            'filters': filters_summary or {},
            'generated_at': (generated_at or datetime.now()).strftime('%Y-%m-%d %H:%M'),
        }

        try:
            template = self.env.get_template(PRINT_TEMPLATE)
            return template.render(**context)
        except TemplateError as e:
            logger.error(f"Error rendering print document: {e}")
            raise PrintRenderError(str(e)) from e


def render_print_document(rows: Sequence[ReportRow], dimension: str,
                          company: Optional[Dict[str, Any]] = None, **kwargs) -> str:
    return ReportPrinter().render(rows, dimension, company=company, **kwargs)
