# tests/test_printing.py

from datetime import datetime

import pytest

from etl.normalizer import normalize_documents
from reports.aggregator import DIMENSION_CATEGORY, DIMENSION_INVOICE, aggregate
from reports.lookups import DEFAULT_COMPANY
from reports.printing import PrintRenderError, ReportPrinter, format_amount, render_print_document


@pytest.fixture
def lines(invoice_docs, return_docs, catalog):
    return normalize_documents(invoice_docs, return_docs, catalog)


def test_format_amount():
    assert format_amount(1234.5) == '1,234.50'
    assert format_amount(None) == ''
    assert format_amount('n/a') == 'n/a'


def test_print_document_contains_header_table_and_totals(lines):
    rows = aggregate(lines, DIMENSION_CATEGORY)
    html = render_print_document(rows, DIMENSION_CATEGORY, company={'arabicName': 'شركة الاختبار'},
                                 generated_at=datetime(2024, 3, 1, 12, 0))

    assert 'شركة الاختبار' in html
    assert DEFAULT_COMPANY['englishName'] in html
    assert 'تقرير المبيعات حسب الفئة' in html
    assert 'الصنف الأكثر مبيعاً' in html
    assert 'المدير العام' in html
    assert '2024-03-01 12:00' in html
    for row in rows:
        assert row.name in html


def test_print_document_escapes_values(lines):
    rows = aggregate(lines, DIMENSION_INVOICE)
    rows[0].customer_name = '<script>alert(1)</script>'
    html = render_print_document(rows, DIMENSION_INVOICE)
    assert '<script>alert(1)</script>' not in html
    assert '&lt;script&gt;' in html


def test_empty_report_renders_placeholder():
    html = render_print_document([], DIMENSION_CATEGORY)
    assert 'لا توجد بيانات' in html


def test_unknown_dimension_raises():
    with pytest.raises(PrintRenderError):
        render_print_document([], 'unknown')


def test_missing_template_raises(tmp_path):
    with pytest.raises(PrintRenderError):
        ReportPrinter(template_dir=tmp_path).render([], DIMENSION_CATEGORY)
