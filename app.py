"""
Streamlit dashboard for the sales and returns reports
Main application entry point
"""

import streamlit as st
import pandas as pd
import plotly.express as px
from datetime import datetime, date, timedelta
import os
import sys
import logging

# Configure logging
logging.basicConfig(level=os.getenv('LOG_LEVEL', 'INFO'))
logger = logging.getLogger(__name__)

# Add current directory to Python path
current_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, current_dir)

# Import our custom modules
try:
    from db.database import init_database
    from db.demo_data import seed_store
    from db.document_store import ACCOUNTS, BRANCHES, WAREHOUSES, SqlDocumentStore
    from etl.fetcher import ReportFilters
    from etl.normalizer import RETURN, SALE
    from reports.aggregator import (
        DIMENSION_BRANCH, DIMENSION_CATEGORY, DIMENSION_INVOICE, DIMENSION_ITEM, DIMENSION_TYPE,
        LineItemFilters, rows_to_dataframe,
    )
    from reports.export import ExportError, export_filename, export_line_items_bytes, export_report_bytes
    from reports.lookups import NameLookup, SellerDirectory
    from reports.pipeline import REPORT_ALL, REPORT_RETURNS, REPORT_SALES, ReportRequest, SearchSession
    from reports.printing import PrintRenderError, render_print_document
    from utils.dates_numbers import validate_date_range
except ImportError as e:
    st.error(f"Error importing modules: {e}")
    st.stop()

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

DIMENSION_LABELS = {
    DIMENSION_BRANCH: 'الفرع',
    DIMENSION_CATEGORY: 'الفئة',
    DIMENSION_TYPE: 'النوع',
    DIMENSION_INVOICE: 'رقم الفاتورة',
    DIMENSION_ITEM: 'الصنف',
}

REPORT_LABELS = {
    REPORT_ALL: 'المبيعات والمرتجعات',
    REPORT_SALES: 'المبيعات فقط',
    REPORT_RETURNS: 'المرتجعات فقط',
}

KIND_FILTER_LABELS = {None: 'الكل', SALE: 'مبيعات', RETURN: 'مرتجعات'}

COLUMN_LABELS = {
    'group_key': 'المفتاح', 'name': 'الاسم', 'quantity': 'الكمية', 'gross': 'إجمالي المبيعات',
    'discount': 'الخصم', 'tax': 'الضريبة', 'cost': 'التكلفة', 'after_discount': 'بعد الخصم',
    'net': 'الصافي', 'profit': 'الربح', 'invoice_count': 'عدد الفواتير', 'line_count': 'عدد البنود',
    'best_item': 'الصنف الأكثر مبيعاً', 'best_item_quantity': 'كميته', 'kind': 'النوع',
    'date': 'التاريخ', 'branch': 'الفرع', 'warehouse': 'المخزن', 'customer_name': 'العميل',
    'customer_phone': 'الجوال', 'seller': 'البائع', 'payment_method': 'طريقة الدفع',
    'original_invoice_number': 'الفاتورة الأصلية',
}

# Page configuration
st.set_page_config(
    page_title="تقارير المبيعات والمرتجعات",
    page_icon="📊",
    layout="wide",
    initial_sidebar_state="expanded"
)


@st.cache_resource
def get_store():
    """Document store shared by every browser session"""
    init_database()
    return SqlDocumentStore(create_tables=False)


def get_search_session() -> SearchSession:
    """One search session per browser session"""
    if 'search_session' not in st.session_state:
        st.session_state.search_session = SearchSession(get_store())
    return st.session_state.search_session


def main():
    st.title("📊 تقارير المبيعات والمرتجعات")
    st.markdown("---")

    store = get_store()
    search_session = get_search_session()

    branches = store.query(BRANCHES)
    warehouses = store.query(WAREHOUSES)
    sellers = SellerDirectory.from_documents(store.query(ACCOUNTS))
    branch_names = NameLookup(branches)
    warehouse_names = NameLookup(warehouses)

    with st.sidebar:
        st.header("⚙️ خيارات التقرير")

        report = st.radio("نوع التقرير", list(REPORT_LABELS), format_func=REPORT_LABELS.get)
        dimension = st.selectbox("التجميع حسب", list(DIMENSION_LABELS), format_func=DIMENSION_LABELS.get)

        col1, col2 = st.columns(2)
        with col1:
            date_from = st.date_input("من تاريخ", value=date.today() - timedelta(days=30))
        with col2:
            date_to = st.date_input("إلى تاريخ", value=date.today())

        branch_id = st.selectbox("الفرع", [None] + [b['id'] for b in branches],
                                 format_func=lambda v: 'كل الفروع' if v is None else branch_names.name(v))
        warehouse_id = st.selectbox("المخزن", [None] + [w['id'] for w in warehouses],
                                    format_func=lambda v: 'كل المخازن' if v is None else warehouse_names.name(v))

        st.subheader("🔎 تصفية")
        invoice_number = st.text_input("رقم الفاتورة (جزء من الرقم)")
        customer_name = st.text_input("اسم العميل")
        customer_phone = st.text_input("جوال العميل")
        item_name = st.text_input("اسم الصنف")
        item_number = st.text_input("رقم الصنف")
        seller = st.selectbox("البائع", [None] + [rep.id for rep in sellers.reps],
                              format_func=lambda v: 'الكل' if v is None else sellers.display_name(v))
        payment_method = st.text_input("طريقة الدفع")
        kind = st.selectbox("نوع الحركة", list(KIND_FILTER_LABELS), format_func=KIND_FILTER_LABELS.get)

        search_btn = st.button("🔍 بحث", type="primary", use_container_width=True)

        st.markdown("---")
        st.subheader("🗄️ البيانات")
        if st.button("🧪 توليد بيانات تجريبية", use_container_width=True):
            generate_demo_data(store)

    if search_btn:
        if not validate_date_range(date_from, date_to):
            st.error("❌ تاريخ البداية بعد تاريخ النهاية")
            return

        request = ReportRequest(
            report=report,
            dimension=dimension,
            filters=ReportFilters(branch_id=branch_id, date_from=date_from, date_to=date_to,
                                  warehouse_id=warehouse_id),
            line_filters=LineItemFilters(
                invoice_number=invoice_number,
                payment_method=payment_method,
                seller=seller,
                customer_name=customer_name,
                customer_phone=customer_phone,
                item_name=item_name,
                item_number=item_number,
                kind=kind,
            ),
        )
        with st.spinner("جاري تحميل البيانات..."):
            result = search_session.search(request)
        if result is not None:
            st.session_state.report_dimension = dimension

    show_report(search_session)


def show_report(search_session: SearchSession):
    """Show the current report: totals, table, chart and downloads"""
    result = search_session.current
    if result is None:
        st.info("اختر خيارات التقرير ثم اضغط بحث")
        return

    dimension = st.session_state.get('report_dimension', DIMENSION_BRANCH)

    if result.failed:
        st.warning("⚠️ تعذر تحميل البيانات، حاول مرة أخرى")
        df = rows_to_dataframe(result.rows, dimension)
        st.dataframe(df.rename(columns=COLUMN_LABELS), use_container_width=True, hide_index=True)
        return

    totals = result.totals

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("إجمالي المبيعات", f"{totals['gross']:,.2f}")
    col2.metric("الخصم", f"{totals['discount']:,.2f}")
    col3.metric("الصافي", f"{totals['net']:,.2f}")
    col4.metric("الربح", f"{totals['profit']:,.2f}")

    if result.is_empty:
        st.warning("لا توجد بيانات مطابقة")
        return

    df = rows_to_dataframe(result.rows, dimension)
    st.dataframe(df.rename(columns=COLUMN_LABELS), use_container_width=True, hide_index=True)

    show_top_chart(df, dimension)
    show_downloads(result, dimension)


def show_top_chart(df: pd.DataFrame, dimension: str):
    """Bar chart of the ten groups with the highest net sales"""
    top = df.nlargest(10, 'net')
    fig = px.bar(
        top,
        x='name',
        y=['net', 'profit'],
        barmode='group',
        title=f"أعلى 10 حسب {DIMENSION_LABELS.get(dimension, dimension)}",
        labels={'name': DIMENSION_LABELS.get(dimension, dimension), 'value': 'القيمة', 'variable': ''}
    )
    fig.update_layout(height=420)
    st.plotly_chart(fig, use_container_width=True)


def show_downloads(result, dimension: str):
    col1, col2, col3 = st.columns(3)

    try:
        with col1:
            st.download_button(
                label="📥 تصدير التقرير (Excel)",
                data=export_report_bytes(result.rows, dimension),
                file_name=export_filename(f"{dimension}_report"),
                mime=XLSX_MIME
            )
        with col2:
            st.download_button(
                label="📥 تصدير البنود (Excel)",
                data=export_line_items_bytes(result.line_items),
                file_name=export_filename("line_items"),
                mime=XLSX_MIME
            )
    except ExportError as e:
        st.warning(f"تعذر إنشاء ملف Excel: {e}")

    try:
        html = render_print_document(result.rows, dimension, company=result.company)
        with col3:
            st.download_button(
                label="🖨️ نسخة للطباعة",
                data=html.encode('utf-8'),
                file_name=f"{dimension}_report_{datetime.now().strftime('%Y%m%d_%H%M%S')}.html",
                mime="text/html"
            )
    except PrintRenderError as e:
        st.warning(f"تعذر إنشاء نسخة الطباعة: {e}")


def generate_demo_data(store):
    """Generate demo documents into the store"""
    try:
        with st.spinner("جاري توليد البيانات التجريبية..."):
            counts = seed_store(store)
            st.success("✅ تم توليد البيانات التجريبية")
            st.info(f"📊 {counts}")
    except Exception as e:
        st.error(f"Error generating demo data: {e}")
        logger.error(f"Demo data generation error: {e}", exc_info=True)


if __name__ == "__main__":
    main()
