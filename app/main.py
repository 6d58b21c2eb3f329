"""
Streamlit Frontend for fintrack

This is the user interface for tracking personal income and expenses.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Every view is derived from the latest snapshot
3. Clear error messages in simple language
4. Visual feedback for all operations
5. No hidden actions

The UI owns only selection state (current page, filters, period);
all records live in the backend and reach the UI through a
FeedSession.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional

import streamlit as st
from pydantic import ValidationError

from fintrack.config import get_settings, validate_all_settings
from fintrack.models import (
    ALL,
    FilterSelection,
    Operation,
    OperationType,
    Period,
    SortDirection,
    SortField,
    TypeFilter,
)
from fintrack.orchestrator import (
    AuthFlow,
    CategoryFlow,
    FeedSession,
    OperationFlow,
    OperationRejectedError,
    create_app_components,
)
from fintrack.services.auth import AuthError
from fintrack.services.storage import StorageError
from fintrack.validation import OperationValidator


# Page configuration
st.set_page_config(
    page_title="fintrack",
    page_icon="💶",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .income {
        color: #28a745;
        font-weight: bold;
    }
    .expense {
        color: #dc3545;
        font-weight: bold;
    }
    .info-box {
        padding: 20px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
    }
</style>
""", unsafe_allow_html=True)


PAGES = ["📊 Overview", "📋 History", "➕ Add Operation", "⚙️ Settings"]

PERIOD_LABELS = {
    Period.DAILY: "Today",
    Period.WEEKLY: "This week",
    Period.MONTHLY: "This month",
    Period.ANNUAL: "This year",
}

SORT_LABELS = {
    SortField.TIMESTAMP: "Date",
    SortField.DESCRIPTION: "Description",
    SortField.CATEGORY_ID: "Category",
    SortField.AMOUNT: "Amount",
}

CHARTS = ["Balance", "Trend", "Categories", "Monthly balance"]


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def format_amount(amount: Decimal) -> str:
    symbol = get_settings().app.currency_symbol
    return f"{amount:,.2f} {symbol}"


def form_error_message(error: ValidationError) -> str:
    """First validation message of a form, without pydantic's prefix."""
    message = error.errors()[0]["msg"]
    return message.removeprefix("Value error, ")


def get_feed_session(record_store) -> FeedSession:
    """The signed-in user's live feed, opened once per browser session."""
    auth_session = st.session_state.auth_session
    feed = st.session_state.get("feed_session")
    if feed is None or feed.user_id != auth_session.user_id:
        if feed is not None:
            feed.close()
        feed = FeedSession(record_store, auth_session.user_id).open()
        st.session_state.feed_session = feed
    return feed


def main():
    """Main application entry point."""
    operation_flow, category_flow, auth_flow, record_store = get_components()

    if "auth_session" not in st.session_state:
        st.session_state.auth_session = None

    if st.session_state.auth_session is None:
        render_auth_page(auth_flow)
        return

    feed = get_feed_session(record_store)

    # Sidebar navigation
    st.sidebar.title("💶 fintrack")
    st.sidebar.caption(st.session_state.auth_session.email)
    st.sidebar.markdown("---")

    if "page" not in st.session_state:
        st.session_state.page = PAGES[0]
    page = st.sidebar.radio("Navigate to:", PAGES, key="page")

    st.sidebar.markdown("---")
    if st.sidebar.button("🔄 Refresh"):
        st.rerun()
    if st.sidebar.button("🚪 Sign out"):
        run_async(auth_flow.sign_out(st.session_state.auth_session))
        feed.close()
        for key in ("auth_session", "feed_session", "filters", "editing_operation_id"):
            st.session_state.pop(key, None)
        st.rerun()

    if page == PAGES[0]:
        render_overview_page(feed)
    elif page == PAGES[1]:
        render_history_page(feed, operation_flow)
    elif page == PAGES[2]:
        render_operation_page(feed, operation_flow, category_flow)
    elif page == PAGES[3]:
        render_settings_page(feed, category_flow)


# =============================================================================
# AUTHENTICATION
# =============================================================================

def render_auth_page(auth_flow: AuthFlow):
    """Render sign in, sign up and password reset."""
    st.title("💶 fintrack")

    if not auth_flow.is_configured:
        st.markdown("""
        <div class="info-box">
            <h4>Firebase is not configured</h4>
            <p>Data is kept in memory for this run only.</p>
        </div>
        """, unsafe_allow_html=True)
        if st.button("Continue offline", type="primary"):
            st.session_state.auth_session = auth_flow.offline_session()
            st.rerun()
        return

    mode = st.radio(
        "Account",
        ["Sign in", "Sign up", "Forgot password"],
        horizontal=True,
        label_visibility="collapsed",
    )

    if mode == "Sign in":
        with st.form("sign_in"):
            email = st.text_input("Email", placeholder="you@example.com")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Sign in", type="primary")
        if submitted:
            try:
                st.session_state.auth_session = run_async(auth_flow.sign_in(email, password))
                st.rerun()
            except ValidationError as e:
                st.error(form_error_message(e))
            except AuthError as e:
                st.error(e.message)

    elif mode == "Sign up":
        with st.form("sign_up"):
            email = st.text_input("Email", placeholder="you@example.com")
            password = st.text_input(
                "Password",
                type="password",
                help="At least 6 characters, with an uppercase letter, a lowercase letter and a digit",
            )
            confirm_password = st.text_input("Confirm password", type="password")
            submitted = st.form_submit_button("Create account", type="primary")
        if submitted:
            try:
                st.session_state.auth_session = run_async(
                    auth_flow.sign_up(email, password, confirm_password)
                )
                st.rerun()
            except ValidationError as e:
                st.error(form_error_message(e))
            except AuthError as e:
                st.error(e.message)

    else:
        st.markdown("Enter your email to receive a reset link.")
        with st.form("forgot_password"):
            email = st.text_input("Email", placeholder="you@example.com")
            submitted = st.form_submit_button("Send reset link", type="primary")
        if submitted:
            try:
                run_async(auth_flow.send_password_reset(email))
                st.success("A password reset email has been sent to your address")
            except ValidationError as e:
                st.error(form_error_message(e))
            except AuthError as e:
                st.error(e.message)


# =============================================================================
# OVERVIEW
# =============================================================================

def render_overview_page(feed: FeedSession):
    """Render period totals, charts and the most recent operations."""
    st.title("📊 Overview")
    settings = get_settings().app

    period = st.radio(
        "Period",
        list(Period),
        index=list(Period).index(Period.MONTHLY),
        format_func=PERIOD_LABELS.get,
        horizontal=True,
    )

    summary = feed.projector().summary(
        period,
        trend_days=settings.trend_days,
        balance_months=settings.balance_months,
        recent_limit=settings.recent_operations_limit,
    )
    totals = summary.totals

    col1, col2, col3 = st.columns(3)
    col1.metric("Income", format_amount(totals.income))
    col2.metric("Expenses", format_amount(totals.expense))
    col3.metric("Balance", format_amount(totals.balance))

    st.markdown("---")
    chart = st.radio("Chart", CHARTS, horizontal=True)

    if chart == "Balance":
        st.line_chart(
            {
                "Day": [bucket.day for bucket in summary.trend],
                "Balance": [float(bucket.balance) for bucket in summary.trend],
            },
            x="Day",
            y="Balance",
        )
    elif chart == "Trend":
        st.area_chart(
            {
                "Day": [bucket.day for bucket in summary.trend],
                "Income": [float(bucket.income) for bucket in summary.trend],
                "Expenses": [float(bucket.expense) for bucket in summary.trend],
            },
            x="Day",
            y=["Income", "Expenses"],
        )
    elif chart == "Categories":
        if not summary.category_breakdown:
            st.info(f"No operations {PERIOD_LABELS[period].lower()}.")
        else:
            rows = [
                {"Category": label, "Total": float(category.total)}
                for label, category in summary.category_breakdown.items()
            ]
            st.vega_lite_chart(
                {
                    "data": {"values": rows},
                    "mark": {"type": "arc", "innerRadius": 50},
                    "encoding": {
                        "theta": {"field": "Total", "type": "quantitative"},
                        "color": {"field": "Category", "type": "nominal"},
                    },
                },
                use_container_width=True,
            )
    else:
        st.bar_chart(
            {
                "Month": [bucket.month.strftime("%Y-%m") for bucket in summary.monthly_balance],
                "Balance": [float(bucket.balance) for bucket in summary.monthly_balance],
            },
            x="Month",
            y="Balance",
        )

    st.markdown("---")
    st.subheader("Recent operations")
    if not summary.recent_operations:
        st.info("No operations yet. Use 'Add Operation' to record your first one.")
    names = feed.projector().category_names()
    for operation in summary.recent_operations:
        render_operation_row(operation, names.get(operation.category_id) or settings.uncategorized_label)


def render_operation_row(operation: Operation, category_label: str):
    col1, col2, col3, col4 = st.columns([2, 4, 3, 2])
    col1.write(operation.timestamp.strftime("%d/%m/%Y"))
    col2.write(operation.description)
    col3.write(category_label)
    css = "income" if operation.is_income else "expense"
    sign = "+" if operation.is_income else "-"
    col4.markdown(
        f'<span class="{css}">{sign}{format_amount(operation.amount)}</span>',
        unsafe_allow_html=True,
    )


# =============================================================================
# HISTORY
# =============================================================================

def start_editing(operation_id: str):
    st.session_state.editing_operation_id = operation_id
    st.session_state.page = PAGES[2]


def render_history_page(feed: FeedSession, operation_flow: OperationFlow):
    """Render the filterable, sortable, paginated operation list."""
    st.title("📋 History")
    settings = get_settings().app
    engine = feed.query_engine()

    if "filters" not in st.session_state:
        st.session_state.filters = FilterSelection(page_size=settings.page_size)
    filters: FilterSelection = st.session_state.filters

    col1, col2, col3 = st.columns(3)
    with col1:
        type_filter = st.selectbox(
            "Type",
            list(TypeFilter),
            index=list(TypeFilter).index(filters.type_filter),
            format_func=lambda t: t.value.title(),
        )
    with col2:
        search_term = st.text_input(
            "Search",
            value=filters.search_term,
            placeholder="Description or category",
        )
    with col3:
        category_options = [ALL] + feed.available_category_ids()
        category_filter = st.selectbox(
            "Category",
            category_options,
            index=category_options.index(filters.category_filter)
            if filters.category_filter in category_options else 0,
            format_func=lambda c: "All categories" if c == ALL else engine.category_label(c),
        )

    col1, col2, col3 = st.columns([2, 2, 1])
    with col1:
        date_from = st.date_input("From", value=filters.date_from, format="DD/MM/YYYY")
    with col2:
        date_to = st.date_input("To", value=filters.date_to, format="DD/MM/YYYY")
    with col3:
        st.write("")
        if st.button("Reset filters"):
            filters.reset()
            st.rerun()

    selected = {
        "type_filter": type_filter,
        "search_term": search_term.strip(),
        "category_filter": category_filter,
        "date_from": date_from,
        "date_to": date_to,
    }
    if any(getattr(filters, name) != value for name, value in selected.items()):
        for name, value in selected.items():
            setattr(filters, name, value)
        filters.page = 1

    # Sort controls
    sort_columns = st.columns(len(SORT_LABELS))
    for column, (field, label) in zip(sort_columns, SORT_LABELS.items()):
        arrow = ""
        if filters.sort_field == field:
            arrow = " ↓" if filters.sort_direction == SortDirection.DESC else " ↑"
        if column.button(f"{label}{arrow}", key=f"sort_{field.value}"):
            filters.toggle_sort(field)
            st.rerun()

    page = feed.query(filters.to_query())
    filters.page = page.page

    st.caption(f"{page.matched_count} operation(s)")
    if not page.items:
        st.info("No operations match these filters.")

    for operation in page.items:
        col_row, col_edit, col_delete = st.columns([11, 1, 1])
        with col_row:
            render_operation_row(operation, engine.category_label(operation.category_id))
        col_edit.button(
            "✏️",
            key=f"edit_{operation.id}",
            on_click=start_editing,
            args=(operation.id,),
        )
        if col_delete.button("🗑️", key=f"delete_{operation.id}"):
            try:
                run_async(operation_flow.delete_operation(feed.user_id, operation.id))
                st.rerun()
            except StorageError as e:
                st.error(f"Could not delete the operation: {e}")

    if page.total_pages > 1:
        col1, col2, col3 = st.columns([1, 2, 1])
        if col1.button("← Previous", disabled=not page.has_previous):
            filters.previous_page()
            st.rerun()
        col2.markdown(f"Page {page.page} of {page.total_pages}")
        if col3.button("Next →", disabled=not page.has_next):
            filters.next_page(page.total_pages)
            st.rerun()


# =============================================================================
# OPERATION FORM
# =============================================================================

def find_operation(feed: FeedSession, operation_id: Optional[str]) -> Optional[Operation]:
    if not operation_id:
        return None
    return next((op for op in feed.operations if op.id == operation_id), None)


def render_operation_page(
    feed: FeedSession,
    operation_flow: OperationFlow,
    category_flow: CategoryFlow,
):
    """Render the add/edit operation form."""
    editing = find_operation(feed, st.session_state.get("editing_operation_id"))
    st.title("✏️ Edit Operation" if editing else "➕ Add Operation")

    if editing and st.button("Cancel editing"):
        st.session_state.editing_operation_id = None
        st.rerun()

    # Outside the form so the category list follows the selected type
    operation_type = st.radio(
        "Type",
        list(OperationType),
        index=list(OperationType).index(editing.type if editing else OperationType.EXPENSE),
        format_func=lambda t: t.value.title(),
        horizontal=True,
    )

    categories = feed.categories_for(operation_type)
    category_ids = [""] + [category.id for category in categories]
    names = {category.id: category.name for category in categories}

    preferred = st.session_state.pop("new_category_id", None)
    if preferred is None and editing:
        preferred = editing.category_id
    category_index = category_ids.index(preferred) if preferred in category_ids else 0

    with st.expander("➕ New category"):
        new_name = st.text_input("Category name", key="new_category_name")
        if st.button("Create category"):
            try:
                category = run_async(category_flow.add_category(
                    feed.user_id,
                    {"name": new_name, "type": operation_type},
                ))
                if category.type == operation_type:
                    st.session_state.new_category_id = category.id
                st.rerun()
            except ValidationError as e:
                st.error(form_error_message(e))
            except StorageError as e:
                st.error(f"Could not create the category: {e}")

    with st.form("operation_form"):
        amount = st.number_input(
            "Amount",
            min_value=0.0,
            step=0.01,
            format="%.2f",
            value=float(editing.amount) if editing else 0.0,
        )
        description = st.text_input(
            "Description",
            max_chars=100,
            value=editing.description if editing else "",
        )
        category_id = st.selectbox(
            "Category",
            category_ids,
            index=category_index,
            format_func=lambda c: names.get(c, "No category"),
        )
        operation_date = st.date_input(
            "Date",
            value=editing.timestamp.date() if editing else date.today(),
            format="DD/MM/YYYY",
        )
        submitted = st.form_submit_button("Save", type="primary")

    if not submitted:
        return

    raw = {
        "type": operation_type,
        "amount": Decimal(str(round(amount, 2))),
        "description": description,
        "category_id": category_id,
        "operation_date": operation_date,
    }
    try:
        operation, result = run_async(operation_flow.save_operation(
            feed.user_id,
            raw,
            feed.categories,
            editing=editing,
        ))
    except OperationRejectedError as e:
        st.error(OperationValidator().get_user_friendly_summary(e.result))
        return
    except StorageError as e:
        st.error(f"Could not save the operation: {e}")
        return

    for warning in result.warnings:
        st.warning(warning)
    st.success(f"Saved: {operation.description} ({format_amount(operation.amount)})")
    st.session_state.editing_operation_id = None


# =============================================================================
# SETTINGS
# =============================================================================

def render_settings_page(feed: FeedSession, category_flow: CategoryFlow):
    """Render categories and connection status."""
    st.title("⚙️ Settings")

    st.markdown("### Categories")
    categories = feed.categories
    if not categories:
        st.info("No categories yet. Create them from the operation form.")
    for category in categories:
        col1, col2, col3 = st.columns([6, 2, 1])
        col1.write(category.name)
        col2.write(category.type.value.title())
        if col3.button("🗑️", key=f"delete_category_{category.id}"):
            try:
                run_async(category_flow.delete_category(feed.user_id, category.id))
                st.rerun()
            except StorageError as e:
                st.error(f"Could not delete the category: {e}")

    st.markdown("---")
    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Firebase (Firestore + Authentication)", "firebase"),
        ("Application settings", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your Firebase "
        "credentials. See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
