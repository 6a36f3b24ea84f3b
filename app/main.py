"""
Streamlit Frontend for the Personal Ledger

This is the user interface people use every day to record income and
spending and to look back at closed months.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before a month is closed
3. Clear error messages in simple language
4. Visual feedback for all operations
5. No hidden actions

Period closing runs once per session when the app opens:
- Yesterday is closed automatically
- On the 1st the user is asked before last month is closed
- Nothing is ever lost: closed entries live on in the archives
"""

import asyncio

import streamlit as st

from src.closing import group_by_type
from src.config import get_settings
from src.models.ledger import (
    TransactionDraft,
    TransactionQuery,
    TransactionType,
    autofill_description,
)
from src.orchestrator import ClosingFlow, LedgerFlow, create_app_components
from src.reports import format_currency


# Page configuration
st.set_page_config(
    page_title="Personal Ledger",
    page_icon="📒",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
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


TYPE_LABELS = {t: t.label for t in TransactionType}

OTHER_CATEGORY = "Other (type your own)"


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
    return create_app_components()


def show_result(result, success_text=None):
    """Render an OperationResult as a success or error message."""
    if result.success:
        st.success(success_text or result.message or "Done")
    else:
        st.error(result.error)


def show_events(events):
    """Render audit events as a table."""
    st.table([
        {
            "When": f"{event.timestamp:%Y-%m-%d %H:%M:%S}",
            "Event": event.event_type.value.replace("_", " "),
            "Details": event.description,
        }
        for event in events
    ])


def main():
    """Main application entry point."""
    ledger_flow, closing_flow, _ = get_components()

    # Sidebar navigation
    st.sidebar.title("📒 Personal Ledger")
    username = st.sidebar.text_input(
        "User",
        value=get_settings().app.default_username,
        help="Each user has a separate ledger",
    ).strip()
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🧾 Ledger", "🔒 Closing", "📊 Reports", "🎯 Spending Limit", "🔍 Search", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How it works:**
        1. Record income and spending as it happens
        2. Each new day, yesterday is archived
        3. On the 1st, confirm to close last month
        4. Read the monthly report any time
        """
    )

    if not username:
        st.warning("Please enter a user name in the sidebar.")
        st.stop()

    render_session_check(closing_flow, username)

    # Route to appropriate page
    if page == "🧾 Ledger":
        render_ledger_page(ledger_flow, username)
    elif page == "🔒 Closing":
        render_closing_page(closing_flow, username)
    elif page == "📊 Reports":
        render_reports_page(closing_flow, username)
    elif page == "🎯 Spending Limit":
        render_limit_page(ledger_flow, username)
    elif page == "🔍 Search":
        render_search_page(ledger_flow, username)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_session_check(closing_flow: ClosingFlow, username: str):
    """Run the boundary checks once per session and user."""
    checked_key = f"session_checked:{username}"
    if not st.session_state.get(checked_key):
        result = run_async(closing_flow.run_session_checks(username))
        st.session_state[checked_key] = True
        st.session_state["session_check"] = result

    result = st.session_state.get("session_check")
    if result is None:
        return
    if not result.success:
        st.error(result.error)
        return
    if result.message:
        st.warning(result.message)

    check = result.data
    if check.day_close and check.day_close.closed:
        st.info(check.day_close.message)

    if check.month_close_due:
        month = check.month_close_due
        st.markdown(f"""
        <div class="warning-box">
            <h4>📅 A new month has started</h4>
            <p>Close <strong>{month}</strong> now? Its entries will be archived and a report created.</p>
        </div>
        """, unsafe_allow_html=True)

        col1, col2 = st.columns(2)
        with col1:
            if st.button(f"✅ Close {month}", type="primary"):
                confirmed = run_async(
                    closing_flow.run_session_checks(username, confirm=lambda m: True)
                )
                st.session_state["session_check"] = confirmed
                st.rerun()
        with col2:
            if st.button("Not now"):
                declined = run_async(
                    closing_flow.run_session_checks(username, confirm=lambda m: False)
                )
                st.session_state["session_check"] = declined
                st.rerun()

    if check.month_close:
        st.success(check.month_close.message)

    if check.correlation_id:
        with st.expander("🧾 What the period check did"):
            trail = run_async(closing_flow.get_session_trail(check.correlation_id))
            if trail.success:
                show_events(trail.data)
            else:
                st.error(trail.error)


def render_ledger_page(ledger_flow: LedgerFlow, username: str):
    """Render the ledger page: add, running summary, list, delete, reset."""
    st.title("🧾 Ledger")
    symbol = get_settings().app.currency_symbol

    st.markdown("### Add an entry")
    reading = run_async(ledger_flow.read_clock())
    if reading.is_fallback:
        st.caption("Time server unavailable; today's date is taken from this device.")

    col1, col2 = st.columns(2)
    with col1:
        entry_date = st.date_input("Date *", value=reading.date)
        entry_type = st.selectbox(
            "Type *",
            options=list(TransactionType),
            format_func=lambda t: TYPE_LABELS[t],
        )
        amount = st.text_input("Amount *", placeholder="e.g. 12.50")
    with col2:
        preset = st.selectbox(
            "Category *",
            options=list(entry_type.category_presets) + [OTHER_CATEGORY],
            key=f"category:{entry_type.value}",
        )
        if preset == OTHER_CATEGORY:
            category = st.text_input("Custom category *", max_chars=100)
        else:
            category = preset

        # Fixed expenses such as rent describe themselves
        autofill = autofill_description(entry_type, category)
        description = st.text_input(
            "Description *",
            value=autofill or "",
            max_chars=200,
            disabled=autofill is not None,
            key=f"description:{entry_type.value}:{autofill or ''}",
        )
        if autofill:
            description = autofill

    if st.button("💾 Save", type="primary"):
        draft = TransactionDraft(
            date=entry_date,
            description=description,
            amount=amount,
            type=entry_type.value,
            category=category,
        )
        added = run_async(ledger_flow.add_transaction(username, draft))
        if added.success:
            st.success(added.message)
        else:
            st.error(added.error)

    st.markdown("---")
    month = st.text_input("Month (YYYY-MM, empty for the current month)", value="").strip() or None

    summary = run_async(ledger_flow.get_month_summary(username, month))
    if summary.success:
        totals = summary.data
        cols = st.columns(4)
        cols[0].metric("Income", format_currency(totals.total_income, symbol))
        cols[1].metric("Fixed expenses", format_currency(totals.total_fixed_expense, symbol))
        cols[2].metric("Expenses", format_currency(totals.total_expense, symbol))
        cols[3].metric("Balance", format_currency(totals.balance, symbol))

    listed = run_async(ledger_flow.list_transactions(username, month))
    if not listed.success:
        st.error(listed.error)
        return

    if not listed.data:
        st.info("📋 No open entries. Closed days are kept in the archives.")
    else:
        for entry_group, entries in group_by_type(listed.data).items():
            st.markdown(f"#### {TYPE_LABELS[entry_group]}")
            if not entries:
                st.caption("No entries")
                continue
            for txn in entries:
                col1, col2, col3, col4 = st.columns([2, 4, 2, 1])
                col1.write(txn.date.isoformat())
                col2.write(f"{txn.description} ({txn.category})")
                col3.write(format_currency(txn.amount, symbol))
                if col4.button("🗑️", key=f"delete:{txn.id}"):
                    show_result(run_async(
                        ledger_flow.delete_transaction(username, txn.id, txn.month_key)
                    ))
                    st.rerun()

    with st.expander("⚠️ Reset month"):
        st.markdown("Removes every open entry for the month. Archives and reports are kept.")
        if st.checkbox("I understand") and st.button("Reset"):
            show_result(run_async(ledger_flow.reset_month(username, month)))


def render_closing_page(closing_flow: ClosingFlow, username: str):
    """Render manual closing, daily status and the deletion log."""
    st.title("🔒 Closing")

    col1, col2 = st.columns(2)
    with col1:
        st.markdown("### Close a day")
        day = st.date_input("Day", value=None, help="Empty closes yesterday")
        if st.button("Close day"):
            show_result(run_async(closing_flow.close_day(username, day)))

        status = run_async(closing_flow.get_daily_status(username, day))
        if status.success:
            state = "archived" if status.data.is_archived else "not archived"
            st.caption(f"{status.data.date.isoformat()} is {state}")

    with col2:
        st.markdown("### Close a month")
        month = st.text_input("Month (YYYY-MM)", help="Empty closes last month").strip() or None
        if st.button("Close month"):
            show_result(run_async(closing_flow.close_month(username, month)))

    st.markdown("---")
    st.markdown("### Deletion log")
    log_day = st.date_input("Entries removed when this day was closed", value=None, key="log_day")
    if log_day:
        log = run_async(closing_flow.get_deletion_log(username, log_day))
        if not log.success:
            st.error(log.error)
        elif not log.data:
            st.info("Nothing was removed on that day.")
        else:
            for record in log.data:
                st.markdown(f"**{record.removed_count} removed** at {record.deleted_at:%Y-%m-%d %H:%M}")
                st.table([
                    {
                        "Description": t.description,
                        "Category": t.category,
                        "Type": TYPE_LABELS[t.type],
                        "Amount": f"{t.amount:.2f}",
                    }
                    for t in record.transactions
                ])

    st.markdown("---")
    st.markdown("### Recent activity")
    activity = run_async(closing_flow.get_recent_activity(username))
    if not activity.success:
        st.error(activity.error)
    elif not activity.data:
        st.info("No activity recorded yet.")
    else:
        show_events(activity.data)


def render_reports_page(closing_flow: ClosingFlow, username: str):
    """Render the list of monthly reports and one report's detail."""
    st.title("📊 Monthly Reports")

    listed = run_async(closing_flow.list_monthly_reports(username))
    if not listed.success:
        st.error(listed.error)
        return
    if not listed.data:
        st.info("📋 Reports appear here once a month has been closed.")
        return

    selected = st.selectbox(
        "Report",
        options=listed.data,
        format_func=lambda item: f"{item.title} ({item.balance or 'n/a'})",
    )
    detail = run_async(closing_flow.get_monthly_report_detail(selected.key))
    if not detail.success:
        st.error(detail.error)
        return

    report = detail.data
    st.subheader(report.title)
    cols = st.columns(2)
    for i, line in enumerate(report.summary):
        cols[i % 2].metric(line.label, line.value)

    st.markdown("### By category")
    st.table([row.model_dump() for row in report.category_breakdown])

    if report.daily_breakdown:
        st.markdown("### By day")
        st.table([row.model_dump(mode="json") for row in report.daily_breakdown])

    with st.expander("📄 Plain text"):
        st.code(detail.message)

    with st.expander("🕓 History"):
        history = run_async(closing_flow.get_report_history(selected.key))
        if history.success:
            show_events(history.data)
        else:
            st.error(history.error)


def render_limit_page(ledger_flow: LedgerFlow, username: str):
    """Render the spending limit page."""
    st.title("🎯 Spending Limit")
    st.markdown("Only everyday expenses count; fixed expenses are excluded.")

    status = run_async(ledger_flow.get_spending_limit_status(username))
    if not status.success:
        st.error(status.error)
    elif status.data.has_limit:
        data = status.data
        st.progress(float(data.usage_percent) / 100)
        st.markdown(f"**{data.total_expense:.2f}** of **{data.limit:.2f}** used ({data.usage_percent}%)")
        if data.is_over_limit:
            st.error(f"Over the limit by {data.over_by:.2f}")
        elif data.is_near_limit:
            st.warning(f"Nearly there: {data.remaining:.2f} left")
    else:
        st.info("No limit set.")

    new_limit = st.text_input("Monthly limit", placeholder="e.g. 1000")
    col1, col2 = st.columns(2)
    with col1:
        if st.button("Save limit", type="primary"):
            show_result(run_async(ledger_flow.set_spending_limit(username, new_limit)))
    with col2:
        if st.button("Clear limit"):
            show_result(run_async(ledger_flow.clear_spending_limit(username)))


def render_search_page(ledger_flow: LedgerFlow, username: str):
    """Render the transaction search page."""
    st.title("🔍 Search")

    col1, col2, col3 = st.columns(3)
    with col1:
        year = st.number_input("Year", min_value=0, max_value=9999, value=0, help="0 for any year")
        month = st.number_input("Month", min_value=0, max_value=12, value=0, help="0 for any month")
    with col2:
        entry_type = st.selectbox(
            "Type",
            options=[None] + list(TransactionType),
            format_func=lambda t: "All types" if t is None else TYPE_LABELS[t],
        )
        category = st.text_input("Category")
    with col3:
        text = st.text_input("Description contains")
        include_archived = st.checkbox("Include archives", value=True)

    if st.button("🔍 Search", type="primary"):
        query = TransactionQuery(
            year=int(year) or None,
            month=int(month) or None,
            type=entry_type,
            category=category or None,
            text=text or None,
            include_archived=include_archived,
        )
        result = run_async(ledger_flow.search_transactions(username, query))
        if not result.success:
            st.error(result.error)
            return

        found = result.data
        st.caption(found.query_description)
        if not found.data_found:
            st.info("No matching entries.")
            return

        st.markdown(
            f"**{found.total_matches} entries** | income {found.total_income:.2f} | "
            f"spending {found.total_spending:.2f}"
        )
        st.table([
            {
                "Date": hit.transaction.date.isoformat(),
                "Description": hit.transaction.description,
                "Category": hit.transaction.category,
                "Type": TYPE_LABELS[hit.transaction.type],
                "Amount": f"{hit.transaction.amount:.2f}",
                "Source": hit.source.value.replace("_", " "),
            }
            for hit in found.hits
        ])


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")

    # Check services
    from src.config import validate_all_settings

    status = validate_all_settings()

    sections = [
        ("Application", "app"),
        ("Clock source", "clock"),
        ("Google Sheets (Storage)", "google_sheets"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    app_settings = get_settings().app
    st.markdown(f"**Storage backend:** {app_settings.storage_backend}")
    st.markdown(f"**Timezone:** {app_settings.timezone}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
