"""
Streamlit Frontend for Zenfolio

The user interface for tracking stock and mutual fund transactions.

DESIGN PRINCIPLES:
1. The screen is a pure function of the latest orchestrator snapshot
2. Explicit confirmation before anything is deleted
3. Clear error messages, including how to fix a misconfigured project
4. Data refreshes by itself when the remote table changes

Streamlit reruns this script on every interaction, but the realtime
channel must outlive a rerun. The orchestrator therefore lives on one
background event loop shared by all reruns, and the script only submits
intents to it and renders its snapshot.
"""

import asyncio
import threading
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Optional
from uuid import uuid4

import streamlit as st

from src.config import get_settings, validate_all_settings
from src.metrics import slice_timeline
from src.models.entry import (
    CATEGORIES,
    EntryKind,
    FinancialEntry,
    MutualFundEntry,
    Operation,
    StockEntry,
)
from src.models.region import REGIONS, TIME_RANGES, View, currency_for, format_currency
from src.models.state import ConnectivityStatus, ViewState
from src.orchestrator import ViewOrchestrator, create_app_components


# Page configuration
st.set_page_config(
    page_title="Zenfolio",
    page_icon="📈",
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
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
    .info-box {
        padding: 20px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


STATUS_BADGES = {
    ConnectivityStatus.IDLE: "⚪ Not connected",
    ConnectivityStatus.CONNECTING: "🟡 Connecting",
    ConnectivityStatus.CONNECTED: "🟢 Connected",
    ConnectivityStatus.ERROR: "🔴 Connection error",
}


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """One event loop for the whole process, running in a daemon thread."""
    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, daemon=True, name="zenfolio-loop").start()
    return loop


def run_async(coro):
    """Helper to run an orchestrator coroutine from the Streamlit thread."""
    return asyncio.run_coroutine_threadsafe(coro, get_event_loop()).result()


@st.cache_resource
def get_components() -> ViewOrchestrator:
    """Get or create the orchestrator (cached) and restore stored state."""
    orchestrator = create_app_components()
    run_async(orchestrator.start())
    return orchestrator


def main():
    """Main application entry point."""
    orchestrator = get_components()
    snapshot = orchestrator.snapshot
    st.session_state.rendered_version = snapshot.version

    watch_for_changes(orchestrator)

    if snapshot.state == ViewState.AWAITING_CREDENTIALS:
        render_credentials_page(orchestrator)
    elif snapshot.state == ViewState.AWAITING_AUTHENTICATION:
        render_login_page(orchestrator)
    elif snapshot.state == ViewState.LOADING:
        with st.spinner("Loading your portfolio..."):
            st.empty()
    elif snapshot.state == ViewState.FETCH_ERRORED:
        render_fetch_error_page(orchestrator)
    else:
        render_sidebar(orchestrator)
        render_notice(orchestrator)

        view = orchestrator.snapshot.view
        if view == View.DASHBOARD:
            render_dashboard_page(orchestrator)
        elif view == View.STOCKS:
            render_entries_page(orchestrator, EntryKind.STOCK)
        elif view == View.MUTUAL_FUNDS:
            render_entries_page(orchestrator, EntryKind.MUTUAL_FUND)


@st.fragment(run_every=get_settings().app.refresh_interval_seconds)
def watch_for_changes(orchestrator: ViewOrchestrator):
    """Rerun the page whenever the orchestrator published a newer snapshot."""
    if orchestrator.snapshot.version != st.session_state.get("rendered_version"):
        st.rerun()


def render_credentials_page(orchestrator: ViewOrchestrator):
    """Ask for the Supabase project URL and anon key."""
    st.title("📈 Zenfolio")
    st.markdown("### Connect your Supabase project")
    st.markdown(
        '<div class="info-box">Your portfolio lives in your own Supabase project. '
        'Enter its URL and anon key. They are stored on this machine only.</div>',
        unsafe_allow_html=True,
    )

    supabase_settings = get_settings().supabase
    with st.form("credentials_form"):
        endpoint = st.text_input(
            "Project URL",
            value=supabase_settings.url or "",
            placeholder="https://xyz.supabase.co",
        )
        key = st.text_input("Anon key", value=supabase_settings.key or "", type="password")
        submitted = st.form_submit_button("🔌 Connect", type="primary")

    if submitted:
        with st.spinner("Checking connection..."):
            run_async(orchestrator.connect(endpoint, key))
        st.rerun()

    error = orchestrator.snapshot.connection_error
    if error:
        st.error(f"❌ {error}")

    with st.expander("⚙️ Settings"):
        render_settings_status()


def render_settings_status():
    """Configuration status, read from the environment and .env."""
    status = validate_all_settings()

    sections = [
        ("Supabase (tables and realtime)", "supabase"),
        ("Local storage (credentials and session)", "storage"),
        ("Application", "app"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name}")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if status.get("app", False):
        app_settings = get_settings().app
        st.caption(
            f"Environment: {app_settings.app_environment} · "
            f"Debug: {'on' if app_settings.debug_mode else 'off'}"
        )
    st.markdown(
        "To change these, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


def render_login_page(orchestrator: ViewOrchestrator):
    """Username and password against the project's users table."""
    st.title("📈 Zenfolio")
    st.markdown("### Sign in")

    with st.form("login_form"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("🔐 Log in", type="primary")

    if submitted:
        with st.spinner("Signing in..."):
            run_async(orchestrator.login(username, password))
        st.rerun()

    error = orchestrator.snapshot.login_error
    if error:
        st.error(f"❌ {error}")

    st.markdown("---")
    if st.button("Change Supabase Credentials"):
        run_async(orchestrator.reset_credentials())
        st.rerun()


def render_fetch_error_page(orchestrator: ViewOrchestrator):
    """Entries could not be read. Explain Row Level Security and offer a reset."""
    st.title("📈 Zenfolio")
    st.markdown(
        f'<div class="error-box"><b>Could not load your entries.</b><br>'
        f'{orchestrator.snapshot.fetch_error}</div>',
        unsafe_allow_html=True,
    )
    st.markdown(
        """
        **This is usually a project configuration problem.**

        If Row Level Security (RLS) is enabled on the `financial_entries`
        table, the anon key can only read rows that a policy allows. Either
        add a policy that allows `select` for the anon role, or disable RLS
        on the table. Also check that the table exists and has the expected
        columns.

        Reloading will not fix this. Fix the project or use different
        credentials.
        """
    )
    if st.button("Change Supabase Credentials", type="primary"):
        run_async(orchestrator.reset_credentials())
        st.rerun()


def render_sidebar(orchestrator: ViewOrchestrator):
    """Navigation, region selector, status and logout."""
    snapshot = orchestrator.snapshot

    st.sidebar.title("📈 Zenfolio")
    st.sidebar.caption(f"Signed in as **{snapshot.username}**")
    st.sidebar.caption(STATUS_BADGES[snapshot.connectivity])
    st.sidebar.markdown("---")

    views = list(View)
    view = st.sidebar.radio(
        "Navigate to:",
        views,
        index=views.index(snapshot.view),
        format_func=lambda v: v.value,
    )
    run_async(orchestrator.set_view(view))

    region = st.sidebar.selectbox(
        "Region",
        REGIONS,
        index=REGIONS.index(snapshot.region) if snapshot.region in REGIONS else 0,
    )
    run_async(orchestrator.set_region(region))

    st.sidebar.markdown("---")
    if st.sidebar.button("🚪 Log out"):
        run_async(orchestrator.logout())
        st.rerun()

    with st.sidebar.expander("⚙️ Settings"):
        render_settings_status()

    if get_settings().app.debug_mode:
        st.sidebar.caption(f"epoch {orchestrator.epoch} · snapshot v{snapshot.version}")


def render_notice(orchestrator: ViewOrchestrator):
    notice = orchestrator.snapshot.notice
    if notice:
        col1, col2 = st.columns([6, 1])
        with col1:
            st.warning(notice)
        with col2:
            if st.button("Dismiss"):
                run_async(orchestrator.dismiss_notice())
                st.rerun()


def render_dashboard_page(orchestrator: ViewOrchestrator):
    """Totals, allocation and the invested-over-time chart for one region."""
    region = orchestrator.snapshot.region
    metrics = orchestrator.metrics()

    st.title(f"📊 Dashboard ({currency_for(region).code})")

    if metrics.entry_count == 0:
        st.info(f"No entries for {region} yet. Add one from the Stocks or Mutual Funds page.")
        return

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Invested", format_currency(metrics.total_invested, region))
    col2.metric("Current value", format_currency(metrics.current_value, region))
    col3.metric(
        "Unrealized gain",
        format_currency(metrics.unrealized_gain, region),
        f"{metrics.return_pct:.2f}%",
    )
    col4.metric("Realized gain", format_currency(metrics.realized_gain, region))

    col1, col2 = st.columns(2)
    with col1:
        st.markdown("### Stocks vs Mutual Funds")
        st.bar_chart({
            "Stocks": [float(metrics.stock_value)],
            "Mutual Funds": [float(metrics.mutual_fund_value)],
        })
    with col2:
        st.markdown("### Fund categories")
        if metrics.category_allocation:
            st.bar_chart({name: [float(value)] for name, value in metrics.category_allocation})
        else:
            st.caption("No open mutual fund holdings.")

    st.markdown("### Net invested over time")
    time_range = st.radio("Range", TIME_RANGES, index=len(TIME_RANGES) - 1, horizontal=True)
    points = slice_timeline(metrics.timeline, time_range, date.today())
    if points:
        st.line_chart(
            {
                "day": [p.day for p in points],
                "invested": [float(p.invested) for p in points],
            },
            x="day",
            y="invested",
        )
    else:
        st.caption("No activity in this range.")

    st.markdown("### Open holdings")
    holdings = metrics.open_holdings
    if holdings:
        st.dataframe(
            [
                {
                    "Name": h.name,
                    "Type": "Stock" if h.kind == EntryKind.STOCK else "Mutual Fund",
                    "Quantity": float(h.quantity),
                    "Avg cost": format_currency(h.average_cost, region),
                    "Last price": format_currency(h.last_price, region),
                    "Value": format_currency(h.market_value, region),
                    "Gain": format_currency(h.unrealized_gain, region),
                }
                for h in holdings
            ],
            use_container_width=True,
        )
    else:
        st.caption("Everything has been sold.")


def render_entries_page(orchestrator: ViewOrchestrator, kind: EntryKind):
    """Transaction list for one kind with add, edit and delete."""
    region = orchestrator.snapshot.region
    is_stock = kind == EntryKind.STOCK
    entries = orchestrator.stocks() if is_stock else orchestrator.mutual_funds()

    st.title("📈 Stocks" if is_stock else "🏦 Mutual Funds")

    editing = orchestrator.find_entry(st.session_state.get("editing_entry") or "")
    if editing is not None and editing.kind == kind:
        st.markdown(f"### ✏️ Edit {editing.name}")
        render_entry_form(orchestrator, kind, existing=editing)
    else:
        # Nothing to edit, or the entry was deleted while the form was open
        st.session_state.editing_entry = None
        with st.expander("➕ Add entry"):
            render_entry_form(orchestrator, kind)

    if not entries:
        st.info(f"No {'stock' if is_stock else 'mutual fund'} entries for {region}.")
        return

    for entry in sorted(entries, key=lambda e: e.created_at, reverse=True):
        col1, col2, col3, col4, col5 = st.columns([3, 2, 2, 1, 1])
        with col1:
            st.markdown(f"**{entry.name}**")
            st.caption(entry.created_at.strftime("%d %b %Y"))
        with col2:
            st.write(entry.operation.value.upper())
            if is_stock:
                st.caption(f"{entry.quantity} @ {format_currency(entry.price, region)}")
            else:
                st.caption(f"{entry.units} units @ {format_currency(entry.nav, region)}")
        with col3:
            st.write(format_currency(entry.gross_amount, region))
        with col4:
            if st.button("✏️", key=f"edit_{entry.id}"):
                st.session_state.editing_entry = entry.id
                st.rerun()
        with col5:
            render_delete_button(orchestrator, entry.id, entry.name)


def render_delete_button(orchestrator: ViewOrchestrator, entry_id: str, name: str):
    """Two-step delete: ask first, then call the orchestrator."""
    pending = st.session_state.get("pending_delete")

    if pending != entry_id:
        if st.button("🗑️", key=f"delete_{entry_id}"):
            st.session_state.pending_delete = entry_id
            st.rerun()
        return

    st.warning(f"Delete {name}?")
    if st.button("Yes", key=f"confirm_{entry_id}", type="primary"):
        st.session_state.pending_delete = None
        run_async(orchestrator.delete_entry(entry_id))
        st.rerun()
    if st.button("No", key=f"cancel_{entry_id}"):
        st.session_state.pending_delete = None
        st.rerun()


def render_entry_form(
    orchestrator: ViewOrchestrator,
    kind: EntryKind,
    existing: Optional[FinancialEntry] = None,
):
    """
    New or edited stock or mutual fund transaction.

    An edit keeps the entry's id, so the save replaces the remote row. The
    timestamp is kept unless the date was changed.
    """
    snapshot = orchestrator.snapshot
    suggestions = orchestrator.unique_names(kind)
    form_key = f"entry_form_{kind.value}_{existing.id}" if existing else f"entry_form_{kind.value}"
    operations = list(Operation)

    with st.form(form_key, clear_on_submit=existing is None):
        name = st.text_input(
            "Name",
            value=existing.name if existing else "",
            help=f"Known: {', '.join(suggestions)}" if suggestions else None,
        )
        col1, col2 = st.columns(2)
        with col1:
            operation = st.selectbox(
                "Operation",
                operations,
                index=operations.index(existing.operation) if existing else 0,
                format_func=lambda o: o.value.title(),
            )
            entry_date = st.date_input(
                "Date",
                value=existing.created_at.date() if existing else date.today(),
            )
        with col2:
            current_region = existing.region if existing else snapshot.region
            region = st.selectbox(
                "Region",
                REGIONS,
                index=REGIONS.index(current_region) if current_region in REGIONS else 0,
            )
            if kind == EntryKind.MUTUAL_FUND:
                category = st.selectbox(
                    "Category",
                    CATEGORIES,
                    index=CATEGORIES.index(existing.category)
                    if existing and existing.category in CATEGORIES else 0,
                )

        if kind == EntryKind.STOCK:
            price = st.number_input(
                "Price per share", min_value=0.0, step=0.01,
                value=float(existing.price) if existing else 0.0,
            )
            quantity = st.number_input(
                "Quantity", min_value=0.0, step=1.0,
                value=float(existing.quantity) if existing else 0.0,
            )
        else:
            units = st.number_input(
                "Units", min_value=0.0, step=0.001, format="%.3f",
                value=float(existing.units) if existing else 0.0,
            )
            nav = st.number_input(
                "NAV", min_value=0.0, step=0.01,
                value=float(existing.nav) if existing else 0.0,
            )
            amount = st.number_input(
                "Amount (leave 0 to use units × NAV)", min_value=0.0, step=0.01,
                value=float(existing.amount) if existing else 0.0,
            )

        submitted = st.form_submit_button("💾 Save", type="primary")
        cancelled = st.form_submit_button("Cancel") if existing else False

    if cancelled:
        st.session_state.editing_entry = None
        st.rerun()

    if not submitted:
        return

    if not name.strip():
        st.error("❌ Please enter a name.")
        return

    if existing and entry_date == existing.created_at.date():
        created_at = existing.created_at
    else:
        created_at = datetime.combine(entry_date, time(), tzinfo=timezone.utc)

    fields = dict(
        id=existing.id if existing else str(uuid4()),
        user_id=snapshot.session.id,
        created_at=created_at,
        name=name,
        region=region,
        operation=operation,
    )
    if kind == EntryKind.STOCK:
        entry = StockEntry(price=Decimal(str(price)), quantity=Decimal(str(quantity)), **fields)
    else:
        entry = MutualFundEntry(
            units=Decimal(str(units)),
            nav=Decimal(str(nav)),
            amount=Decimal(str(amount)),
            category=category,
            **fields,
        )

    if run_async(orchestrator.save_entry(entry)):
        if existing:
            st.session_state.editing_entry = None
            st.rerun()
        st.success("✅ Saved. The list updates as soon as the change arrives.")
    else:
        st.rerun()


if __name__ == "__main__":
    main()
