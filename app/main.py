"""
Streamlit Frontend for Freelancer Tax Ledger

The screen a freelancer keeps open while logging income.

DESIGN PRINCIPLES:
1. Live tax preview while typing, nothing saved on keystroke
2. Explicit "Save" to commit
3. Overwriting a recorded month always asks first
4. Clear, short messages instead of error codes

All ledger logic lives in freelancer_tax; this module only renders
and forwards user actions to the SyncCoordinator.
"""

import asyncio
from datetime import date

import streamlit as st

from freelancer_tax.config import get_settings, validate_all_settings
from freelancer_tax.models.entry import EntryDraft, LedgerKind, RateRegime
from freelancer_tax.orchestrator import SyncCoordinator, create_app_components
from freelancer_tax.session import IdentityProvider


# Page configuration
st.set_page_config(
    page_title="Freelancer Tax",
    page_icon="🧾",
    layout="wide",
    initial_sidebar_state="expanded",
)


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


def main():
    """Main application entry point."""
    coordinator, identity, _ = get_components()

    st.sidebar.title("🧾 Freelancer Tax")
    render_identity_box(identity)
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📒 Ledger", "⚙️ Settings"],
        index=0,
    )

    if page == "📒 Ledger":
        render_ledger_page(coordinator)
    else:
        render_settings_page(coordinator)


def render_identity_box(identity: IdentityProvider):
    """Sign-in is handled upstream; here we only pick the owner handle."""
    current = identity.current()
    if current:
        st.sidebar.markdown(f"Signed in as **{current}**")
        if st.sidebar.button("Sign out"):
            run_async(identity.sign_out())
            st.rerun()
    else:
        owner = st.sidebar.text_input("Account", placeholder="you@example.com")
        if st.sidebar.button("Sign in", type="primary") and owner.strip():
            run_async(identity.set_owner(owner.strip()))
            st.rerun()


def render_ledger_page(coordinator: SyncCoordinator):
    """Entry form, ledger table and totals."""
    st.title("📒 Income Ledger")

    if coordinator.owner is None:
        st.info("Sign in from the sidebar to see and record your income.")
        return

    if "pending_draft" not in st.session_state:
        st.session_state.pending_draft = None

    render_entry_form(coordinator)
    st.markdown("---")

    years = coordinator.distinct_years()
    year = st.selectbox(
        "Year",
        options=[None] + years,
        format_func=lambda y: "All years" if y is None else y,
    )

    render_entries_table(coordinator, year)
    render_totals(coordinator, year)

    csv_text = run_async(coordinator.export(year=year))
    st.download_button(
        "⬇️ Export CSV",
        data=csv_text,
        file_name=get_settings().app.export_filename,
        mime="text/csv",
    )

    with st.expander("Danger zone"):
        sure = st.checkbox("I want to delete every entry")
        if st.button("Delete all entries", disabled=not sure):
            outcome = run_async(coordinator.clear(confirmed=True))
            st.success(outcome.message) if outcome.success else st.error(outcome.message)
            st.rerun()


def render_entry_form(coordinator: SyncCoordinator):
    ledger_settings = get_settings().ledger
    daily = coordinator.ledger_kind is LedgerKind.DAILY

    cols = st.columns(5)
    with cols[0]:
        if daily:
            when = st.date_input("Date", value=date.today())
            period = None
        else:
            when = None
            period = st.text_input("Month (YYYY-MM)", value=date.today().strftime("%Y-%m"))
    with cols[1]:
        income = st.text_input("Income", value="")
    with cols[2]:
        expense_rate = st.text_input("Expense rate %", value=str(ledger_settings.default_expense_rate))
    with cols[3]:
        regimes = list(RateRegime)
        regime = st.selectbox(
            "Regime",
            options=regimes,
            index=regimes.index(ledger_settings.default_regime),
            format_func=lambda r: f"{r.value} ({r.rate * 100}%)",
        )
    with cols[4]:
        description = st.text_input("Description", value="")

    preview = coordinator.preview(income, expense_rate, regime)
    p1, p2, p3 = st.columns(3)
    p1.metric("Taxable income", f"{preview.taxable_income:,}")
    p2.metric("Tax", f"{preview.tax_amount:,}")
    p3.metric("Net income", f"{preview.net_income:,}")

    draft = EntryDraft(
        period=period,
        occurred_on=when,
        gross_income=income,
        expense_rate=expense_rate,
        regime=regime,
        description=description,
    )

    if st.button("💾 Save", type="primary"):
        outcome = run_async(coordinator.commit(draft))
        if outcome.needs_confirmation:
            st.session_state.pending_draft = draft
        elif outcome.success:
            st.success(outcome.message)
        else:
            st.warning(outcome.message)

    pending = st.session_state.pending_draft
    if pending is not None:
        st.warning(f"{pending.period} is already recorded. Overwrite it?")
        c1, c2 = st.columns(2)
        if c1.button("Overwrite"):
            outcome = run_async(coordinator.commit(pending, confirmed=True))
            st.session_state.pending_draft = None
            st.success(outcome.message) if outcome.success else st.warning(outcome.message)
            st.rerun()
        if c2.button("Cancel"):
            st.session_state.pending_draft = None
            st.rerun()


def render_entries_table(coordinator: SyncCoordinator, year):
    entries = list(coordinator.entries(year))
    if not entries:
        st.info("No entries yet. Add your first income above.")
        return

    header = st.columns([2, 2, 2, 2, 3, 1, 1])
    for col, label in zip(header, ["Date", "Income", "Tax", "Net", "Description", "", ""]):
        col.markdown(f"**{label}**")

    for entry in entries:
        row = st.columns([2, 2, 2, 2, 3, 1, 1])
        row[0].write(str(entry.occurred_on or entry.period))
        row[1].write(f"{entry.gross_income:,}")
        row[2].write(f"{entry.tax_amount:,}")
        row[3].write(f"{entry.net_income:,}")
        row[4].write(entry.description or "")
        if row[5].button("+100", key=f"bump-{entry.key}"):
            run_async(coordinator.adjust_income(entry.key, 100))
            st.rerun()
        if row[6].button("🗑️", key=f"del-{entry.key}"):
            run_async(coordinator.remove(entry.key))
            st.rerun()


def render_totals(coordinator: SyncCoordinator, year):
    summary = coordinator.summary(year)

    st.markdown("### Totals")
    t1, t2, t3 = st.columns(3)
    t1.metric("Income", f"{summary.total.income:,}")
    t2.metric("Tax", f"{summary.total.tax:,}")
    t3.metric("Net", f"{summary.total.net:,}")

    if summary.per_day:
        st.markdown("#### Daily")
        for day, totals in summary.per_day.items():
            st.write(f"{day}: {totals.income:,}")

    st.markdown("#### Monthly")
    for period, totals in summary.per_period.items():
        st.write(f"{period}: {totals.income:,} (tax {totals.tax:,}, net {totals.net:,})")

    if year is None and len(summary.per_year) > 1:
        st.markdown("#### Yearly")
        for y, totals in summary.per_year.items():
            st.write(f"{y}: {totals.income:,}")


def render_settings_page(coordinator: SyncCoordinator):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")
    status = validate_all_settings()
    if status.get("google_sheets", False):
        st.success("✅ Google Sheets (Storage) - Configured")
    else:
        error = status.get("google_sheets_error", "Not configured")
        st.error(f"❌ Google Sheets (Storage) - {error}")

    st.markdown(f"Ledger kind: **{coordinator.ledger_kind.value}**")
    if st.button("🔄 Reload from remote"):
        ok = run_async(coordinator.reload())
        st.success("Reloaded.") if ok else st.warning("Could not reload. Try again.")

    st.markdown("### Recent Activity")
    events = run_async(coordinator.recent_activity(limit=20))
    if not events:
        st.info("No recorded activity yet.")
    for event in events:
        icon = "⚠️" if event.severity.value in ("warning", "error", "critical") else "•"
        st.write(f"{icon} {event.timestamp:%Y-%m-%d %H:%M} {event.description}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file with "
        "`GOOGLE_SHEETS_CREDENTIALS_PATH`, `GOOGLE_SHEETS_SPREADSHEET_ID` "
        "and optionally `LEDGER_KIND` (monthly or daily)."
    )


if __name__ == "__main__":
    main()
