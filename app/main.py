"""
Streamlit Frontend for One Stop Finance

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before anything AI-proposed is saved
3. Clear error messages in simple language
4. Visual feedback for all operations

Views are cached with st.cache_data and dropped when the core reports
them stale (a new transaction invalidates the dashboard and the page of
the account it touched).
"""

import asyncio
from datetime import datetime, time
from decimal import Decimal
from typing import Optional

import streamlit as st

from onestop.audit import create_correlation_id
from onestop.config import validate_all_settings
from onestop.models import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    AccountType,
    RecurringInterval,
    TransactionType,
)
from onestop.orchestrator import AppComponents, create_app_components
from onestop.services import DASHBOARD_VIEW, IdentityProvider


# Page configuration
st.set_page_config(
    page_title="One Stop Finance",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


class SessionIdentityProvider(IdentityProvider):
    """Reads the signed-in subject from the current browser session."""

    def current_subject(self) -> Optional[str]:
        return st.session_state.get("subject")


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    components = create_app_components(identity=SessionIdentityProvider())
    components.invalidator.subscribe(_on_view_stale)
    return components


def _on_view_stale(path: str) -> None:
    if path == DASHBOARD_VIEW:
        load_dashboard.clear()
    else:
        load_account_detail.clear()


@st.cache_data(show_spinner=False)
def load_dashboard(subject: str):
    return run_async(get_components().queries.dashboard(subject))


@st.cache_data(show_spinner=False)
def load_account_detail(subject: str, account_id: int):
    return run_async(get_components().queries.account_detail(subject, account_id))


def format_money(amount: Decimal) -> str:
    return f"{amount:,.2f}"


def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("💰 One Stop Finance")
    st.sidebar.markdown("---")

    render_sign_in(components)
    subject = st.session_state.get("subject")

    if not subject:
        st.title("💰 One Stop Finance")
        st.info("Sign in from the sidebar to see your accounts.")
        return

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "➕ Add Transaction", "🏦 Accounts", "⚙️ Settings"],
        index=0,
    )

    if page == "📊 Dashboard":
        render_dashboard_page(components, subject)
    elif page == "➕ Add Transaction":
        render_add_transaction_page(components, subject)
    elif page == "🏦 Accounts":
        render_accounts_page(components, subject)
    elif page == "⚙️ Settings":
        render_settings_page(components)


def render_sign_in(components: AppComponents):
    """Stand-in for the identity provider's sign-in widget."""
    subject = st.session_state.get("subject")
    if subject:
        st.sidebar.markdown(f"Signed in as **{subject}**")
        if st.sidebar.button("Sign out"):
            st.session_state.subject = None
            st.rerun()
        st.sidebar.markdown("---")
        return

    email = st.sidebar.text_input("Email")
    if st.sidebar.button("Sign in", type="primary") and email.strip():
        result = run_async(components.accounts.ensure_user(email.strip(), email=email.strip()))
        if result.success:
            st.session_state.subject = result.data.external_id
            st.rerun()
        else:
            st.sidebar.error(result.error)


def render_dashboard_page(components: AppComponents, subject: str):
    """Render the dashboard: balances, this month, quick prompt entry."""
    st.title("📊 Dashboard")

    result = load_dashboard(subject)
    if not result.success:
        st.error(result.error)
        return
    view = result.data

    col1, col2, col3 = st.columns(3)
    col1.metric("Total balance", format_money(view.total_balance))
    col2.metric("Income this month", format_money(view.month_income))
    col3.metric("Expenses this month", format_money(view.month_expense))

    if components.prompt_agent is not None:
        st.markdown("### ✨ Quick add")
        with st.form("prompt_form", clear_on_submit=True):
            prompt = st.text_input(
                "Describe a transaction",
                placeholder="e.g. Spent 500 on lunch today",
            )
            submitted = st.form_submit_button("Add")
        if submitted:
            with st.spinner("Understanding your transaction..."):
                created = run_async(
                    components.prompt_agent.create_transaction_from_prompt(
                        prompt, correlation_id=create_correlation_id()
                    )
                )
            if created.success:
                txn = created.data
                st.toast(
                    f"Added {txn.type.value.lower()} of {format_money(txn.amount)} "
                    f"({txn.category}) to your default account"
                )
                st.rerun()
            else:
                st.error(created.error)

    st.markdown("### 🏦 Accounts")
    if not view.accounts:
        st.info("You have no accounts yet. Create one on the Accounts page.")
    for account in view.accounts:
        label = f"{account.name} ({account.type.value.title()})"
        if account.is_default:
            label += " ⭐"
        st.markdown(f"**{label}**: {format_money(account.balance)}")

    st.markdown("### 🧾 Recent transactions")
    if not view.recent_transactions:
        st.info("No transactions yet.")
        return
    st.dataframe(
        [
            {
                "Date": txn.date.date().isoformat(),
                "Type": txn.type.value,
                "Category": txn.category,
                "Description": txn.description or "",
                "Amount": format_money(txn.signed_amount),
            }
            for txn in view.recent_transactions
        ],
        use_container_width=True,
    )


def _account_options(components: AppComponents, subject: str) -> dict:
    result = run_async(components.accounts.list_accounts(subject))
    if not result.success:
        st.error(result.error)
        return {}
    return {acc.id: acc for acc in result.data}


def render_add_transaction_page(components: AppComponents, subject: str):
    """Manual entry, optionally prefilled from a receipt scan."""
    st.title("➕ Add Transaction")

    accounts = _account_options(components, subject)
    if not accounts:
        st.info("Create an account first.")
        return

    if "receipt_scan" not in st.session_state:
        st.session_state.receipt_scan = None

    if components.receipt_agent is not None:
        with st.expander("📷 Scan a receipt", expanded=False):
            uploaded_file = st.file_uploader(
                "Receipt photo",
                type=["jpg", "jpeg", "png", "webp", "heic"],
            )
            if uploaded_file and st.button("🔍 Scan receipt"):
                with st.spinner("Reading your receipt..."):
                    scanned = run_async(
                        components.receipt_agent.scan_receipt(
                            uploaded_file.getvalue(), uploaded_file.type or ""
                        )
                    )
                if not scanned.success:
                    st.error(scanned.error)
                else:
                    validation = components.validator.validate(scanned.data)
                    st.session_state.receipt_scan = scanned.data if validation.is_valid else None
                    summary = components.validator.get_user_friendly_summary(validation)
                    (st.success if validation.is_valid else st.warning)(summary)

    scan = st.session_state.receipt_scan
    default_ids = [acc_id for acc_id, acc in accounts.items() if acc.is_default]

    with st.form("transaction_form"):
        txn_type = st.selectbox("Type", options=list(TransactionType), format_func=lambda t: t.value.title())
        account_id = st.selectbox(
            "Account",
            options=list(accounts),
            index=list(accounts).index(default_ids[0]) if default_ids else 0,
            format_func=lambda acc_id: accounts[acc_id].name,
        )
        amount = st.number_input(
            "Amount",
            min_value=0.0,
            step=0.01,
            format="%.2f",
            value=float(scan.amount) if scan and scan.amount_is_valid else 0.0,
        )
        categories = list(EXPENSE_CATEGORIES) + list(INCOME_CATEGORIES)
        default_category = scan.category.lower() if scan and scan.category else None
        category = st.selectbox(
            "Category",
            options=categories,
            index=categories.index(default_category) if default_category in categories else 0,
        )
        txn_date = st.date_input(
            "Date",
            value=scan.date.date() if scan and scan.date else datetime.now().date(),
        )
        description = st.text_input(
            "Description",
            value=(scan.description or scan.merchant_name or "") if scan else "",
        )
        is_recurring = st.checkbox("Recurring")
        interval = st.selectbox(
            "Repeats",
            options=list(RecurringInterval),
            format_func=lambda i: i.value.title(),
        )
        submitted = st.form_submit_button("💾 Save", type="primary")

    if submitted:
        result = run_async(
            components.transactions.create_transaction({
                "account_id": account_id,
                "type": txn_type,
                # number_input returns a float; go through str to keep cents exact
                "amount": Decimal(f"{amount:.2f}"),
                "category": category,
                "date": datetime.combine(txn_date, time()),
                "description": description or None,
                "is_recurring": is_recurring,
                "recurring_interval": interval if is_recurring else None,
            })
        )
        if result.success:
            st.session_state.receipt_scan = None
            st.success(f"Saved {result.data.type.value.lower()} of {format_money(result.data.amount)}")
            if result.data.next_recurring_date:
                st.info(f"Next occurrence: {result.data.next_recurring_date.date().isoformat()}")
        else:
            st.error(result.error)


def render_accounts_page(components: AppComponents, subject: str):
    """Create accounts, choose the default and browse account history."""
    st.title("🏦 Accounts")

    with st.expander("➕ New account"):
        with st.form("account_form", clear_on_submit=True):
            name = st.text_input("Name")
            account_type = st.selectbox("Type", options=list(AccountType), format_func=lambda t: t.value.title())
            opening = st.number_input("Opening balance", step=0.01, format="%.2f", value=0.0)
            make_default = st.checkbox("Make this my default account")
            submitted = st.form_submit_button("Create")
        if submitted:
            result = run_async(
                components.accounts.create_account(
                    subject, name, account_type, Decimal(f"{opening:.2f}"), make_default
                )
            )
            if result.success:
                st.success(f"Created {result.data.name}")
            else:
                st.error(result.error)

    accounts = _account_options(components, subject)
    if not accounts:
        st.info("You have no accounts yet.")
        return

    account_id = st.selectbox(
        "Account",
        options=list(accounts),
        format_func=lambda acc_id: accounts[acc_id].name + (" ⭐" if accounts[acc_id].is_default else ""),
    )

    if not accounts[account_id].is_default and st.button("⭐ Make default"):
        result = run_async(components.accounts.set_default_account(subject, account_id))
        if result.success:
            st.rerun()
        st.error(result.error)

    detail = load_account_detail(subject, account_id)
    if not detail.success:
        st.error(detail.error)
        return
    view = detail.data

    st.markdown(f'<div class="big-number">{format_money(view.account.balance)}</div>', unsafe_allow_html=True)
    col1, col2 = st.columns(2)
    col1.metric("Total income", format_money(view.total_income))
    col2.metric("Total expenses", format_money(view.total_expense))

    if not view.transactions:
        st.info("No transactions on this account yet.")
        return
    st.dataframe(
        [
            {
                "Date": txn.date.date().isoformat(),
                "Type": txn.type.value,
                "Category": txn.category,
                "Description": txn.description or "",
                "Amount": format_money(txn.signed_amount),
                "Recurring": txn.recurring_interval.value.title() if txn.recurring_interval else "",
            }
            for txn in view.transactions
        ],
        use_container_width=True,
    )


def render_settings_page(components: AppComponents):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Gemini (AI)", "gemini"),
        ("Database", "database"),
        ("Admission control", "admission"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if not components.ai_enabled:
        st.warning("AI features are off. Receipt scanning and quick add need a Gemini API key.")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your settings. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
