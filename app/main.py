"""
Streamlit Operator Console for ledgerbot

A local stand-in for the chat network. The operator types the same
commands they would send over WhatsApp and sees two things:
1. The reply the bot sends back to them
2. Every message the bot would deliver to a recipient

DESIGN PRINCIPLES:
1. Same command flow as the real bot, nothing console-only
2. Outbound messages are shown, never delivered
3. Clear error messages in simple language
"""

import asyncio

import streamlit as st

from ledgerbot.commands.formatting import format_day, format_money
from ledgerbot.config import get_settings, validate_all_settings
from ledgerbot.models import SinceWindow
from ledgerbot.orchestrator import CommandFlow, create_app_components
from ledgerbot.resolver import ParseError, resolve
from ledgerbot.services.transport import InMemoryTransport
from ledgerbot.validation import ValidationError, validate_counterparty


# Page configuration
st.set_page_config(
    page_title="Ledger Bot",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .reply-box {
        padding: 16px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
        white-space: pre-wrap;
    }
    .outbound-box {
        padding: 16px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
        white-space: pre-wrap;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


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
    return create_app_components(persist_audit=True, transport=InMemoryTransport())


def main():
    """Main application entry point."""
    try:
        flow, _, _ = get_components()
    except Exception as e:
        st.error(f"Failed to open the ledger: {e}")
        st.stop()

    st.sidebar.title("💸 Ledger Bot")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["💬 Commands", "📒 Ledger", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **Try:**
        - `send 9876543210 500 details="grocery"`
        - `details 9876543210 10d`
        - `bill 9876543210 month=8 year=25`
        - `help`
        """
    )

    if page == "💬 Commands":
        render_command_page(flow)
    elif page == "📒 Ledger":
        render_ledger_page(flow)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_command_page(flow: CommandFlow):
    """Send a command as the operator and show what the bot does."""
    st.title("💬 Commands")

    if "history" not in st.session_state:
        st.session_state.history = []

    allowed = get_settings().bot.allowed_senders_list
    if allowed:
        sender = st.selectbox("Send as:", options=allowed)
    else:
        sender = st.text_input("Send as:", value="operator@s.whatsapp.net")

    text = st.text_input(
        "Command:",
        placeholder='send 9876543210 500 details="grocery payment"',
    )

    if st.button("📨 Send", type="primary") and text:
        transport = flow.transport
        try:
            reply = run_async(flow.handle(sender, text))
        except Exception as e:
            st.error(f"Error: {str(e)}")
            return

        outbound = []
        if isinstance(transport, InMemoryTransport):
            outbound = [m for m in transport.drain() if m.recipient != sender]

        st.session_state.history.insert(0, {
            "text": text,
            "reply": reply,
            "outbound": [(m.recipient, m.text) for m in outbound],
        })

    for entry in st.session_state.history:
        st.markdown(f"**> {entry['text']}**")
        if entry["reply"] is None:
            st.warning("Sender is not on the allow-list; the bot ignored the message.")
        else:
            st.markdown(f'<div class="reply-box">{entry["reply"]}</div>', unsafe_allow_html=True)
        for recipient, message in entry["outbound"]:
            st.markdown(
                f'<div class="outbound-box"><b>To {recipient}</b><br>{message}</div>',
                unsafe_allow_html=True,
            )
        st.markdown("---")


def render_ledger_page(flow: CommandFlow):
    """Totals and history for one number, straight from the ledger."""
    st.title("📒 Ledger")

    settings = get_settings()
    symbol = settings.bot.currency_symbol
    tz = settings.ledger.tzinfo

    col1, col2 = st.columns(2)
    with col1:
        number = st.text_input("Number:", placeholder="9876543210")
    with col2:
        period = st.text_input(
            "Period (optional):",
            placeholder="10d, 1m, 12/08/25, month=8 year=25",
        )

    if not number:
        st.info("Enter a number to see its transactions.")
        return

    try:
        counterparty = validate_counterparty(number.strip())
        ledger = flow.ledger
        total = ledger.total_for(counterparty)

        st.markdown("### Total Sent")
        st.markdown(f'<div class="big-number">{format_money(total, symbol)}</div>', unsafe_allow_html=True)

        last = ledger.last_for(counterparty)
        if last:
            st.caption(f"Last sent {format_money(last.amount, symbol)} on {format_day(last.occurred_at, tz)}")

        tokens = period.split()
        if tokens:
            window = resolve(tokens[0], tokens[1] if len(tokens) > 1 else None, tz=tz)
            transactions = ledger.query_by_window(counterparty, window)
            st.markdown(f"### {window.label.capitalize()}")
            st.markdown(f"**Total:** {format_money(ledger.aggregate(transactions), symbol)}")
        else:
            transactions = ledger.query_by_window(counterparty, SinceWindow.all_time())
            st.markdown("### All transactions")

        if not transactions:
            st.info("No transactions found for this period.")
            return

        st.dataframe(
            [
                {
                    "ID": t.id,
                    "Amount": format_money(t.amount, symbol),
                    "Date": format_day(t.occurred_at, tz),
                    "Details": t.details or "",
                }
                for t in transactions
            ],
            use_container_width=True,
        )
    except (ValidationError, ParseError) as e:
        st.error(str(e))
    except Exception as e:
        st.error(f"Error: {str(e)}")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")

    status = validate_all_settings()

    sections = [
        ("Ledger (database and time zone)", "ledger"),
        ("Bot (sender and addressing)", "bot"),
        ("Application", "app"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name} - OK")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if status.get("ledger"):
        ledger_settings = get_settings().ledger
        st.markdown(f"**Database:** `{ledger_settings.database_path}`")
        st.markdown(f"**Time zone:** `{ledger_settings.timezone}`")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "Settings come from environment variables or a `.env` file. "
        "Ledger settings use the `LEDGER_` prefix and bot settings the `BOT_` prefix "
        "(for example `BOT_ALLOWED_SENDERS`, `LEDGER_TIMEZONE`)."
    )


if __name__ == "__main__":
    main()
