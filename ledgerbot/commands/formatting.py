"""
Reply Formatting

All user-facing text lives here so the flow stays about control, not
wording. Amounts print without trailing zeros (500, 12.5) and dates as
d/m/yyyy in the bot's time zone.
"""

from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Optional

from ledgerbot.models.transaction import SinceWindow, Transaction, Window


TIP = "💡 Tip: Use 10d (days), 1m (months), 1y (years), month=9, or DD/MM/YY for specific periods"

SEND_USAGE = 'Usage: send <number> <amount> details="optional information"'
DETAILS_USAGE = "Usage: details <number> [DD/MM/YY] [10d/5d/1m/1y] [month=9] [month=9 year=25]"
BILL_USAGE = "Usage: bill <number> [DD/MM/YY] [10d/5d/1m/1y] [month=9] [month=9 year=25]"
UNKNOWN_COMMAND = 'Type "help" or "commands" to see all available commands and formats.'
GENERIC_ERROR = "An error occurred while processing your command. Please try again."

HELP_TEXT = """📋 *Available Commands & Formats*

🔹 *Send Money:*
• `send <number> <amount>` - Basic send
• `send <number> <amount> details="info"` - Send with details

🔹 *View Details:*
• `details <number>` - All transactions summary
• `details <number> 12/08/25` - Specific date (DD/MM/YY)
• `details <number> 10d` - Last 10 days
• `details <number> 5d` - Last 5 days
• `details <number> 1m` - Last 1 month
• `details <number> 2m` - Last 2 months
• `details <number> 1y` - Last 1 year
• `details <number> month=8` - Current year, month 8
• `details <number> month=8 year=25` - Specific month/year

🔹 *Send Bills:*
• `bill <number>` - Total bill (all time)
• `bill <number> 12/08/25` - Bill for specific date
• `bill <number> 30d` - Last 30 days bill
• `bill <number> 1m` - Last 1 month bill
• `bill <number> month=8` - Current year, month 8
• `bill <number> month=8 year=25` - Specific month/year

🔹 *Help:*
• `help` or `commands` - Show this help

📝 *Date Formats Supported:*
• DD/MM/YY: 12/8/25, 01/02/25
• DD-MM-YY: 12-8-25, 01-02-25
• DD/MM/YYYY: 12/08/2025

⏰ *Time Formats:*
• d = days (1d, 10d, 30d)
• m = months (1m, 2m, 6m)
• y = years (1y, 2y)

📞 *Examples:*
• `send 9876543210 500 details="grocery payment"`
• `details 9876543210 10d`
• `bill 9876543210 month=8 year=25`"""


def format_amount(amount: Decimal) -> str:
    """Decimal("500.00") -> "500", Decimal("12.50") -> "12.5"."""
    normalized = amount.normalize()
    return format(normalized, "f")


def format_money(amount: Decimal, symbol: str) -> str:
    return f"{symbol}{format_amount(amount)}"


def format_day(instant: datetime, tz: tzinfo) -> str:
    """An instant as d/m/yyyy on the local calendar."""
    local = instant.astimezone(tz)
    return f"{local.day}/{local.month}/{local.year}"


def details_heading(window: Window) -> str:
    if isinstance(window, SinceWindow):
        return f"{window.label[0].upper()}{window.label[1:]} transactions:"
    return f"Transactions for {window.label}:"


def bill_period_text(window: Optional[Window]) -> str:
    if window is None or (isinstance(window, SinceWindow) and window.amount is None):
        return "so far"
    return f"for {window.label}"


def _transaction_line(transaction: Transaction, symbol: str, tz: tzinfo) -> str:
    line = f"{format_money(transaction.amount, symbol)} on {format_day(transaction.occurred_at, tz)}"
    if transaction.details:
        line += f" - {transaction.details}"
    return line


def render_notification(amount: Decimal, details: Optional[str], sender_name: str, symbol: str) -> str:
    """Message the counterparty receives for a send."""
    text = f"You have received {format_money(amount, symbol)} from {sender_name}."
    if details:
        text += f"\nDetails: {details}"
    return text


def render_send_confirmation(amount: Decimal, counterparty: str, details: Optional[str], symbol: str) -> str:
    """Reply to the operator after a send."""
    text = f"✅ Sent {format_money(amount, symbol)} notification to {counterparty}"
    if details:
        text += f"\nWith details: {details}"
    return text


def render_summary(
    counterparty: str,
    total: Decimal,
    last: Optional[Transaction],
    symbol: str,
    tz: tzinfo,
) -> str:
    """`details <number>` without a period: total and last transaction."""
    lines = [
        f"Number: {counterparty}",
        f"Total Sent: {format_money(total, symbol)}",
    ]
    if last:
        lines.append(f"Last Sent: {_transaction_line(last, symbol, tz)}")
    else:
        lines.append("Last Sent: No transactions found")
    return "\n".join(lines) + f"\n\n{TIP}"


def render_history(
    counterparty: str,
    window: Window,
    transactions: list[Transaction],
    total: Decimal,
    symbol: str,
    tz: tzinfo,
) -> str:
    """`details <number> <period>`: heading, total and a numbered list."""
    text = f"Number: {counterparty}\n{details_heading(window)}\n"
    if not transactions:
        text += "No transactions found for this period.\n\n"
    else:
        text += f"Total: {format_money(total, symbol)}\n\n"
        for index, transaction in enumerate(transactions, start=1):
            text += f"{index}. {_transaction_line(transaction, symbol, tz)}\n"
    return text + f"\n{TIP}"


def render_bill(total: Decimal, period_text: str, sender_name: str, symbol: str) -> str:
    """Message the counterparty receives for a bill."""
    return f"Total amount received from {sender_name} {period_text}: {format_money(total, symbol)}"


def render_bill_confirmation(total: Decimal, period_text: str, counterparty: str, symbol: str) -> str:
    return (
        f"✅ Sent bill summary ({format_money(total, symbol)}) {period_text} "
        f"to {counterparty}\n\n{TIP}"
    )


def render_no_bill(counterparty: str) -> str:
    return f"No transactions found for {counterparty}\n\n{TIP}"
