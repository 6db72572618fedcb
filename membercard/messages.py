"""Plain text message payloads pushed to LINE users."""

from membercard.domain.accounts import Account
from membercard.domain.transactions import Transaction, TransactionType
from membercard.utils.formatting import format_currency, format_points


def text(body: str) -> dict:
    return {"type": "text", "text": body}


def welcome_message() -> dict:
    return text(
        "Welcome to the Prima789 member card!\n"
        "1. Link your account\n"
        "2. Check your balance and points in real time\n"
        "3. Get updates automatically\n\n"
        "Type 'link' to get started or 'help' for all commands."
    )


def help_message() -> dict:
    return text(
        "Commands:\n"
        "- balance: show your balance, tier and points\n"
        "- card: show your member card\n"
        "- link: link your Prima789 account\n"
        "- help: show this message"
    )


def not_linked_message() -> dict:
    return text("Your account is not linked yet. Type 'link' to link your Prima789 account first.")


def link_instructions_message(login_url: str) -> dict:
    return text(
        "To link your account, open the member card and enter your Prima789 username, "
        f"or log in at {login_url} and the link will complete automatically."
    )


def linked_message(account: Account) -> dict:
    return text(
        f"Your LINE account is now linked to {account.username}.\n"
        f"Balance: {format_currency(account.available)}\n"
        f"Tier: {account.tier}"
    )


def balance_summary_message(view: dict) -> dict:
    balance = view["balance"]
    return text(
        f"Balance: {view['display']['balance_formatted']}\n"
        f"Points: {format_points(balance['points'])} pts\n"
        f"Tier: {balance['tier']}\n\n"
        f"Last updated: {view['display']['last_sync_relative']}"
    )


def balance_change_message(transaction: Transaction) -> dict:
    verb = "Deposit" if transaction.transaction_type == TransactionType.DEPOSIT.value else "Withdrawal"
    return text(
        f"{verb} of {format_currency(transaction.amount)} recorded.\n"
        f"New balance: {format_currency(transaction.balance_after)}"
    )


def error_message() -> dict:
    return text("Something went wrong. Please try again in a moment.")


def refresh_instructions_message(login_url: str) -> dict:
    return text(f"Log in at {login_url} to refresh your balance. Your latest saved data:")
