"""Customer account lookup tool (mock account store)."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from langchain_core.tools import tool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Account:
    id: str
    email: str
    name: str
    membership_status: str
    account_created: str
    total_orders: int
    last_order: str


ACCOUNTS: tuple[Account, ...] = (
    Account("CUST001", "john.doe@example.com", "John Doe", "Premium", "2023-01-15", 12, "2024-01-10"),
    Account("CUST002", "jane.smith@example.com", "Jane Smith", "Standard", "2023-06-20", 5, "2024-01-05"),
    Account("CUST003", "bob.wilson@example.com", "Bob Wilson", "Premium", "2022-11-10", 28, "2024-02-01"),
    Account("CUST004", "alice.johnson@example.com", "Alice Johnson", "Standard", "2024-01-05", 2, "2024-01-20"),
)


def find_account(identifier: str) -> Account | None:
    """Case-insensitive lookup by customer ID or email."""
    needle = identifier.lower().strip()
    for account in ACCOUNTS:
        if needle in (account.id.lower(), account.email.lower()):
            return account
    return None


@tool
def get_account(identifier: str) -> str:
    """Look up customer account information by customer ID or email address.

    Use this when the customer asks about their account status, order history,
    or provides their email/customer ID for account-related inquiries.

    Args:
        identifier: The customer ID (e.g. 'CUST001') or email address to look up.
    """
    if not identifier.strip():
        return "Please provide a customer ID or email address."

    account = find_account(identifier)
    if account is None:
        logger.debug("get_account: no match for %r", identifier)
        return (
            f'No account found for "{identifier}". '
            "Please verify the customer ID or email address."
        )

    logger.debug("get_account: found %s", account.id)
    return "\n".join(
        [
            "ACCOUNT FOUND:",
            f"Name: {account.name}",
            f"Customer ID: {account.id}",
            f"Email: {account.email}",
            f"Membership Status: {account.membership_status}",
            f"Account Created: {account.account_created}",
            f"Total Orders: {account.total_orders}",
            f"Last Order: {account.last_order}",
        ]
    )
