"""Knowledge base search tool.

A fixed set of help-centre articles the agent can search when customers ask
about policies, shipping, payments and so on.  The same entries also back
the FAQ prompt used by the single-turn responder (see ``get_full_faq``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from langchain_core.tools import tool

logger = logging.getLogger(__name__)

MAX_RESULTS = 2


@dataclass(frozen=True)
class Article:
    topic: str
    content: str
    keywords: tuple[str, ...]


KNOWLEDGE_BASE: tuple[Article, ...] = (
    Article(
        topic="return policy",
        content=(
            "Our return policy allows returns within 30 days of purchase for a full "
            "refund. Items must be unused and in original packaging. Please keep your "
            "receipt for faster processing."
        ),
        keywords=("return", "refund", "policy", "exchange"),
    ),
    Article(
        topic="shipping",
        content=(
            "We offer free standard shipping on orders over $50. Standard shipping "
            "takes 5-7 business days. Express shipping (2-3 days) is available for "
            "$15. International shipping is available to select countries."
        ),
        keywords=("shipping", "delivery", "tracking", "international"),
    ),
    Article(
        topic="payment methods",
        content=(
            "We accept Visa, Mastercard, American Express, PayPal, and Apple Pay. All "
            "transactions are securely processed through our encrypted payment gateway."
        ),
        keywords=("payment", "credit card", "paypal", "apple pay"),
    ),
    Article(
        topic="warranty",
        content=(
            "All products come with a 1-year manufacturer warranty covering defects in "
            "materials and workmanship. Extended warranty plans are available for "
            "purchase at checkout."
        ),
        keywords=("warranty", "guarantee", "defect", "coverage"),
    ),
    Article(
        topic="account creation",
        content=(
            "Creating an account is quick and free. You'll get access to order "
            "tracking, saved payment methods, and exclusive member discounts. Click "
            "'Sign Up' in the top right corner to get started."
        ),
        keywords=("account", "sign up", "register", "login"),
    ),
    Article(
        topic="order tracking",
        content=(
            "Once your order ships, you'll receive an email with a tracking number. You "
            "can also track your order by logging into your account and viewing your "
            "order history."
        ),
        keywords=("track", "tracking", "order status", "where is my order"),
    ),
    Article(
        topic="customer support hours",
        content=(
            "Our customer support team is available Monday-Friday 9am-6pm EST. For "
            "urgent issues outside these hours, please use our live chat feature."
        ),
        keywords=("hours", "support", "contact", "help"),
    ),
    Article(
        topic="product availability",
        content=(
            "Product availability is shown on each product page. If an item is out of "
            "stock, you can sign up for back-in-stock notifications to be alerted when "
            "it becomes available again."
        ),
        keywords=("availability", "in stock", "out of stock", "restock"),
    ),
)


def _matches(article: Article, query: str) -> bool:
    if query in article.topic or query in article.content.lower():
        return True
    return any(keyword in query or query in keyword for keyword in article.keywords)


def get_full_faq() -> str:
    """Return every article as Q/A text (used for system prompt injection)."""
    return "\n\n".join(
        f"Q: What is your {article.topic}?\nA: {article.content}"
        for article in KNOWLEDGE_BASE
    )


@tool
def search_kb(query: str) -> str:
    """Search the knowledge base for information about products, services,
    policies, and common questions.

    Use this when the customer asks about return policies, shipping, payments,
    warranties, or general product information.

    Args:
        query: The search query to find relevant information in the knowledge base.
    """
    normalized = query.lower().strip()
    if not normalized:
        return "Please provide a search query."

    results = [article for article in KNOWLEDGE_BASE if _matches(article, normalized)]
    logger.debug("search_kb(%r) matched %d article(s)", query, len(results))

    if not results:
        return (
            f'No information found for "{query}". Please try a different search term '
            "or contact our support team for assistance."
        )

    return "\n\n".join(
        f"{article.topic.upper()}: {article.content}" for article in results[:MAX_RESULTS]
    )
