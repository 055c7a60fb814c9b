"""Escalation tool: hand the conversation over to a human agent."""

from __future__ import annotations

import logging
import time

from langchain_core.tools import tool

logger = logging.getLogger(__name__)


def _new_ticket_id() -> str:
    return f"TICKET-{str(int(time.time() * 1000))[-6:]}"


@tool
def escalate_to_human(reason: str) -> str:
    """Escalate the conversation to a human support agent.

    Use this when: 1) the customer explicitly asks to speak with a human,
    2) the issue is complex and cannot be resolved with the available tools,
    3) the customer is frustrated or needs personalized assistance, or
    4) the request involves refunds, cancellations, or sensitive account changes.

    Args:
        reason: A brief description of why the conversation is being escalated
            (e.g. 'customer requests refund', 'customer requested human agent').
    """
    if not reason.strip():
        return "Escalation initiated. A human agent will be with you shortly."

    ticket_id = _new_ticket_id()
    logger.info("Escalated to human: %s (%s)", ticket_id, reason)

    return (
        "I've escalated your request to our human support team.\n\n"
        f"Ticket ID: {ticket_id}\n"
        f"Reason: {reason}\n\n"
        "A support specialist will contact you shortly via email or live chat. "
        "Average wait time is 5-10 minutes during business hours "
        "(Monday-Friday, 9am-6pm EST).\n\n"
        "For urgent issues, please call us at 1-800-SUPPORT."
    )
