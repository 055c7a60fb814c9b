"""Tests for the customer-support tools and the tool registry."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from langchain_core.tools import tool

from helpdesk.errors import DuplicateToolError, InvalidToolArgumentsError, UnknownToolError
from helpdesk.tools.accounts import find_account, get_account
from helpdesk.tools.escalation import escalate_to_human
from helpdesk.tools.knowledge_base import KNOWLEDGE_BASE, get_full_faq, search_kb
from helpdesk.tools.registry import ToolDescriptor, ToolRegistry, default_registry


class TestSearchKb:
    def test_return_policy_query(self):
        result = search_kb.invoke({"query": "return policy"})
        assert result.startswith("RETURN POLICY:")
        assert "30 days" in result

    def test_keyword_match_is_case_insensitive(self):
        result = search_kb.invoke({"query": "PayPal"})
        assert "PAYMENT METHODS:" in result

    def test_at_most_two_results(self):
        # "order" appears in the shipping, account creation and order tracking articles.
        result = search_kb.invoke({"query": "order"})
        assert result.count(":") >= 2
        assert len(result.split("\n\n")) == 2

    def test_no_match(self):
        result = search_kb.invoke({"query": "quantum entanglement"})
        assert result.startswith('No information found for "quantum entanglement"')

    def test_blank_query(self):
        assert search_kb.invoke({"query": "   "}) == "Please provide a search query."

    def test_full_faq_lists_every_article(self):
        faq = get_full_faq()
        assert faq.count("Q: What is your") == len(KNOWLEDGE_BASE)
        assert "Q: What is your shipping?" in faq


class TestGetAccount:
    @pytest.mark.parametrize("identifier", ["CUST001", "cust001", "John.Doe@Example.com"])
    def test_finds_account_by_id_or_email(self, identifier: str):
        result = get_account.invoke({"identifier": identifier})
        assert result.startswith("ACCOUNT FOUND:")
        assert "Name: John Doe" in result
        assert "Customer ID: CUST001" in result
        assert "Membership Status: Premium" in result

    def test_unknown_account(self):
        result = get_account.invoke({"identifier": "CUST999"})
        assert result.startswith('No account found for "CUST999"')

    def test_blank_identifier(self):
        assert (
            get_account.invoke({"identifier": " "})
            == "Please provide a customer ID or email address."
        )

    def test_find_account_returns_none_for_unknown(self):
        assert find_account("nobody@example.com") is None


class TestEscalateToHuman:
    def test_creates_ticket(self):
        with patch("helpdesk.tools.escalation.time.time", return_value=1_700_000_123.0):
            result = escalate_to_human.invoke({"reason": "customer requests refund"})
        assert "I've escalated your request to our human support team" in result
        assert "Ticket ID: TICKET-123000" in result
        assert "Reason: customer requests refund" in result

    def test_blank_reason(self):
        result = escalate_to_human.invoke({"reason": ""})
        assert result == "Escalation initiated. A human agent will be with you shortly."


class TestToolRegistry:
    def test_default_registry_order(self):
        registry = default_registry()
        assert [d.name for d in registry.describe()] == [
            "search_kb", "get_account", "escalate_to_human",
        ]
        assert len(registry) == 3

    def test_descriptor_exposes_json_schema(self):
        descriptor = ToolDescriptor.from_tool(get_account)
        assert descriptor.parameters["type"] == "object"
        assert "identifier" in descriptor.parameters["properties"]
        assert descriptor.required == ["identifier"]
        assert "customer ID" in descriptor.description

    def test_duplicate_registration_rejected(self):
        registry = ToolRegistry()
        registry.register(ToolDescriptor.from_tool(search_kb))
        with pytest.raises(DuplicateToolError):
            registry.register(ToolDescriptor.from_tool(search_kb))

    def test_invoke_unknown_tool(self):
        with pytest.raises(UnknownToolError):
            default_registry().invoke("launch_rockets", {})

    def test_invoke_missing_argument(self):
        with pytest.raises(InvalidToolArgumentsError):
            default_registry().invoke("get_account", {})

    def test_invoke_wrong_argument_type(self):
        with pytest.raises(InvalidToolArgumentsError):
            default_registry().invoke("search_kb", {"query": ["not", "a", "string"]})

    def test_invoke_by_parameter_name(self):
        result = default_registry().invoke("get_account", {"identifier": "CUST002"})
        assert "Jane Smith" in result

    def test_contains(self):
        registry = default_registry()
        assert "search_kb" in registry
        assert "launch_rockets" not in registry

    def test_non_string_results_are_stringified(self):
        @tool
        def add(a: int, b: int) -> int:
            """Add two numbers."""
            return a + b

        registry = ToolRegistry()
        registry.register(ToolDescriptor.from_tool(add))
        assert registry.invoke("add", {"a": 2, "b": 3}) == "5"

    def test_tool_exceptions_propagate(self):
        @tool
        def broken(x: str) -> str:
            """Always fails."""
            raise RuntimeError("boom")

        registry = ToolRegistry()
        registry.register(ToolDescriptor.from_tool(broken))
        with pytest.raises(RuntimeError, match="boom"):
            registry.invoke("broken", {"x": "y"})
