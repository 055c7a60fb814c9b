"""Error taxonomy for the helpdesk agent.

Three families:

* ``ModelError`` — failures surfaced by the language-model contract.  Each
  carries a ``retryable`` flag that the retry orchestrator uses to decide
  between backing off and propagating.
* ``ValidationError`` — a structured model output that could not be parsed
  or did not match the response schema.  The validator *returns* these
  instead of raising them.
* ``ToolError`` — registry problems (duplicate registration, unknown tool,
  arguments that do not match the declared schema).
"""

from __future__ import annotations

from dataclasses import dataclass


class HelpdeskError(Exception):
    """Base class for all helpdesk errors."""


# ── Model contract ───────────────────────────────────────────────────


class ModelError(HelpdeskError):
    """Raised when the language-model call fails."""

    retryable: bool = True


class AuthenticationError(ModelError):
    """The API key was rejected.  Fatal: a broken deployment."""

    retryable = False


class QuotaExceededError(ModelError):
    """Rate limit or billing quota exhausted.  Fatal for this request."""

    retryable = False


class TransientError(ModelError):
    """Network failure, timeout or 5xx from the model provider."""


class MalformedOutputError(ModelError):
    """Structured mode was requested but the model emitted no usable document."""


# ── Structured output validation ─────────────────────────────────────


@dataclass(frozen=True)
class Violation:
    """A single schema violation: the wire-name path and what was wrong."""

    field: str
    message: str


class ValidationError(HelpdeskError):
    """A structured model output was rejected."""


class MalformedDocumentError(ValidationError):
    """The raw text is not a parseable JSON object."""


class SchemaViolationError(ValidationError):
    """The document parsed but broke one or more schema rules."""

    def __init__(self, violations: list[Violation]):
        self.violations = list(violations)
        summary = "; ".join(f"{v.field}: {v.message}" for v in self.violations)
        super().__init__(f"Schema violation ({len(self.violations)}): {summary}")

    @property
    def fields(self) -> list[str]:
        """Violated field paths, in the order they were reported."""
        seen: list[str] = []
        for violation in self.violations:
            if violation.field not in seen:
                seen.append(violation.field)
        return seen


# ── Tool registry ────────────────────────────────────────────────────


class ToolError(HelpdeskError):
    """Base class for tool registry errors."""


class DuplicateToolError(ToolError):
    """A tool with the same name is already registered."""


class UnknownToolError(ToolError):
    """The model asked for a tool that is not registered."""


class InvalidToolArgumentsError(ToolError):
    """The arguments do not match the tool's declared parameter schema."""
